"""ASGI entrypoint for the artisan market API."""

from artisan_market.api.app import create_app
from artisan_market.containers import build_container

app = create_app(build_container())
