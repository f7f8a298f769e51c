"""Resolution of content locators to gateway URLs and JSON documents."""

import json
import logging
from dataclasses import dataclass

from artisan_market.adapters.content_store import ContentStore
from artisan_market.errors import ResolutionFailure

_logger = logging.getLogger(__name__)

_IPFS_SCHEME = "ipfs://"
_IPFS_PATH_PREFIXES = ("ipfs/", "/ipfs/")
_HTTP_SCHEMES = ("http://", "https://")


@dataclass
class ContentResolver:
    """Normalizes content locators and fetches their documents."""

    store: ContentStore
    gateway_url: str

    def resolve(self, locator: str | None) -> str | None:
        """Return a fetchable URL for the locator, or None if it is unusable."""
        if not locator or not isinstance(locator, str):
            return None
        cleaned = locator.strip()
        if cleaned.lower().startswith(_IPFS_SCHEME):
            content_id = cleaned[len(_IPFS_SCHEME) :]
            for prefix in _IPFS_PATH_PREFIXES:
                if content_id.startswith(prefix):
                    content_id = content_id[len(prefix) :]
            content_id = content_id.strip("/")
            if not content_id:
                return None
            return f"{self.gateway_url}{content_id}"
        if cleaned.lower().startswith(_HTTP_SCHEMES) and len(cleaned) > len("https://"):
            return cleaned
        return None

    async def fetch_document(self, locator: str | None) -> dict[str, object]:
        """Fetch and parse a JSON document, raising ResolutionFailure."""
        url = self.resolve(locator)
        if url is None:
            raise ResolutionFailure(locator, "Unresolvable content locator")
        try:
            raw = await self.store.get(url)
            document = json.loads(raw)
        except Exception as exc:
            raise ResolutionFailure(locator, f"Metadata fetch failed: {exc}") from exc
        if not isinstance(document, dict):
            raise ResolutionFailure(locator, "Metadata is not a JSON object")
        return document

    async def fetch_json(self, locator: str | None) -> dict[str, object] | None:
        """Fetch a document; failures are logged and yield None."""
        if not locator:
            return None
        try:
            return await self.fetch_document(locator)
        except ResolutionFailure as exc:
            _logger.warning("%s: locator=%s", exc.message, locator)
            return None
