"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from pydantic import ValidationError

from artisan_market.adapters.content_store import ContentStore, HttpxContentStore
from artisan_market.adapters.ledger_client import HttpxLedgerClient, LedgerClient
from artisan_market.adapters.signer_provider import (
    HttpxSignerProvider,
    SignerProvider,
)
from artisan_market.config import Settings
from artisan_market.errors import ConfigurationError
from artisan_market.services.content import ContentResolver
from artisan_market.services.creators import CreatorRegistry
from artisan_market.services.items import ItemAggregator
from artisan_market.services.minting import MintingService
from artisan_market.services.session import LedgerSession
from artisan_market.services.transactions import TransactionOrchestrator
from artisan_market.services.uploads import MetadataUploader


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    signer_provider: SignerProvider | None
    signer_watch: Callable[[], Awaitable[None]] | None
    session: LedgerSession
    resolver: ContentResolver
    uploader: MetadataUploader
    aggregator: ItemAggregator
    orchestrator: TransactionOrchestrator
    creator_registry: CreatorRegistry
    minting_service: MintingService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or _load_settings()
    ledger_client = HttpxLedgerClient.create(
        rpc_url=resolved_settings.ledger_rpc_url,
        contract_address=resolved_settings.contract_address,
        poll_interval_seconds=resolved_settings.receipt_poll_interval_seconds,
        timeout=resolved_settings.request_timeout_seconds,
    )
    signer_provider = (
        HttpxSignerProvider.create(
            resolved_settings.signer_rpc_url,
            poll_interval_seconds=resolved_settings.signer_poll_interval_seconds,
            timeout=resolved_settings.request_timeout_seconds,
        )
        if resolved_settings.signer_rpc_url
        else None
    )
    content_store = HttpxContentStore.create(
        api_url=resolved_settings.ipfs_api_url,
        project_id=resolved_settings.ipfs_project_id,
        project_secret=resolved_settings.ipfs_project_secret,
    )
    return wire_container(
        settings=resolved_settings,
        ledger_client=ledger_client,
        signer_provider=signer_provider,
        content_store=content_store,
        signer_watch=signer_provider.watch if signer_provider else None,
        closers=[
            resource.close
            for resource in (ledger_client, signer_provider, content_store)
            if resource is not None
        ],
    )


def _load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def wire_container(  # noqa: PLR0913
    *,
    settings: Settings,
    ledger_client: LedgerClient,
    signer_provider: SignerProvider | None,
    content_store: ContentStore,
    signer_watch: Callable[[], Awaitable[None]] | None = None,
    closers: list[Callable[[], Awaitable[None]]] | None = None,
) -> AppContainer:
    """Wire services around already-built adapters."""
    session = LedgerSession(ledger=ledger_client, provider=signer_provider)
    session.attach()
    resolver = ContentResolver(
        store=content_store, gateway_url=settings.ipfs_gateway_url
    )
    uploader = MetadataUploader(store=content_store)
    aggregator = ItemAggregator(
        session=session,
        resolver=resolver,
        placeholder_image=settings.placeholder_image_url,
    )
    session.add_reset_listener(aggregator.invalidate)
    orchestrator = TransactionOrchestrator(session=session, aggregator=aggregator)
    creator_registry = CreatorRegistry(session=session, orchestrator=orchestrator)
    minting_service = MintingService(
        session=session, uploader=uploader, orchestrator=orchestrator
    )

    async def close_resources() -> None:
        session.detach()
        for close in closers or []:
            await close()

    return AppContainer(
        settings=settings,
        signer_provider=signer_provider,
        signer_watch=signer_watch,
        session=session,
        resolver=resolver,
        uploader=uploader,
        aggregator=aggregator,
        orchestrator=orchestrator,
        creator_registry=creator_registry,
        minting_service=minting_service,
        close_resources=close_resources,
    )
