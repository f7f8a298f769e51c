"""FastAPI application factory."""

import asyncio
import base64
import binascii
import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager, suppress
from decimal import Decimal
from typing import TypeVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from artisan_market.api.admin import router as admin_router
from artisan_market.api.models import (
    ListingRequest,
    MintRequest,
    PublishRequest,
    PurchaseRequest,
)
from artisan_market.app_logging import configure_logging
from artisan_market.containers import AppContainer
from artisan_market.domain.items import ItemRecord, to_base_units
from artisan_market.domain.session import SessionSnapshot
from artisan_market.domain.transactions import MintResult, TransactionOutcome
from artisan_market.errors import InvalidArguments, LedgerRpcError, MarketError

_T = TypeVar("_T")

_logger = logging.getLogger(__name__)
_detached_writes: set[asyncio.Future] = set()

_STATUS_BY_CODE = {
    "not_found": 404,
    "not_connected": 401,
    "unauthorized": 403,
    "insufficient_funds": 402,
    "stale_state": 409,
    "user_declined": 409,
    "invalid_arguments": 422,
    "provider_unavailable": 503,
    "storage_unavailable": 503,
    "transaction_failed": 502,
    "configuration_error": 500,
}


class PendingConfirmation(Exception):
    """The caller-imposed wait expired before the ledger reported an outcome."""


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        restored = await state_container.session.restore()
        if not restored and state_container.session.error:
            _logger.warning("Session not restored: %s", state_container.session.error)
        watch_task = None
        if state_container.signer_watch is not None:
            watch_task = asyncio.create_task(state_container.signer_watch())
        yield
        if watch_task is not None:
            watch_task.cancel()
            with suppress(asyncio.CancelledError):
                await watch_task
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(MarketError)
    async def market_error_handler(
        request: Request, exc: MarketError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=_STATUS_BY_CODE.get(exc.code, 400),
            content={"error": exc.code, "message": exc.user_message},
        )

    @app.exception_handler(LedgerRpcError)
    async def ledger_error_handler(
        request: Request, exc: LedgerRpcError
    ) -> JSONResponse:
        _logger.warning(
            "Ledger gateway error on %s %s: %s", request.method, request.url.path, exc
        )
        return JSONResponse(
            status_code=502,
            content={
                "error": "ledger_unavailable",
                "message": "The ledger could not be reached. "
                "A submitted transaction may still confirm.",
            },
        )

    @app.exception_handler(PendingConfirmation)
    async def pending_handler(
        request: Request, exc: PendingConfirmation
    ) -> JSONResponse:
        return JSONResponse(
            status_code=202,
            content={
                "state": "pending",
                "message": "The transaction is still waiting for confirmation.",
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/session")
    async def get_session(request: Request) -> dict[str, object]:
        """Return the current session state."""
        state_container: AppContainer = request.app.state.container
        return _serialize_session(state_container.session.snapshot())

    @app.post("/session/connect")
    async def connect(request: Request) -> dict[str, object]:
        """Ask the signer to authorize an identity."""
        state_container: AppContainer = request.app.state.container
        connected = await state_container.session.connect()
        return {
            "connected": connected,
            **_serialize_session(state_container.session.snapshot()),
        }

    @app.post("/session/disconnect")
    async def disconnect(request: Request) -> dict[str, object]:
        """Forget the connected identity."""
        state_container: AppContainer = request.app.state.container
        state_container.session.disconnect()
        return _serialize_session(state_container.session.snapshot())

    @app.get("/items")
    async def list_items(
        request: Request, for_sale: bool | None = None
    ) -> dict[str, object]:
        """Return every item, optionally only those for sale."""
        state_container: AppContainer = request.app.state.container
        aggregator = state_container.aggregator
        if for_sale:
            records = await aggregator.list_for_sale()
        else:
            records = await aggregator.list_all()
        return {"items": [_serialize_item(record) for record in records]}

    @app.get("/items/{item_id}")
    async def get_item(item_id: int, request: Request) -> dict[str, object]:
        """Return a single item with its ownership history."""
        state_container: AppContainer = request.app.state.container
        record = await state_container.aggregator.get(item_id)
        provenance = await state_container.aggregator.provenance(item_id)
        return {**_serialize_item(record), "provenance": provenance}

    @app.get("/collection")
    async def collection(request: Request) -> dict[str, object]:
        """Return the items owned by the connected identity."""
        state_container: AppContainer = request.app.state.container
        await state_container.session.settled()
        identity = state_container.session.require_identity()
        records = await state_container.aggregator.list_owned_by(identity)
        return {
            "owner": identity,
            "items": [_serialize_item(record) for record in records],
        }

    @app.post("/items")
    async def mint(payload: MintRequest, request: Request) -> dict[str, object]:
        """Mint an item for the connected identity."""
        state_container: AppContainer = request.app.state.container
        owner = state_container.session.require_identity()
        result = await _bounded(
            state_container,
            state_container.orchestrator.mint(
                owner=owner,
                description=payload.description,
                materials=payload.materials,
                creator_details=payload.creator_details,
                content_locator=payload.content_locator,
                initial_price=_optional_base_units(payload.initial_price),
            ),
        )
        return _serialize_mint(result)

    @app.post("/items/publish")
    async def publish(payload: PublishRequest, request: Request) -> dict[str, object]:
        """Upload an image and metadata, then mint."""
        state_container: AppContainer = request.app.state.container
        try:
            image = base64.b64decode(payload.image_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidArguments("The image is not valid base64 data.") from exc
        result = await _bounded(
            state_container,
            state_container.minting_service.publish(
                name=payload.name,
                description=payload.description,
                materials=payload.materials,
                creator_details=payload.creator_details,
                image=image,
                initial_price=_optional_base_units(payload.initial_price),
            ),
        )
        return _serialize_mint(result)

    @app.put("/items/{item_id}/listing")
    async def list_item(
        item_id: int, payload: ListingRequest, request: Request
    ) -> dict[str, object]:
        """Put an owned item up for sale."""
        state_container: AppContainer = request.app.state.container
        price = _base_units(payload.price)
        outcome = await _bounded(
            state_container, state_container.orchestrator.list_item(item_id, price)
        )
        return _serialize_outcome(outcome)

    @app.delete("/items/{item_id}/listing")
    async def delist_item(item_id: int, request: Request) -> dict[str, object]:
        """Withdraw an owned item from sale."""
        state_container: AppContainer = request.app.state.container
        outcome = await _bounded(
            state_container, state_container.orchestrator.delist(item_id)
        )
        return _serialize_outcome(outcome)

    @app.post("/items/{item_id}/purchase")
    async def purchase_item(
        item_id: int, request: Request, payload: PurchaseRequest | None = None
    ) -> dict[str, object]:
        """Buy an item at the listed price, or at an explicit payment."""
        state_container: AppContainer = request.app.state.container
        if payload is not None and payload.payment is not None:
            payment = _base_units(payload.payment)
        else:
            record = await state_container.aggregator.get(item_id)
            if not record.for_sale:
                raise InvalidArguments("This item is not for sale.")
            payment = record.price_base_units
        outcome = await _bounded(
            state_container, state_container.orchestrator.purchase(item_id, payment)
        )
        return _serialize_outcome(outcome)

    return app


async def _bounded(container: AppContainer, operation: Awaitable[_T]) -> _T:
    """Await a write, giving up waiting (not the write) after the configured time."""
    timeout = container.settings.confirmation_timeout_seconds
    if timeout is None:
        return await operation
    task = asyncio.ensure_future(operation)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except TimeoutError as exc:
        _detached_writes.add(task)
        task.add_done_callback(_log_late_outcome)
        raise PendingConfirmation() from exc


def _log_late_outcome(task: asyncio.Future) -> None:
    """Report how a write that outlived its request wait finally ended."""
    _detached_writes.discard(task)
    if task.cancelled():
        _logger.warning("Write abandoned after its wait expired was cancelled")
        return
    exc = task.exception()
    if exc is not None:
        _logger.error(
            "Write finished after its wait expired and failed: %r",
            exc,
            exc_info=exc,
        )
        return
    _logger.info("Write finished after its wait expired: %r", task.result())


def _base_units(amount: Decimal) -> int:
    try:
        return to_base_units(amount)
    except ValueError as exc:
        raise InvalidArguments(f"Invalid amount: {amount}") from exc


def _optional_base_units(amount: Decimal | None) -> int | None:
    if amount is None:
        return None
    return _base_units(amount)


def _serialize_session(snapshot: SessionSnapshot) -> dict[str, object]:
    return {
        "identity": snapshot.identity,
        "connectivity": snapshot.connectivity.value,
        "is_admin": snapshot.flags.is_admin,
        "is_artisan": snapshot.flags.is_artisan,
        "network_id": snapshot.network_id,
        "error": snapshot.error,
    }


def _serialize_item(record: ItemRecord) -> dict[str, object]:
    return {
        "id": record.id,
        "owner": record.owner,
        "name": record.name,
        "description": record.description,
        "materials": record.materials,
        "creator_details": record.creator_details,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "image": record.image,
        "for_sale": record.for_sale,
        "price": str(record.price),
        "price_base_units": str(record.price_base_units),
        "content_locator": record.content_locator,
        "attributes": [
            {"trait_type": trait, "value": value} for trait, value in record.attributes
        ],
    }


def _serialize_outcome(outcome: TransactionOutcome) -> dict[str, object]:
    return {
        "hash": outcome.handle.tx_hash,
        "operation": outcome.handle.kind.value,
        "item_id": outcome.handle.item_id,
        "state": outcome.handle.state.value,
        "block_number": outcome.receipt.block_number if outcome.receipt else None,
    }


def _serialize_mint(result: MintResult) -> dict[str, object]:
    return {
        "item_id": result.item_id,
        "mint": _serialize_outcome(result.outcome),
        "listing": _serialize_outcome(result.listing) if result.listing else None,
    }
