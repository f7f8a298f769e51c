"""Submission and tracking of state-changing ledger transactions."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from artisan_market.domain.addresses import is_address, same_address
from artisan_market.domain.transactions import (
    LedgerCall,
    MintResult,
    OperationKind,
    TransactionHandle,
    TransactionOutcome,
    TransactionReceipt,
    TransactionState,
)
from artisan_market.errors import (
    InsufficientFunds,
    InvalidArguments,
    ItemNotFound,
    LedgerRpcError,
    MarketError,
    NotConnected,
    StaleState,
    TransactionFailed,
    Unauthorized,
    UserDeclined,
)
from artisan_market.services.items import ItemAggregator
from artisan_market.services.session import LedgerSession

_logger = logging.getLogger(__name__)

_USER_REJECTED_CODE = 4001
_EXECUTION_REVERTED_CODE = 3
_DECLINE_MARKERS = ("user rejected", "user denied")
_FUNDS_MARKERS = ("insufficient funds",)
_ACCESS_MARKERS = ("accesscontrol", "missing role")

_ROLE_REQUIREMENTS = {
    OperationKind.MINT: "Only registered artisans can mint items.",
    OperationKind.REGISTER_CREATOR: "Only administrators can register artisans.",
}


@dataclass
class TransactionOrchestrator:
    """Submits writes through the session and awaits their terminal state.

    There is no client-side timeout and submissions are never retried. Callers
    that need to bound the wait wrap ``wait`` themselves and treat expiry as
    indeterminate.
    """

    session: LedgerSession
    aggregator: ItemAggregator

    async def submit(
        self,
        kind: OperationKind,
        args: Mapping[str, object] | None = None,
        value: int = 0,
    ) -> TransactionHandle:
        """Check preconditions and submit; failures here create no handle."""
        await self.session.settled()
        binding = self.session.binding
        if binding is None:
            raise NotConnected()
        if not self.session.permits(kind):
            raise Unauthorized(
                _ROLE_REQUIREMENTS.get(kind, "You are not allowed to do this."),
                details={"operation": kind.value, "identity": binding.identity},
            )
        call, item_id = await self._prepare(
            kind, dict(args or {}), value, binding.identity
        )
        try:
            tx_hash = await binding.submit(call)
        except LedgerRpcError as exc:
            error = classify_rejection(exc)
            _logger.warning(
                "Submission rejected: operation=%s item=%s code=%s message=%s",
                kind.value,
                item_id,
                exc.code,
                exc.message,
            )
            if isinstance(error, StaleState):
                self._invalidate(item_id)
            raise error from exc
        _logger.info(
            "Transaction submitted: operation=%s item=%s hash=%s",
            kind.value,
            item_id,
            tx_hash,
        )
        return TransactionHandle(
            tx_hash=tx_hash,
            kind=kind,
            item_id=item_id,
            network_id=self.session.network_id,
        )

    async def wait(self, handle: TransactionHandle) -> TransactionOutcome:
        """Block until the ledger reports the transaction as included.

        Errors raised while polling propagate and leave the handle pending;
        only a receipt settles it.
        """
        receipt = await self.session.ledger.wait_for_receipt(handle.tx_hash)
        if handle.network_id != self.session.network_id:
            _logger.warning(
                "Transaction %s settled after the session moved networks (%s -> %s)",
                handle.tx_hash,
                handle.network_id,
                self.session.network_id,
            )
        if not receipt.succeeded:
            return self._fail(handle, classify_revert(receipt.revert_reason), receipt)
        handle.settle(TransactionState.CONFIRMED)
        self._invalidate(handle.item_id)
        _logger.info(
            "Transaction confirmed: operation=%s item=%s hash=%s block=%s",
            handle.kind.value,
            handle.item_id,
            handle.tx_hash,
            receipt.block_number,
        )
        return TransactionOutcome(handle=handle, receipt=receipt)

    async def execute(
        self,
        kind: OperationKind,
        args: Mapping[str, object] | None = None,
        value: int = 0,
    ) -> TransactionOutcome:
        """Submit, wait, and raise the classified error if the write failed."""
        handle = await self.submit(kind, args, value)
        outcome = await self.wait(handle)
        outcome.raise_for_failure()
        return outcome

    async def mint(  # noqa: PLR0913
        self,
        *,
        owner: str,
        description: str,
        materials: str,
        creator_details: str,
        content_locator: str,
        initial_price: int | None = None,
    ) -> MintResult:
        """Mint the next item and list it when an initial price is given."""
        outcome = await self.execute(
            OperationKind.MINT,
            {
                "owner": owner,
                "description": description,
                "materials": materials,
                "creator_details": creator_details,
                "content_locator": content_locator,
            },
        )
        item_id = _minted_item_id(outcome)
        if item_id is None:
            item_id = await self.session.ledger.total_issued()
            _logger.warning(
                "Mint receipt %s carried no item id; using total issued %s",
                outcome.handle.tx_hash,
                item_id,
            )
        listing = None
        if initial_price is not None and initial_price > 0:
            listing = await self.list_item(item_id, initial_price)
        return MintResult(item_id=item_id, outcome=outcome, listing=listing)

    async def list_item(self, item_id: int, price: int) -> TransactionOutcome:
        """Put an owned item up for sale."""
        return await self.execute(
            OperationKind.LIST, {"item_id": item_id, "price": price}
        )

    async def delist(self, item_id: int) -> TransactionOutcome:
        """Withdraw an owned item from sale."""
        return await self.execute(OperationKind.DELIST, {"item_id": item_id})

    async def purchase(self, item_id: int, payment: int) -> TransactionOutcome:
        """Buy a listed item; the ledger checks the payment against the price."""
        return await self.execute(
            OperationKind.PURCHASE,
            {"item_id": item_id, "payment": payment},
            value=payment,
        )

    async def register_creator(self, identity: str) -> TransactionOutcome:
        """Grant the artisan role to an identity."""
        return await self.execute(
            OperationKind.REGISTER_CREATOR, {"identity": identity}
        )

    async def _prepare(
        self,
        kind: OperationKind,
        args: dict[str, object],
        value: int,
        caller: str,
    ) -> tuple[LedgerCall, int | None]:
        if value < 0:
            raise InvalidArguments("Payment cannot be negative.")
        if kind is OperationKind.MINT:
            return self._prepare_mint(args), None
        if kind is OperationKind.REGISTER_CREATOR:
            identity = _text_arg(args, "identity")
            if not is_address(identity):
                raise InvalidArguments("Please enter a valid address.")
            return LedgerCall(kind=kind, args=(identity,)), None

        item_id = _item_id_arg(args)
        owner = await self.session.ledger.owner_of(item_id)
        if owner is None:
            raise ItemNotFound(item_id)
        if kind is OperationKind.PURCHASE:
            if same_address(owner, caller):
                raise InvalidArguments("You already own this item.")
            payment = _int_arg(args, "payment")
            if payment <= 0 or payment != value:
                raise InvalidArguments("Payment must match the value sent.")
            return LedgerCall(kind=kind, args=(item_id,), value=payment), item_id

        if not same_address(owner, caller):
            raise Unauthorized(
                "Only the owner can change this listing.",
                details={"item_id": item_id, "identity": caller},
            )
        if kind is OperationKind.LIST:
            price = _int_arg(args, "price")
            if price <= 0:
                raise InvalidArguments("Price must be greater than zero.")
            return LedgerCall(kind=kind, args=(item_id, price)), item_id

        sale = await self.session.ledger.sale_state(item_id)
        if not sale.for_sale:
            self._invalidate(item_id)
            raise StaleState(
                f"Item {item_id} is not listed for sale",
                details={"item_id": item_id},
            )
        return LedgerCall(kind=kind, args=(item_id,)), item_id

    def _prepare_mint(self, args: dict[str, object]) -> LedgerCall:
        owner = _text_arg(args, "owner")
        if not is_address(owner):
            raise InvalidArguments("Please enter a valid owner address.")
        content_locator = _text_arg(args, "content_locator")
        if not content_locator:
            raise InvalidArguments("A content locator is required.")
        return LedgerCall(
            kind=OperationKind.MINT,
            args=(
                owner,
                _text_arg(args, "description"),
                _text_arg(args, "materials"),
                _text_arg(args, "creator_details"),
                content_locator,
            ),
        )

    def _fail(
        self,
        handle: TransactionHandle,
        error: MarketError,
        receipt: TransactionReceipt | None,
    ) -> TransactionOutcome:
        handle.settle(TransactionState.FAILED)
        self._invalidate(handle.item_id)
        _logger.warning(
            "Transaction failed: operation=%s item=%s hash=%s reason=%s",
            handle.kind.value,
            handle.item_id,
            handle.tx_hash,
            error.message,
        )
        return TransactionOutcome(handle=handle, receipt=receipt, error=error)

    def _invalidate(self, item_id: int | None) -> None:
        self.aggregator.invalidate(item_id)


def classify_rejection(exc: LedgerRpcError) -> MarketError:
    """Map a signer or ledger rejection onto the error taxonomy."""
    text = f"{exc.message} {exc.data or ''}".lower()
    if exc.code == _USER_REJECTED_CODE or any(m in text for m in _DECLINE_MARKERS):
        return UserDeclined()
    if any(marker in text for marker in _FUNDS_MARKERS):
        return InsufficientFunds()
    if any(marker in text for marker in _ACCESS_MARKERS):
        return Unauthorized(exc.message)
    if exc.code == _EXECUTION_REVERTED_CODE or "revert" in text:
        return StaleState(exc.message, details={"data": exc.data})
    return TransactionFailed(exc.message, details={"code": exc.code})


def classify_revert(reason: str | None) -> MarketError:
    """Map an execution-time revert onto the error taxonomy."""
    if not reason:
        return TransactionFailed("Transaction reverted without a reason")
    lowered = reason.lower()
    if any(marker in lowered for marker in _ACCESS_MARKERS):
        return Unauthorized(reason)
    if any(marker in lowered for marker in _FUNDS_MARKERS):
        return InsufficientFunds()
    return StaleState(reason, details={"reason": reason})


def _text_arg(args: dict[str, object], name: str) -> str:
    value = args.get(name)
    return value.strip() if isinstance(value, str) else ""


def _int_arg(args: dict[str, object], name: str) -> int:
    value = args.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArguments(f"{name} must be an integer amount.")
    return value


def _item_id_arg(args: dict[str, object]) -> int:
    item_id = _int_arg(args, "item_id")
    if item_id < 1:
        raise InvalidArguments("Item ids start at 1.")
    return item_id


def _minted_item_id(outcome: TransactionOutcome) -> int | None:
    return outcome.receipt.item_id if outcome.receipt is not None else None
