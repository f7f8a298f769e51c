"""Domain models for ledger transactions."""

from dataclasses import dataclass
from enum import Enum

from artisan_market.errors import MarketError


class OperationKind(str, Enum):
    """State-changing operations supported by the orchestrator."""

    MINT = "mint"
    LIST = "list"
    DELIST = "delist"
    PURCHASE = "purchase"
    REGISTER_CREATOR = "register_creator"


class TransactionState(str, Enum):
    """Lifecycle state of a submitted transaction."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class LedgerCall:
    """A contract call ready to be signed and submitted."""

    kind: OperationKind
    args: tuple[object, ...]
    value: int = 0


@dataclass(frozen=True)
class TransactionReceipt:
    """Inclusion result reported by the ledger."""

    tx_hash: str
    succeeded: bool
    block_number: int | None = None
    revert_reason: str | None = None
    item_id: int | None = None


@dataclass
class TransactionHandle:
    """Tracks a submitted transaction until it reaches a terminal state."""

    tx_hash: str
    kind: OperationKind
    item_id: int | None = None
    network_id: int | None = None
    state: TransactionState = TransactionState.PENDING

    def settle(self, state: TransactionState) -> None:
        """Move from pending to a terminal state exactly once."""
        if self.state is not TransactionState.PENDING:
            raise RuntimeError(
                f"Transaction {self.tx_hash} already settled as {self.state.value}"
            )
        if state is TransactionState.PENDING:
            raise ValueError("Cannot settle a transaction back to pending")
        self.state = state


@dataclass(frozen=True)
class TransactionOutcome:
    """Terminal result of awaiting a transaction handle."""

    handle: TransactionHandle
    receipt: TransactionReceipt | None = None
    error: MarketError | None = None

    @property
    def confirmed(self) -> bool:
        return self.handle.state is TransactionState.CONFIRMED

    def raise_for_failure(self) -> None:
        """Raise the classified failure if the transaction did not confirm."""
        if self.error is not None:
            raise self.error


@dataclass(frozen=True)
class MintResult:
    """Outcome of a mint, plus the optional listing chained after it."""

    item_id: int
    outcome: TransactionOutcome
    listing: TransactionOutcome | None = None
