"""Item domain models."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

BASE_UNIT_DECIMALS = 18
_BASE_UNIT_SCALE = Decimal(10) ** BASE_UNIT_DECIMALS

DEFAULT_DESCRIPTION = "No description"
UNKNOWN_FIELD = "Unknown"


@dataclass(frozen=True)
class SaleState:
    """Listing state as stored on the ledger."""

    for_sale: bool
    price: int


@dataclass(frozen=True)
class OnLedgerMetadata:
    """Descriptive fields written at mint time; immutable afterwards."""

    description: str
    materials: str
    creator_details: str
    created_at: datetime | None


@dataclass(frozen=True)
class ItemRecord:
    """Merged view of an item's ledger state and off-ledger metadata."""

    id: int
    owner: str
    name: str
    description: str
    materials: str
    creator_details: str
    created_at: datetime | None
    image: str
    for_sale: bool
    price: Decimal
    price_base_units: int
    content_locator: str | None
    attributes: tuple[tuple[str, str], ...] = field(default_factory=tuple)
    metadata_resolved: bool = False


def placeholder_name(item_id: int) -> str:
    """Deterministic display name used when metadata cannot be resolved."""
    return f"Artisan NFT #{item_id}"


def to_display_amount(base_units: int) -> Decimal:
    """Convert a base-unit amount to its decimal display value."""
    if base_units < 0:
        raise ValueError("amount must be non-negative")
    amount = (Decimal(base_units) / _BASE_UNIT_SCALE).normalize()
    if amount == amount.to_integral_value():
        return amount.quantize(Decimal(1))
    return amount


def to_base_units(amount: Decimal | str | int) -> int:
    """Convert a display amount to base units, rejecting sub-unit precision."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {amount!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"invalid amount: {amount!r}")
    scaled = value * _BASE_UNIT_SCALE
    if scaled != scaled.to_integral_value():
        raise ValueError(f"amount has more than {BASE_UNIT_DECIMALS} decimals")
    return int(scaled)
