"""Domain models for creator registration."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CreatorRegistration:
    """A creator registration event read from the ledger."""

    address: str
    block_number: int
