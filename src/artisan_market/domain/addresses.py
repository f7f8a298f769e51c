"""Ledger address helpers."""

import re

_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_address(value: str | None) -> bool:
    """Return True if the value looks like a 20-byte hex address."""
    return bool(value) and bool(_ADDRESS_PATTERN.match(value.strip()))


def same_address(left: str | None, right: str | None) -> bool:
    """Compare two addresses ignoring case."""
    if not left or not right:
        return False
    return left.strip().lower() == right.strip().lower()
