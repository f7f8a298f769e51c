"""Domain models for the ledger session."""

from dataclasses import dataclass
from enum import Enum


class Connectivity(str, Enum):
    """Connection state of the ledger session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class AuthorizationFlags:
    """Role membership derived for the current identity."""

    is_admin: bool = False
    is_artisan: bool = False


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session for callers outside the session service."""

    identity: str | None
    flags: AuthorizationFlags
    connectivity: Connectivity
    network_id: int | None
    error: str | None
