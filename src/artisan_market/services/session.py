"""Ledger session: connected identity, role flags and signer notifications."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from artisan_market.adapters.ledger_client import LedgerClient
from artisan_market.adapters.signer_provider import SignerProvider
from artisan_market.domain.session import (
    AuthorizationFlags,
    Connectivity,
    SessionSnapshot,
)
from artisan_market.domain.transactions import LedgerCall, OperationKind
from artisan_market.errors import (
    LedgerRpcError,
    NotConnected,
    ProviderUnavailable,
    UserDeclined,
)

ADMIN_ROLE = "DEFAULT_ADMIN_ROLE"
ARTISAN_ROLE = "ARTISAN_ROLE"
_USER_REJECTED_CODE = 4001

_logger = logging.getLogger(__name__)

_AUTHORIZATION_RULES: dict[OperationKind, Callable[[AuthorizationFlags], bool]] = {
    OperationKind.MINT: lambda flags: flags.is_artisan,
    OperationKind.REGISTER_CREATOR: lambda flags: flags.is_admin,
    OperationKind.LIST: lambda flags: True,
    OperationKind.DELIST: lambda flags: True,
    OperationKind.PURCHASE: lambda flags: True,
}


@dataclass(frozen=True)
class LedgerBinding:
    """Ledger handle bound to the identity that signs its writes."""

    identity: str
    ledger: LedgerClient

    async def submit(self, call: LedgerCall) -> str:
        """Submit a call signed by the bound identity."""
        return await self.ledger.submit(self.identity, call)


@dataclass
class LedgerSession:
    """Process-wide session state.

    Only the connect, disconnect and notification handlers mutate identity
    and flags. Everything else reads them through ``snapshot`` or ``binding``
    after awaiting ``settled``.
    """

    ledger: LedgerClient
    provider: SignerProvider | None = None
    identity: str | None = None
    flags: AuthorizationFlags = field(default_factory=AuthorizationFlags)
    connectivity: Connectivity = Connectivity.DISCONNECTED
    network_id: int | None = None
    error: str | None = None
    permissions: frozenset[OperationKind] = frozenset()
    _role_ids: dict[str, str] = field(default_factory=dict)
    _reset_listeners: list[Callable[[], None]] = field(default_factory=list)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def attach(self) -> None:
        """Subscribe to signer notifications."""
        if self.provider is None:
            self.error = ProviderUnavailable().user_message
            _logger.warning("No signer provider configured; running read-only")
            return
        self.provider.subscribe(self)

    def detach(self) -> None:
        """Unsubscribe from signer notifications."""
        if self.provider is not None:
            self.provider.unsubscribe(self)

    def add_reset_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback run whenever the session is torn down."""
        self._reset_listeners.append(listener)

    @property
    def binding(self) -> LedgerBinding | None:
        """Ledger handle for the connected identity, if any."""
        if self.connectivity is not Connectivity.CONNECTED or self.identity is None:
            return None
        return LedgerBinding(identity=self.identity, ledger=self.ledger)

    def require_identity(self) -> str:
        """Return the connected identity or raise NotConnected."""
        if self.connectivity is not Connectivity.CONNECTED or self.identity is None:
            raise NotConnected()
        return self.identity

    def permits(self, kind: OperationKind) -> bool:
        """Consult the authorization table evaluated for the current identity."""
        return kind in self.permissions

    def snapshot(self) -> SessionSnapshot:
        """Return a read-only copy of the session state."""
        return SessionSnapshot(
            identity=self.identity,
            flags=self.flags,
            connectivity=self.connectivity,
            network_id=self.network_id,
            error=self.error,
        )

    async def settled(self) -> None:
        """Wait for any in-progress identity or role refresh to finish."""
        async with self._lock:
            return

    async def connect(self) -> bool:
        """Request authorization from the signer and bind the first identity."""
        if self.provider is None:
            self.error = ProviderUnavailable().user_message
            return False
        async with self._lock:
            was_connected = (
                self.connectivity is Connectivity.CONNECTED
                and self.identity is not None
            )
            self.connectivity = Connectivity.CONNECTING
            self.error = None
            try:
                identities = await self.provider.request_authorization()
                network_id = await self.provider.network_id()
            except LedgerRpcError as exc:
                declined = exc.code == _USER_REJECTED_CODE
                self._abandon_connect(was_connected)
                self.error = UserDeclined().user_message if declined else exc.message
                _logger.warning("Connect failed: code=%s message=%s", exc.code, exc)
                return False
            except Exception as exc:
                self._abandon_connect(was_connected)
                self.error = str(exc)
                _logger.exception("Connect failed")
                return False
            if not identities:
                self._abandon_connect(was_connected)
                self.error = "No identities found. Please unlock your wallet."
                return False
            self.network_id = network_id
            await self._bind(identities[0])
            return True

    async def restore(self) -> bool:
        """Rebind to an identity the signer already authorized, without prompting."""
        if self.provider is None:
            self.error = ProviderUnavailable().user_message
            return False
        async with self._lock:
            try:
                network_id = await self.provider.network_id()
                identities = await self.provider.current_identities()
            except Exception as exc:
                self.error = str(exc)
                _logger.exception("Session restore failed")
                return False
            self.network_id = network_id
            if not identities:
                return False
            await self._bind(identities[0])
            return True

    def disconnect(self) -> None:
        """Forget the identity locally; provider-level authorization is left as is."""
        _logger.info("Session disconnected: identity=%s", self.identity)
        self._clear()
        self.error = None

    async def on_identities_changed(self, identities: list[str]) -> None:
        """Re-derive the session for a new identity, or clear it."""
        async with self._lock:
            if not identities:
                _logger.info("Signer reports no authorized identities")
                self._clear()
                return
            if self.connectivity is Connectivity.DISCONNECTED:
                return
            await self._bind(identities[0])

    async def on_network_changed(self, network_id: int) -> None:
        """Tear the session down and rebuild it against the new network."""
        _logger.warning(
            "Network changed: old=%s new=%s; rebuilding session",
            self.network_id,
            network_id,
        )
        async with self._lock:
            self._clear()
            self._role_ids.clear()
            self.network_id = network_id
            for listener in list(self._reset_listeners):
                listener()
        await self.restore()

    async def _bind(self, identity: str) -> None:
        self.identity = identity
        self.flags = await self._derive_flags(identity)
        self.permissions = frozenset(
            kind for kind, rule in _AUTHORIZATION_RULES.items() if rule(self.flags)
        )
        self.connectivity = Connectivity.CONNECTED
        self.error = None
        _logger.info(
            "Session connected: identity=%s admin=%s artisan=%s",
            identity,
            self.flags.is_admin,
            self.flags.is_artisan,
        )

    async def _derive_flags(self, identity: str) -> AuthorizationFlags:
        try:
            admin_role, artisan_role = await asyncio.gather(
                self._role_id(ADMIN_ROLE), self._role_id(ARTISAN_ROLE)
            )
            is_admin, is_artisan = await asyncio.gather(
                self.ledger.has_role(admin_role, identity),
                self.ledger.has_role(artisan_role, identity),
            )
        except Exception:
            _logger.exception("Role lookup failed: identity=%s", identity)
            return AuthorizationFlags()
        return AuthorizationFlags(is_admin=is_admin, is_artisan=is_artisan)

    async def _role_id(self, role_name: str) -> str:
        cached = self._role_ids.get(role_name)
        if cached is not None:
            return cached
        role_id = await self.ledger.role_id(role_name)
        self._role_ids[role_name] = role_id
        return role_id

    def _clear(self) -> None:
        self.identity = None
        self.flags = AuthorizationFlags()
        self.permissions = frozenset()
        self.connectivity = Connectivity.DISCONNECTED

    def _abandon_connect(self, was_connected: bool) -> None:
        """Undo a failed connect; an existing binding survives it."""
        if was_connected:
            self.connectivity = Connectivity.CONNECTED
        else:
            self._clear()
