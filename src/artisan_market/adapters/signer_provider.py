"""Wallet signer provider client."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from artisan_market.adapters.jsonrpc import JsonRpcTransport, parse_quantity

_logger = logging.getLogger(__name__)


class SignerListener(Protocol):
    """Receives identity and network change notifications."""

    async def on_identities_changed(self, identities: list[str]) -> None:
        """Handle a change in the set of authorized identities."""

    async def on_network_changed(self, network_id: int) -> None:
        """Handle a switch to a different network."""


class SignerProvider(Protocol):
    """Interface for the wallet that authorizes identities and signs."""

    async def request_authorization(self) -> list[str]:
        """Prompt the user to authorize identities and return them."""

    async def current_identities(self) -> list[str]:
        """Return identities already authorized without prompting."""

    async def network_id(self) -> int:
        """Return the network the wallet is connected to."""

    def subscribe(self, listener: SignerListener) -> None:
        """Register a listener for change notifications."""

    def unsubscribe(self, listener: SignerListener) -> None:
        """Remove a previously registered listener."""


@dataclass
class HttpxSignerProvider(SignerProvider):
    """Signer provider speaking wallet JSON-RPC over httpx."""

    transport: JsonRpcTransport
    poll_interval_seconds: float = 2.0
    listeners: list[SignerListener] = field(default_factory=list)
    _last_identities: list[str] | None = None
    _last_network_id: int | None = None

    @classmethod
    def create(
        cls, rpc_url: str, poll_interval_seconds: float = 2.0, timeout: float = 15.0
    ) -> "HttpxSignerProvider":
        """Create a signer provider with a managed httpx session."""
        return cls(
            transport=JsonRpcTransport.create(rpc_url, timeout=timeout),
            poll_interval_seconds=poll_interval_seconds,
        )

    async def request_authorization(self) -> list[str]:
        """Call eth_requestAccounts."""
        result = await self.transport.call("eth_requestAccounts")
        identities = _as_identities(result)
        self._last_identities = identities
        return identities

    async def current_identities(self) -> list[str]:
        """Call eth_accounts."""
        result = await self.transport.call("eth_accounts")
        return _as_identities(result)

    async def network_id(self) -> int:
        """Call eth_chainId."""
        result = await self.transport.call("eth_chainId")
        return parse_quantity(result)

    def subscribe(self, listener: SignerListener) -> None:
        """Register a listener."""
        if listener not in self.listeners:
            self.listeners.append(listener)

    def unsubscribe(self, listener: SignerListener) -> None:
        """Remove a listener."""
        if listener in self.listeners:
            self.listeners.remove(listener)

    async def poll_once(self) -> None:
        """Compare wallet state with the last observation and notify listeners."""
        network_id = await self.network_id()
        identities = await self.current_identities()
        network_changed = (
            self._last_network_id is not None and network_id != self._last_network_id
        )
        identities_changed = (
            self._last_identities is not None and identities != self._last_identities
        )
        self._last_network_id = network_id
        self._last_identities = identities
        if network_changed:
            _logger.info("Signer network changed: network_id=%s", network_id)
            for listener in list(self.listeners):
                await listener.on_network_changed(network_id)
            return
        if identities_changed:
            _logger.info("Signer identities changed: count=%s", len(identities))
            for listener in list(self.listeners):
                await listener.on_identities_changed(identities)

    async def watch(self) -> None:
        """Poll the wallet until cancelled."""
        while True:
            try:
                await self.poll_once()
            except Exception:
                _logger.exception("Signer provider poll failed")
            await asyncio.sleep(self.poll_interval_seconds)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.transport.close()


def _as_identities(result: object) -> list[str]:
    if not isinstance(result, list):
        return []
    return [str(identity) for identity in result if identity]
