"""Minimal JSON-RPC 2.0 transport over httpx."""

import itertools
from dataclasses import dataclass, field

import httpx

from artisan_market.errors import LedgerRpcError


@dataclass
class JsonRpcTransport:
    """Posts JSON-RPC requests to a single endpoint."""

    url: str
    http_client: httpx.AsyncClient
    timeout: float = 15.0
    _ids: "itertools.count[int]" = field(default_factory=lambda: itertools.count(1))

    @classmethod
    def create(cls, url: str, timeout: float = 15.0) -> "JsonRpcTransport":
        """Create a transport with a managed httpx session."""
        return cls(url=url, http_client=httpx.AsyncClient(), timeout=timeout)

    async def call(self, method: str, params: object | None = None) -> object:
        """Call a JSON-RPC method and return its result."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params if params is not None else [],
        }
        response = await self.http_client.post(
            self.url, json=payload, timeout=self.timeout
        )
        response.raise_for_status()
        body = response.json()
        error = body.get("error")
        if error:
            raise LedgerRpcError(
                code=int(error.get("code", -32000)),
                message=str(error.get("message", "unknown error")),
                data=error.get("data"),
            )
        return body.get("result")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def parse_quantity(value: object) -> int:
    """Parse an integer quantity sent as int, decimal string or 0x hex."""
    if isinstance(value, bool):
        raise ValueError(f"invalid quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        cleaned = value.strip()
        if cleaned.lower().startswith("0x"):
            return int(cleaned, 16)
        return int(cleaned)
    raise ValueError(f"invalid quantity: {value!r}")
