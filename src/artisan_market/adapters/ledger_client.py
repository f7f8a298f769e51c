"""Ledger gateway client for the artisan NFT contract."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

import httpx

from artisan_market.adapters.jsonrpc import JsonRpcTransport, parse_quantity
from artisan_market.domain.creators import CreatorRegistration
from artisan_market.domain.items import OnLedgerMetadata, SaleState
from artisan_market.domain.transactions import (
    LedgerCall,
    OperationKind,
    TransactionReceipt,
)
from artisan_market.errors import LedgerRpcError

_logger = logging.getLogger(__name__)

_EXECUTION_REVERTED_CODE = 3
_MISSING_TOKEN_MARKERS = ("invalid token", "nonexistent token")
_TRANSFER_TOPIC = (
    "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
)

_CONTRACT_FUNCTIONS = {
    OperationKind.MINT: "mintNFT",
    OperationKind.LIST: "setNFTForSale",
    OperationKind.DELIST: "removeNFTFromSale",
    OperationKind.PURCHASE: "purchaseNFT",
    OperationKind.REGISTER_CREATOR: "registerArtisan",
}


class LedgerClient(Protocol):
    """Interface for ledger-state reads and transaction submission."""

    async def total_issued(self) -> int:
        """Return the number of items issued so far."""

    async def owner_of(self, item_id: int) -> str | None:
        """Return the owner of an item, or None if it has no owner."""

    async def content_locator_of(self, item_id: int) -> str | None:
        """Return the content locator recorded for an item."""

    async def sale_state(self, item_id: int) -> SaleState:
        """Return the listing state of an item."""

    async def on_ledger_metadata(self, item_id: int) -> OnLedgerMetadata:
        """Return the descriptive fields written at mint time."""

    async def provenance(self, item_id: int) -> list[str]:
        """Return the owners of an item in order of acquisition."""

    async def role_id(self, role_name: str) -> str:
        """Return the identifier of a named access-control role."""

    async def has_role(self, role_id: str, identity: str) -> bool:
        """Return True if the identity holds the role."""

    async def creator_registrations(self) -> list[CreatorRegistration]:
        """Return creator registration events in ledger order."""

    async def submit(self, sender: str, call: LedgerCall) -> str:
        """Sign and broadcast a call from the sender, returning its hash."""

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        """Block until the transaction is included and return its receipt."""


@dataclass
class HttpxLedgerClient(LedgerClient):
    """JSON-RPC ledger client backed by httpx."""

    transport: JsonRpcTransport
    contract_address: str
    poll_interval_seconds: float = 1.0

    @classmethod
    def create(
        cls,
        rpc_url: str,
        contract_address: str,
        poll_interval_seconds: float = 1.0,
        timeout: float = 15.0,
    ) -> "HttpxLedgerClient":
        """Create a ledger client with a managed httpx session."""
        return cls(
            transport=JsonRpcTransport.create(rpc_url, timeout=timeout),
            contract_address=contract_address,
            poll_interval_seconds=poll_interval_seconds,
        )

    async def total_issued(self) -> int:
        """Read totalSupply."""
        result = await self._read("artisan_totalSupply")
        return parse_quantity(result)

    async def owner_of(self, item_id: int) -> str | None:
        """Read ownerOf; null or an ERC-721 revert means the id has no owner."""
        try:
            result = await self._read("artisan_ownerOf", tokenId=item_id)
        except LedgerRpcError as exc:
            if _is_missing_token(exc):
                return None
            raise
        return result if isinstance(result, str) and result else None

    async def content_locator_of(self, item_id: int) -> str | None:
        """Read tokenURI."""
        result = await self._read("artisan_tokenURI", tokenId=item_id)
        return result if isinstance(result, str) and result else None

    async def sale_state(self, item_id: int) -> SaleState:
        """Read isForSale as a (flag, price) pair."""
        result = await self._read("artisan_isForSale", tokenId=item_id)
        if isinstance(result, list | tuple):
            for_sale, price = result[0], result[1]
        elif isinstance(result, dict):
            for_sale, price = result.get("forSale"), result.get("price", 0)
        else:
            raise ValueError(f"Unexpected isForSale result: {result!r}")
        return SaleState(for_sale=bool(for_sale), price=parse_quantity(price))

    async def on_ledger_metadata(self, item_id: int) -> OnLedgerMetadata:
        """Read getItemMetadata."""
        result = await self._read("artisan_getItemMetadata", tokenId=item_id)
        if not isinstance(result, dict):
            raise ValueError(f"Unexpected getItemMetadata result: {result!r}")
        return OnLedgerMetadata(
            description=str(result.get("description") or ""),
            materials=str(result.get("materials") or ""),
            creator_details=str(result.get("artisanDetails") or ""),
            created_at=_parse_timestamp(result.get("creationDate")),
        )

    async def provenance(self, item_id: int) -> list[str]:
        """Read getProvenance, the list of owners from creator onwards."""
        result = await self._read("artisan_getProvenance", tokenId=item_id)
        if not isinstance(result, list):
            raise ValueError(f"Unexpected getProvenance result: {result!r}")
        return [str(owner) for owner in result if owner]

    async def role_id(self, role_name: str) -> str:
        """Read a role identifier constant such as ARTISAN_ROLE."""
        result = await self._read("artisan_roleId", role=role_name)
        return str(result)

    async def has_role(self, role_id: str, identity: str) -> bool:
        """Read hasRole."""
        result = await self._read("artisan_hasRole", role=role_id, account=identity)
        return bool(result)

    async def creator_registrations(self) -> list[CreatorRegistration]:
        """Read ArtisanRegistered events."""
        result = await self._read("artisan_artisanRegistrations")
        events = result if isinstance(result, list) else []
        return [
            CreatorRegistration(
                address=str(event["artisan"]),
                block_number=parse_quantity(event.get("blockNumber", 0)),
            )
            for event in events
            if isinstance(event, dict) and event.get("artisan")
        ]

    async def submit(self, sender: str, call: LedgerCall) -> str:
        """Send a contract transaction through the gateway's signer."""
        result = await self.transport.call(
            "artisan_sendTransaction",
            {
                "contract": self.contract_address,
                "from": sender,
                "function": _CONTRACT_FUNCTIONS[call.kind],
                "args": list(call.args),
                "value": hex(call.value),
            },
        )
        if not isinstance(result, str) or not result:
            raise ValueError(f"Unexpected transaction hash: {result!r}")
        return result

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        """Poll for the receipt until the ledger reports inclusion."""
        while True:
            try:
                result = await self.transport.call(
                    "eth_getTransactionReceipt", [tx_hash]
                )
            except (httpx.TransportError, httpx.HTTPStatusError) as exc:
                if not _is_transient(exc):
                    raise
                _logger.warning("Receipt poll for %s failed: %s", tx_hash, exc)
                await asyncio.sleep(self.poll_interval_seconds)
                continue
            if isinstance(result, dict):
                return TransactionReceipt(
                    tx_hash=tx_hash,
                    succeeded=parse_quantity(result.get("status", "0x0")) == 1,
                    block_number=(
                        parse_quantity(result["blockNumber"])
                        if result.get("blockNumber") is not None
                        else None
                    ),
                    revert_reason=result.get("revertReason"),
                    item_id=_minted_item_id(result),
                )
            await asyncio.sleep(self.poll_interval_seconds)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.transport.close()

    async def _read(self, method: str, **params: object) -> object:
        return await self.transport.call(
            method, {"contract": self.contract_address, **params}
        )


def _parse_timestamp(value: object) -> datetime | None:
    if value in (None, "", 0, "0"):
        return None
    try:
        seconds = parse_quantity(value)
    except ValueError:
        return None
    return datetime.fromtimestamp(seconds, tz=UTC)


def _is_missing_token(exc: LedgerRpcError) -> bool:
    if exc.code == _EXECUTION_REVERTED_CODE:
        return True
    message = exc.message.lower()
    return any(marker in message for marker in _MISSING_TOKEN_MARKERS)


def _is_transient(exc: httpx.HTTPError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return True


def _minted_item_id(receipt: dict) -> int | None:
    """Extract the id of a freshly minted token from a receipt."""
    if receipt.get("tokenId") is not None:
        return parse_quantity(receipt["tokenId"])
    for log in receipt.get("logs") or []:
        topics = log.get("topics") if isinstance(log, dict) else None
        if (
            isinstance(topics, list)
            and len(topics) == 4
            and str(topics[0]).lower() == _TRANSFER_TOPIC
            and int(str(topics[1]), 16) == 0
        ):
            return int(str(topics[3]), 16)
    return None
