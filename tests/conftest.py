"""Shared test fixtures."""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from artisan_market.adapters.content_store import ContentStore
from artisan_market.adapters.ledger_client import LedgerClient
from artisan_market.adapters.signer_provider import SignerListener, SignerProvider
from artisan_market.config import Settings
from artisan_market.containers import AppContainer, wire_container
from artisan_market.domain.creators import CreatorRegistration
from artisan_market.domain.items import OnLedgerMetadata, SaleState
from artisan_market.domain.transactions import (
    LedgerCall,
    OperationKind,
    TransactionReceipt,
)
from artisan_market.errors import LedgerRpcError, StorageUnavailable

ADMIN = "0xA11CE" + "0" * 34 + "1"
ARTISAN = "0xAbC15" + "0" * 34 + "2"
BUYER = "0xB0B00" + "0" * 34 + "3"
STRANGER = "0x57520" + "0" * 34 + "4"

ADMIN_ROLE_ID = "0x" + "00" * 32
ARTISAN_ROLE_ID = "0x" + "ab" * 32
GATEWAY = "https://gateway.test/ipfs/"
PLACEHOLDER_IMAGE = "https://placeholder.test/nft.png"
MINTED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@dataclass
class FakeToken:
    owner: str
    description: str = ""
    materials: str = ""
    creator_details: str = ""
    locator: str | None = None
    created_at: datetime | None = MINTED_AT
    for_sale: bool = False
    price: int = 0
    history: list[str] = field(default_factory=list)


@dataclass
class FakeLedgerClient(LedgerClient):
    """In-memory ledger that enforces contract rules when a transaction executes."""

    tokens: dict[int, FakeToken] = field(default_factory=dict)
    roles: dict[str, set[str]] = field(
        default_factory=lambda: {ADMIN_ROLE_ID: set(), ARTISAN_ROLE_ID: set()}
    )
    registrations: list[CreatorRegistration] = field(default_factory=list)
    failing_ids: set[int] = field(default_factory=set)
    submit_errors: list[LedgerRpcError] = field(default_factory=list)
    submitted: list[tuple[str, LedgerCall]] = field(default_factory=list)
    pending: dict[str, tuple[str, LedgerCall]] = field(default_factory=dict)
    block_number: int = 100
    role_checks: list[tuple[str, str]] = field(default_factory=list)

    def add_token(self, owner: str, **fields: object) -> int:
        item_id = len(self.tokens) + 1
        self.tokens[item_id] = FakeToken(owner=owner, **fields)
        if not self.tokens[item_id].history:
            self.tokens[item_id].history.append(owner)
        return item_id

    def grant(self, role_id: str, identity: str) -> None:
        self.roles[role_id].add(identity.lower())

    async def total_issued(self) -> int:
        return len(self.tokens)

    async def owner_of(self, item_id: int) -> str | None:
        self._maybe_fail(item_id)
        token = self.tokens.get(item_id)
        return token.owner if token else None

    async def content_locator_of(self, item_id: int) -> str | None:
        self._maybe_fail(item_id)
        return self.tokens[item_id].locator

    async def sale_state(self, item_id: int) -> SaleState:
        self._maybe_fail(item_id)
        token = self.tokens[item_id]
        return SaleState(for_sale=token.for_sale, price=token.price)

    async def on_ledger_metadata(self, item_id: int) -> OnLedgerMetadata:
        self._maybe_fail(item_id)
        token = self.tokens[item_id]
        return OnLedgerMetadata(
            description=token.description,
            materials=token.materials,
            creator_details=token.creator_details,
            created_at=token.created_at,
        )

    async def provenance(self, item_id: int) -> list[str]:
        self._maybe_fail(item_id)
        return list(self.tokens[item_id].history)

    async def role_id(self, role_name: str) -> str:
        return {"DEFAULT_ADMIN_ROLE": ADMIN_ROLE_ID, "ARTISAN_ROLE": ARTISAN_ROLE_ID}[
            role_name
        ]

    async def has_role(self, role_id: str, identity: str) -> bool:
        self.role_checks.append((role_id, identity))
        return identity.lower() in self.roles.get(role_id, set())

    async def creator_registrations(self) -> list[CreatorRegistration]:
        return list(self.registrations)

    async def submit(self, sender: str, call: LedgerCall) -> str:
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        self.submitted.append((sender, call))
        tx_hash = f"0x{len(self.submitted):064x}"
        self.pending[tx_hash] = (sender, call)
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        sender, call = self.pending.pop(tx_hash)
        self.block_number += 1
        issued_before = len(self.tokens)
        reason = self._execute(sender, call)
        minted = len(self.tokens) if len(self.tokens) > issued_before else None
        return TransactionReceipt(
            tx_hash=tx_hash,
            succeeded=reason is None,
            block_number=self.block_number,
            revert_reason=reason,
            item_id=minted,
        )

    def _execute(self, sender: str, call: LedgerCall) -> str | None:  # noqa: PLR0911
        if call.kind is OperationKind.MINT:
            if sender.lower() not in self.roles[ARTISAN_ROLE_ID]:
                return "AccessControl: account is missing role"
            owner, description, materials, creator_details, locator = call.args
            self.add_token(
                str(owner),
                description=str(description),
                materials=str(materials),
                creator_details=str(creator_details),
                locator=str(locator),
            )
            return None
        if call.kind is OperationKind.REGISTER_CREATOR:
            if sender.lower() not in self.roles[ADMIN_ROLE_ID]:
                return "AccessControl: account is missing role"
            identity = str(call.args[0])
            self.grant(ARTISAN_ROLE_ID, identity)
            self.registrations.append(
                CreatorRegistration(address=identity, block_number=self.block_number)
            )
            return None

        token = self.tokens[int(call.args[0])]
        if call.kind is OperationKind.LIST:
            if token.owner.lower() != sender.lower():
                return "Not the owner"
            token.for_sale = True
            token.price = int(call.args[1])
            return None
        if call.kind is OperationKind.DELIST:
            if token.owner.lower() != sender.lower():
                return "Not the owner"
            if not token.for_sale:
                return "NFT is not for sale"
            token.for_sale = False
            return None
        if not token.for_sale:
            return "NFT is not for sale"
        if call.value != token.price:
            return "Incorrect price"
        token.owner = sender
        token.history.append(sender)
        token.for_sale = False
        return None

    def _maybe_fail(self, item_id: int) -> None:
        if item_id in self.failing_ids:
            raise RuntimeError(f"rpc timeout for token {item_id}")


@dataclass
class FakeSignerProvider(SignerProvider):
    """Wallet stand-in that can emit change notifications."""

    identities: list[str] = field(default_factory=lambda: [ARTISAN])
    chain_id: int = 31337
    authorized: bool = False
    decline: bool = False
    listeners: list[SignerListener] = field(default_factory=list)

    async def request_authorization(self) -> list[str]:
        if self.decline:
            raise LedgerRpcError(4001, "User rejected the request.")
        self.authorized = True
        return list(self.identities)

    async def current_identities(self) -> list[str]:
        return list(self.identities) if self.authorized else []

    async def network_id(self) -> int:
        return self.chain_id

    def subscribe(self, listener: SignerListener) -> None:
        self.listeners.append(listener)

    def unsubscribe(self, listener: SignerListener) -> None:
        self.listeners.remove(listener)

    async def emit_identities(self, identities: list[str]) -> None:
        self.identities = identities
        for listener in list(self.listeners):
            await listener.on_identities_changed(identities)

    async def emit_network(self, chain_id: int) -> None:
        self.chain_id = chain_id
        for listener in list(self.listeners):
            await listener.on_network_changed(chain_id)


@dataclass
class FakeContentStore(ContentStore):
    """Content store keeping blobs in memory, addressed by a hash of their bytes."""

    blobs: dict[str, bytes] = field(default_factory=dict)
    available: bool = True
    failing_ids: set[str] = field(default_factory=set)
    fetched: list[str] = field(default_factory=list)

    async def put(self, data: bytes) -> str:
        if not self.available:
            raise StorageUnavailable("Content store rejected the credentials")
        content_id = "Qm" + hashlib.sha256(data).hexdigest()[:44]
        self.blobs[content_id] = data
        return content_id

    async def get(self, url: str) -> bytes:
        self.fetched.append(url)
        content_id = url.removeprefix(GATEWAY)
        if content_id in self.failing_ids or content_id not in self.blobs:
            raise RuntimeError(f"gateway returned 404 for {url}")
        return self.blobs[content_id]

    def add_json(self, payload: object) -> str:
        data = json.dumps(payload).encode()
        content_id = "Qm" + hashlib.sha256(data).hexdigest()[:44]
        self.blobs[content_id] = data
        return content_id


def metadata_document(name: str, image: str, **extra: object) -> dict[str, object]:
    return {
        "name": name,
        "description": extra.get("description", f"{name} from the workshop"),
        "image": image,
        "attributes": [
            {"trait_type": "Materials", "value": extra.get("materials", "Clay")},
            {"trait_type": "Artisan", "value": extra.get("artisan", "Workshop")},
            {"trait_type": "Creation Date", "value": "2024-05-01T12:00:00+00:00"},
        ],
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        contract_address="0x" + "1" * 40,
        ipfs_project_id="project",
        ipfs_project_secret="secret",
        ipfs_gateway_url=GATEWAY,
        placeholder_image_url=PLACEHOLDER_IMAGE,
    )


@pytest.fixture
def ledger() -> FakeLedgerClient:
    ledger = FakeLedgerClient()
    ledger.grant(ADMIN_ROLE_ID, ADMIN)
    ledger.grant(ARTISAN_ROLE_ID, ARTISAN)
    return ledger


@pytest.fixture
def signer() -> FakeSignerProvider:
    return FakeSignerProvider()


@pytest.fixture
def store() -> FakeContentStore:
    return FakeContentStore()


@pytest.fixture
def container(
    settings: Settings,
    ledger: FakeLedgerClient,
    signer: FakeSignerProvider,
    store: FakeContentStore,
) -> AppContainer:
    return wire_container(
        settings=settings,
        ledger_client=ledger,
        signer_provider=signer,
        content_store=store,
    )
