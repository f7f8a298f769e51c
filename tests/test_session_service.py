"""Tests for the ledger session."""

import asyncio

from artisan_market.domain.session import Connectivity
from artisan_market.domain.transactions import OperationKind
from artisan_market.services.session import LedgerSession
from tests.conftest import (
    ADMIN,
    ARTISAN,
    BUYER,
    FakeLedgerClient,
    FakeSignerProvider,
)


def test_connect_binds_first_identity_and_derives_flags(ledger, signer) -> None:
    session = LedgerSession(ledger=ledger, provider=signer)
    session.attach()

    connected = asyncio.run(session.connect())

    snapshot = session.snapshot()
    assert connected is True
    assert snapshot.identity == ARTISAN
    assert snapshot.connectivity is Connectivity.CONNECTED
    assert snapshot.flags.is_artisan is True
    assert snapshot.flags.is_admin is False
    assert snapshot.network_id == 31337
    assert session.permits(OperationKind.MINT)
    assert not session.permits(OperationKind.REGISTER_CREATOR)
    assert session.binding is not None


def test_connect_without_provider_is_read_only(ledger) -> None:
    session = LedgerSession(ledger=ledger)
    session.attach()

    connected = asyncio.run(session.connect())

    assert connected is False
    assert session.binding is None
    assert session.error == "No wallet provider detected. Browsing is read-only."


def test_connect_declined_reports_user_message(ledger) -> None:
    signer = FakeSignerProvider(decline=True)
    session = LedgerSession(ledger=ledger, provider=signer)

    connected = asyncio.run(session.connect())

    assert connected is False
    assert session.connectivity is Connectivity.DISCONNECTED
    assert session.error == "The request was declined in your wallet."


def test_failed_reconnect_keeps_existing_binding(ledger, signer) -> None:
    session = LedgerSession(ledger=ledger, provider=signer)
    assert asyncio.run(session.connect()) is True
    signer.decline = True

    connected = asyncio.run(session.connect())

    assert connected is False
    assert session.connectivity is Connectivity.CONNECTED
    assert session.identity == ARTISAN
    assert session.flags.is_artisan is True
    assert session.binding is not None
    assert session.error == "The request was declined in your wallet."


def test_connect_with_no_identities(ledger) -> None:
    signer = FakeSignerProvider(identities=[])
    session = LedgerSession(ledger=ledger, provider=signer)

    connected = asyncio.run(session.connect())

    assert connected is False
    assert session.identity is None
    assert session.error is not None


def test_restore_uses_existing_authorization(ledger) -> None:
    signer = FakeSignerProvider(identities=[ADMIN], authorized=True)
    session = LedgerSession(ledger=ledger, provider=signer)

    restored = asyncio.run(session.restore())

    assert restored is True
    assert session.flags.is_admin is True
    assert session.permits(OperationKind.REGISTER_CREATOR)


def test_restore_without_authorization_stays_disconnected(ledger, signer) -> None:
    session = LedgerSession(ledger=ledger, provider=signer)

    restored = asyncio.run(session.restore())

    assert restored is False
    assert session.connectivity is Connectivity.DISCONNECTED
    assert session.network_id == 31337


def test_identity_change_recomputes_flags(ledger, signer) -> None:
    session = LedgerSession(ledger=ledger, provider=signer)
    session.attach()

    async def run() -> None:
        await session.connect()
        await signer.emit_identities([BUYER])

    asyncio.run(run())

    assert session.identity == BUYER
    assert session.flags.is_artisan is False
    assert not session.permits(OperationKind.MINT)
    assert session.permits(OperationKind.PURCHASE)


def test_identity_change_with_empty_list_disconnects(ledger, signer) -> None:
    session = LedgerSession(ledger=ledger, provider=signer)
    session.attach()

    async def run() -> None:
        await session.connect()
        await signer.emit_identities([])

    asyncio.run(run())

    assert session.connectivity is Connectivity.DISCONNECTED
    assert session.binding is None
    assert session.permissions == frozenset()


def test_identity_change_ignored_while_disconnected(ledger, signer) -> None:
    session = LedgerSession(ledger=ledger, provider=signer)
    session.attach()

    asyncio.run(signer.emit_identities([BUYER]))

    assert session.identity is None
    assert session.connectivity is Connectivity.DISCONNECTED


def test_network_change_resets_and_restores(ledger, signer) -> None:
    session = LedgerSession(ledger=ledger, provider=signer)
    session.attach()
    resets: list[str] = []
    session.add_reset_listener(lambda: resets.append("reset"))

    async def run() -> None:
        await session.connect()
        await signer.emit_network(5)

    asyncio.run(run())

    assert resets == ["reset"]
    assert session.network_id == 5
    assert session.identity == ARTISAN
    assert session.connectivity is Connectivity.CONNECTED


def test_reads_wait_for_identity_change_to_settle(ledger, signer) -> None:
    """A read issued during an identity switch observes the new flags."""
    gate = asyncio.Event()

    class SlowRoleLedger(FakeLedgerClient):
        async def has_role(self, role_id: str, identity: str) -> bool:
            if identity == BUYER:
                await gate.wait()
            return await super().has_role(role_id, identity)

    slow = SlowRoleLedger(roles=ledger.roles)
    session = LedgerSession(ledger=slow, provider=signer)
    session.attach()
    observed: list[tuple[str | None, bool]] = []

    async def reader() -> None:
        await session.settled()
        observed.append((session.identity, session.flags.is_artisan))

    async def run() -> None:
        await session.connect()
        assert session.flags.is_artisan is True
        change = asyncio.create_task(signer.emit_identities([BUYER]))
        await asyncio.sleep(0)
        read = asyncio.create_task(reader())
        await asyncio.sleep(0)
        assert observed == []
        gate.set()
        await asyncio.gather(change, read)

    asyncio.run(run())

    assert observed == [(BUYER, False)]


def test_role_lookup_failure_yields_no_privileges(signer) -> None:
    class BrokenRoles(FakeLedgerClient):
        async def role_id(self, role_name: str) -> str:
            raise RuntimeError("gateway down")

    session = LedgerSession(ledger=BrokenRoles(), provider=signer)

    connected = asyncio.run(session.connect())

    assert connected is True
    assert session.flags.is_admin is False
    assert session.flags.is_artisan is False
    assert not session.permits(OperationKind.MINT)


def test_disconnect_clears_identity(ledger, signer) -> None:
    session = LedgerSession(ledger=ledger, provider=signer)
    asyncio.run(session.connect())

    session.disconnect()

    assert session.binding is None
    assert session.snapshot().flags.is_artisan is False
