"""Tests for item aggregation."""

import asyncio
from decimal import Decimal

import pytest

from artisan_market.errors import ItemNotFound
from tests.conftest import (
    ARTISAN,
    BUYER,
    GATEWAY,
    PLACEHOLDER_IMAGE,
    metadata_document,
)

ONE_AND_A_HALF = 1_500_000_000_000_000_000


def _seed(ledger, store) -> None:
    bowl = store.add_json(metadata_document("Glazed Bowl", "ipfs://QmBowlImage"))
    ledger.add_token(
        ARTISAN,
        description="Wheel thrown bowl",
        materials="Stoneware",
        creator_details="Ana",
        locator=f"ipfs://{bowl}",
        for_sale=True,
        price=ONE_AND_A_HALF,
    )
    ledger.add_token(BUYER, locator=None, for_sale=False, price=7)
    scarf = store.add_json(metadata_document("Wool Scarf", "https://img.test/scarf"))
    ledger.add_token(BUYER, locator=f"ipfs://{scarf}", materials="Wool")


def test_list_all_merges_ledger_and_metadata(container, ledger, store) -> None:
    _seed(ledger, store)

    records = asyncio.run(container.aggregator.list_all())

    assert [record.id for record in records] == [1, 2, 3]
    bowl = records[0]
    assert bowl.name == "Glazed Bowl"
    assert bowl.description == "Wheel thrown bowl"
    assert bowl.materials == "Stoneware"
    assert bowl.image == f"{GATEWAY}QmBowlImage"
    assert bowl.for_sale is True
    assert bowl.price == Decimal("1.5")
    assert bowl.price_base_units == ONE_AND_A_HALF
    assert bowl.metadata_resolved is True
    assert records[2].image == "https://img.test/scarf"
    assert records[2].creator_details == "Workshop"


def test_unresolvable_metadata_falls_back_to_placeholders(
    container, ledger, store
) -> None:
    _seed(ledger, store)

    record = asyncio.run(container.aggregator.get(2))

    assert record.name == "Artisan NFT #2"
    assert record.image == PLACEHOLDER_IMAGE
    assert record.description == "No description"
    assert record.materials == "Unknown"
    assert record.creator_details == "Unknown"
    assert record.metadata_resolved is False


def test_price_is_zero_when_not_for_sale(container, ledger, store) -> None:
    _seed(ledger, store)

    record = asyncio.run(container.aggregator.get(2))

    assert record.for_sale is False
    assert record.price == Decimal("0")
    assert record.price_base_units == 0


def test_failed_metadata_fetch_does_not_drop_item(container, ledger, store) -> None:
    _seed(ledger, store)
    store.failing_ids.update(store.blobs)

    records = asyncio.run(container.aggregator.list_all())

    assert [record.id for record in records] == [1, 2, 3]
    assert records[0].name == "Artisan NFT #1"
    assert records[0].image == PLACEHOLDER_IMAGE
    assert records[0].description == "Wheel thrown bowl"


def test_failed_ledger_reads_drop_only_that_item(container, ledger, store) -> None:
    _seed(ledger, store)
    ledger.failing_ids.add(2)

    records = asyncio.run(container.aggregator.list_all())

    assert [record.id for record in records] == [1, 3]


def test_list_all_with_no_items(container) -> None:
    assert asyncio.run(container.aggregator.list_all()) == []
    assert container.aggregator.snapshot == []


def test_get_matches_list_entry(container, ledger, store) -> None:
    _seed(ledger, store)

    records = asyncio.run(container.aggregator.list_all())
    single = asyncio.run(container.aggregator.get(3))

    assert single == records[2]


def test_repeated_reads_are_equal(container, ledger, store) -> None:
    _seed(ledger, store)

    first = asyncio.run(container.aggregator.list_all())
    second = asyncio.run(container.aggregator.list_all())

    assert first == second


@pytest.mark.parametrize("item_id", [0, 99])
def test_get_missing_item_raises_not_found(container, ledger, store, item_id) -> None:
    _seed(ledger, store)

    with pytest.raises(ItemNotFound):
        asyncio.run(container.aggregator.get(item_id))
    assert asyncio.run(container.aggregator.find(item_id)) is None


def test_filters_by_owner_and_sale_state(container, ledger, store) -> None:
    _seed(ledger, store)

    owned = asyncio.run(container.aggregator.list_owned_by(BUYER.lower()))
    for_sale = asyncio.run(container.aggregator.list_for_sale())

    assert [record.id for record in owned] == [2, 3]
    assert [record.id for record in for_sale] == [1]


def test_invalidate_drops_snapshot_entries(container, ledger, store) -> None:
    _seed(ledger, store)
    asyncio.run(container.aggregator.list_all())

    container.aggregator.invalidate(2)
    assert [record.id for record in container.aggregator.snapshot] == [1, 3]

    container.aggregator.invalidate()
    assert container.aggregator.snapshot == []


def test_provenance_follows_ownership(container, ledger, store) -> None:
    _seed(ledger, store)
    ledger.tokens[1].owner = BUYER
    ledger.tokens[1].history.append(BUYER)

    assert asyncio.run(container.aggregator.provenance(1)) == [ARTISAN, BUYER]
    assert asyncio.run(container.aggregator.provenance(2)) == [BUYER]


@pytest.mark.parametrize("item_id", [0, 99])
def test_provenance_of_missing_item_raises_not_found(
    container, ledger, store, item_id
) -> None:
    _seed(ledger, store)

    with pytest.raises(ItemNotFound):
        asyncio.run(container.aggregator.provenance(item_id))
