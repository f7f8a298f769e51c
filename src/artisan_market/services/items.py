"""Aggregation of on-ledger state and off-ledger metadata into item records."""

import asyncio
import logging
from dataclasses import dataclass, field

from artisan_market.adapters.ledger_client import LedgerClient
from artisan_market.domain.addresses import same_address
from artisan_market.domain.items import (
    DEFAULT_DESCRIPTION,
    UNKNOWN_FIELD,
    ItemRecord,
    OnLedgerMetadata,
    SaleState,
    placeholder_name,
    to_display_amount,
)
from artisan_market.domain.metadata import (
    CREATOR_TRAIT,
    MATERIALS_TRAIT,
    MetadataDescriptor,
)
from artisan_market.errors import ItemNotFound
from artisan_market.services.content import ContentResolver
from artisan_market.services.session import LedgerSession

_logger = logging.getLogger(__name__)


@dataclass
class ItemAggregator:
    """Builds merged item records; each pass is a fresh snapshot."""

    session: LedgerSession
    resolver: ContentResolver
    placeholder_image: str
    snapshot: list[ItemRecord] = field(default_factory=list)

    @property
    def ledger(self) -> LedgerClient:
        return self.session.ledger

    async def list_all(self) -> list[ItemRecord]:
        """Fetch every issued item in parallel, dropping ids that fail."""
        await self.session.settled()
        total = await self.ledger.total_issued()
        if total <= 0:
            self.snapshot = []
            return []
        item_ids = range(1, total + 1)
        results = await asyncio.gather(
            *(self._fetch(item_id) for item_id in item_ids),
            return_exceptions=True,
        )
        records: list[ItemRecord] = []
        for item_id, result in zip(item_ids, results, strict=True):
            if isinstance(result, ItemRecord):
                records.append(result)
                continue
            if not isinstance(result, Exception):
                raise result
            _logger.warning("Dropping item %s from listing: %r", item_id, result)
        records.sort(key=lambda record: record.id)
        self.snapshot = records
        return records

    async def get(self, item_id: int) -> ItemRecord:
        """Fetch one item; raises ItemNotFound if the ledger reports no owner."""
        await self.session.settled()
        if item_id < 1:
            raise ItemNotFound(item_id)
        return await self._fetch(item_id)

    async def find(self, item_id: int) -> ItemRecord | None:
        """Fetch one item, returning None when it does not exist."""
        try:
            return await self.get(item_id)
        except ItemNotFound:
            return None

    async def provenance(self, item_id: int) -> list[str]:
        """Return the item's owners from its creator to the current holder."""
        await self.session.settled()
        if item_id < 1 or await self.ledger.owner_of(item_id) is None:
            raise ItemNotFound(item_id)
        return await self.ledger.provenance(item_id)

    async def list_owned_by(self, identity: str) -> list[ItemRecord]:
        """Return the listing filtered to items owned by the identity."""
        records = await self.list_all()
        return [record for record in records if same_address(record.owner, identity)]

    async def list_for_sale(self) -> list[ItemRecord]:
        """Return the listing filtered to items currently for sale."""
        records = await self.list_all()
        return [record for record in records if record.for_sale]

    def invalidate(self, item_id: int | None = None) -> None:
        """Drop one item, or the whole snapshot, from the last fetch."""
        if item_id is None:
            self.snapshot = []
            return
        self.snapshot = [record for record in self.snapshot if record.id != item_id]

    async def _fetch(self, item_id: int) -> ItemRecord:
        owner = await self.ledger.owner_of(item_id)
        if owner is None:
            raise ItemNotFound(item_id)
        sale, ledger_metadata, (locator, descriptor) = await asyncio.gather(
            self.ledger.sale_state(item_id),
            self.ledger.on_ledger_metadata(item_id),
            self._fetch_document(item_id),
        )
        return _merge(
            item_id=item_id,
            owner=owner,
            sale=sale,
            ledger_metadata=ledger_metadata,
            locator=locator,
            descriptor=descriptor,
            image=self._display_image(descriptor),
        )

    async def _fetch_document(
        self, item_id: int
    ) -> tuple[str | None, MetadataDescriptor | None]:
        locator = await self.ledger.content_locator_of(item_id)
        payload = await self.resolver.fetch_json(locator)
        if payload is None:
            _logger.info("Using placeholder metadata for item %s", item_id)
            return locator, None
        return locator, MetadataDescriptor.from_payload(payload)

    def _display_image(self, descriptor: MetadataDescriptor | None) -> str:
        if descriptor is None:
            return self.placeholder_image
        return self.resolver.resolve(descriptor.image) or self.placeholder_image


def _merge(  # noqa: PLR0913
    *,
    item_id: int,
    owner: str,
    sale: SaleState,
    ledger_metadata: OnLedgerMetadata,
    locator: str | None,
    descriptor: MetadataDescriptor | None,
    image: str,
) -> ItemRecord:
    """Combine ledger fields and metadata; ledger descriptive fields win."""
    off_ledger_description = descriptor.description if descriptor else ""
    off_ledger_materials = descriptor.attribute(MATERIALS_TRAIT) if descriptor else None
    off_ledger_creator = descriptor.attribute(CREATOR_TRAIT) if descriptor else None
    price_base_units = sale.price if sale.for_sale else 0
    return ItemRecord(
        id=item_id,
        owner=owner,
        name=(descriptor.name if descriptor and descriptor.name else None)
        or placeholder_name(item_id),
        description=ledger_metadata.description
        or off_ledger_description
        or DEFAULT_DESCRIPTION,
        materials=ledger_metadata.materials or off_ledger_materials or UNKNOWN_FIELD,
        creator_details=ledger_metadata.creator_details
        or off_ledger_creator
        or UNKNOWN_FIELD,
        created_at=ledger_metadata.created_at,
        image=image,
        for_sale=sale.for_sale,
        price=to_display_amount(price_base_units),
        price_base_units=price_base_units,
        content_locator=locator,
        attributes=tuple(
            (attribute.trait, attribute.value) for attribute in descriptor.attributes
        )
        if descriptor
        else (),
        metadata_resolved=descriptor is not None,
    )
