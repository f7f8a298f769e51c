"""Uploads of images and metadata documents to the content store."""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from artisan_market.adapters.content_store import ContentStore
from artisan_market.domain.metadata import MetadataDescriptor, build_descriptor
from artisan_market.errors import StorageUnavailable

_logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def content_locator(content_id: str) -> str:
    """Return the ipfs:// locator for a content identifier."""
    return f"ipfs://{content_id}"


@dataclass
class MetadataUploader:
    """Writes blobs and canonical metadata documents."""

    store: ContentStore
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def upload_blob(self, data: bytes) -> str:
        """Store raw bytes and return the content identifier."""
        if not data:
            raise ValueError("Cannot upload an empty blob")
        try:
            content_id = await self.store.put(data)
        except StorageUnavailable:
            _logger.error("Blob upload failed: size=%s", len(data))
            raise
        _logger.info("Uploaded blob: cid=%s size=%s", content_id, len(data))
        return content_id

    async def upload_metadata(self, descriptor: MetadataDescriptor) -> str:
        """Serialize a descriptor to JSON, store it and return its content id."""
        document = json.dumps(descriptor.to_payload(), ensure_ascii=False)
        content_id = await self.upload_blob(document.encode("utf-8"))
        _logger.info("Uploaded metadata: cid=%s name=%s", content_id, descriptor.name)
        return content_id

    def describe(
        self,
        *,
        name: str,
        description: str,
        image: str,
        materials: str,
        creator_details: str,
    ) -> MetadataDescriptor:
        """Build a descriptor stamped with the current upload time."""
        return build_descriptor(
            name=name,
            description=description,
            image=image,
            materials=materials,
            creator_details=creator_details,
            created_at=self.clock(),
        )
