"""Publishing new items: upload content, then mint."""

import logging
from dataclasses import dataclass

from artisan_market.domain.transactions import MintResult, OperationKind
from artisan_market.errors import InvalidArguments, Unauthorized
from artisan_market.services.session import LedgerSession
from artisan_market.services.transactions import TransactionOrchestrator
from artisan_market.services.uploads import MetadataUploader, content_locator

_logger = logging.getLogger(__name__)


@dataclass
class MintingService:
    """Uploads an image and its metadata, then mints an item pointing at them."""

    session: LedgerSession
    uploader: MetadataUploader
    orchestrator: TransactionOrchestrator

    async def publish(  # noqa: PLR0913
        self,
        *,
        name: str,
        description: str,
        materials: str,
        creator_details: str,
        image: bytes,
        initial_price: int | None = None,
    ) -> MintResult:
        """Publish a new item owned by the connected identity."""
        await self.session.settled()
        owner = self.session.require_identity()
        if not self.session.permits(OperationKind.MINT):
            raise Unauthorized("Only registered artisans can mint items.")
        if not name.strip():
            raise InvalidArguments("A name is required.")
        if not image:
            raise InvalidArguments("Please select an image file.")

        image_cid = await self.uploader.upload_blob(image)
        descriptor = self.uploader.describe(
            name=name.strip(),
            description=description,
            image=content_locator(image_cid),
            materials=materials,
            creator_details=creator_details,
        )
        metadata_cid = await self.uploader.upload_metadata(descriptor)
        _logger.info(
            "Publishing item: owner=%s image=%s metadata=%s",
            owner,
            image_cid,
            metadata_cid,
        )
        return await self.orchestrator.mint(
            owner=owner,
            description=description,
            materials=materials,
            creator_details=creator_details,
            content_locator=content_locator(metadata_cid),
            initial_price=initial_price,
        )
