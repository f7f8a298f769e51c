"""Administration of the artisan (creator) role."""

import asyncio
import logging
from dataclasses import dataclass

from artisan_market.domain.addresses import is_address
from artisan_market.domain.creators import CreatorRegistration
from artisan_market.domain.transactions import TransactionOutcome
from artisan_market.errors import InvalidArguments
from artisan_market.services.session import ARTISAN_ROLE, LedgerSession
from artisan_market.services.transactions import TransactionOrchestrator

_logger = logging.getLogger(__name__)


@dataclass
class CreatorRegistry:
    """Lists and registers artisans."""

    session: LedgerSession
    orchestrator: TransactionOrchestrator

    async def is_creator(self, identity: str) -> bool:
        """Return True if the identity currently holds the artisan role."""
        role_id = await self.session.ledger.role_id(ARTISAN_ROLE)
        return await self.session.ledger.has_role(role_id, identity)

    async def list_creators(self) -> list[CreatorRegistration]:
        """Return registered artisans that still hold the role, oldest first."""
        registrations = await self.session.ledger.creator_registrations()
        seen: set[str] = set()
        unique: list[CreatorRegistration] = []
        for registration in registrations:
            key = registration.address.lower()
            if key in seen:
                continue
            seen.add(key)
            unique.append(registration)
        role_id = await self.session.ledger.role_id(ARTISAN_ROLE)
        still_held = await asyncio.gather(
            *(
                self.session.ledger.has_role(role_id, registration.address)
                for registration in unique
            )
        )
        return [
            registration
            for registration, held in zip(unique, still_held, strict=True)
            if held
        ]

    async def register(self, identity: str) -> TransactionOutcome | None:
        """Register an artisan; returns None when it was already registered."""
        cleaned = identity.strip()
        if not is_address(cleaned):
            raise InvalidArguments("Please enter a valid address.")
        if await self.is_creator(cleaned):
            _logger.info("Artisan already registered: identity=%s", cleaned)
            return None
        return await self.orchestrator.register_creator(cleaned)
