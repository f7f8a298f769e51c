"""Admin API endpoints guarded by the administrator role."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request

from artisan_market.api.models import RegisterCreatorRequest
from artisan_market.errors import Unauthorized

if TYPE_CHECKING:
    from artisan_market.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


async def require_admin(request: Request) -> None:
    """Ensure the connected identity holds the administrator role."""
    container: AppContainer = request.app.state.container
    await container.session.settled()
    container.session.require_identity()
    if not container.session.snapshot().flags.is_admin:
        raise Unauthorized("Only administrators can manage artisans.")


@router.get("/creators", dependencies=[Depends(require_admin)])
async def list_creators(request: Request) -> dict[str, object]:
    """Return registered artisans that still hold the role."""
    container: AppContainer = request.app.state.container
    registrations = await container.creator_registry.list_creators()
    return {
        "creators": [
            {
                "address": registration.address,
                "block_number": registration.block_number,
            }
            for registration in registrations
        ]
    }


@router.post("/creators", dependencies=[Depends(require_admin)])
async def register_creator(
    payload: RegisterCreatorRequest, request: Request
) -> dict[str, object]:
    """Register an artisan; re-registering is reported as already registered."""
    container: AppContainer = request.app.state.container
    outcome = await container.creator_registry.register(payload.address)
    if outcome is None:
        return {"address": payload.address, "status": "already_registered"}
    return {
        "address": payload.address,
        "status": "registered",
        "hash": outcome.handle.tx_hash,
    }
