"""Scan-station router: crates onto a pallet.

Endpoints:
    POST  /api/assign-pallet    Map scanned crate QRs to a pallet QR
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.database import get_db
from mehustaja.deps import get_event_bus
from mehustaja.events.bus import EventBus
from mehustaja.schemas.pallet import AssignPalletRequest, AssignPalletResponse
from mehustaja.services.palletizing import assign_crates_to_pallet

router = APIRouter()


@router.post("/assign-pallet", response_model=AssignPalletResponse)
async def assign_pallet(
    body: AssignPalletRequest,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Assign a batch of crates to one pallet.

    The batch is all-or-nothing.  Crates already on this pallet are
    counted as ``skipped``; QRs that match no crate come back in
    ``unresolved``.  Orders whose last crate lands here become
    ready-for-pickup in the same transaction.
    """
    result = await assign_crates_to_pallet(db, body.pallet_id, body.crate_ids, bus)
    return AssignPalletResponse(
        message="Crates successfully assigned to pallet.",
        pallet_id=result.pallet.id,
        pallet_status=result.pallet.status,
        holding=result.holding,
        assigned=result.assigned,
        skipped=result.skipped,
        unresolved=result.unresolved,
    )
