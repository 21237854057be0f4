"""Crate router.

Endpoints:
    GET   /api/crates/{crate_ref}      Crate detail (QR payload or id)
    PATCH /api/crates/{crate_ref}      Correct the pouch count of a crate
    GET   /api/crates/{crate_ref}/qr   QR code SVG for the crate label
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mehustaja.config import settings
from mehustaja.database import get_db
from mehustaja.middleware.exceptions import ConflictError, ResourceNotFoundError
from mehustaja.models.crate import Crate
from mehustaja.models.order import OrderStatus
from mehustaja.models.pallet import Pallet, PalletCrateMapping
from mehustaja.schemas.order import CrateDetail, CrateOut, CrateUpdate, OrderSummary
from mehustaja.services.uow import unit_of_work
from mehustaja.utils.qr import render_svg

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_crate(db: AsyncSession, crate_ref: str, for_update: bool = False) -> Crate:
    stmt = (
        select(Crate)
        .where(or_(Crate.qr_code == crate_ref, Crate.id == crate_ref))
        .options(selectinload(Crate.order))
    )
    if for_update:
        stmt = stmt.with_for_update()
    crate = (await db.execute(stmt)).scalar_one_or_none()
    if crate is None:
        raise ResourceNotFoundError("Crate", crate_ref)
    return crate


@router.get("/{crate_ref}", response_model=CrateDetail)
async def get_crate(crate_ref: str, db: AsyncSession = Depends(get_db)):
    crate = await _get_crate(db, crate_ref)
    pallet = (
        await db.execute(
            select(Pallet)
            .join(PalletCrateMapping, PalletCrateMapping.pallet_id == Pallet.id)
            .where(PalletCrateMapping.crate_id == crate.id)
        )
    ).scalar_one_or_none()

    return CrateDetail(
        **CrateOut.model_validate(crate).model_dump(),
        order=OrderSummary.model_validate(crate.order),
        pallet_id=pallet.id if pallet else None,
        pallet_qr_code=pallet.qr_code if pallet else None,
    )


@router.patch("/{crate_ref}", response_model=CrateOut)
async def update_crate(
    crate_ref: str,
    body: CrateUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Correct a crate's pouch count while its order is still pending."""
    async with unit_of_work(db):
        crate = await _get_crate(db, crate_ref, for_update=True)
        if crate.order.status != OrderStatus.PENDING:
            raise ConflictError(
                f"Crates can only be changed while the order is pending "
                f"(order is {crate.order.status})",
                error_code="ORDER_NOT_PENDING",
            )
        if body.pouch_count > settings.crate_capacity:
            raise ConflictError(
                f"A crate holds at most {settings.crate_capacity} pouches",
                error_code="CRATE_CAPACITY_EXCEEDED",
                details={"capacity": settings.crate_capacity, "requested": body.pouch_count},
            )
        crate.pouch_count = body.pouch_count

    logger.info("Crate %s pouch count set to %d", crate.id, crate.pouch_count)
    return crate


@router.get("/{crate_ref}/qr")
async def get_crate_qr(crate_ref: str, db: AsyncSession = Depends(get_db)):
    crate = await _get_crate(db, crate_ref)
    return Response(content=render_svg(crate.qr_code), media_type="image/svg+xml")
