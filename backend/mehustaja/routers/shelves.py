"""Shelf management router.

Endpoints:
    POST   /api/shelves/                      Create a shelf (name generated if omitted)
    GET    /api/shelves/                      List shelves with holding counts
    GET    /api/shelves/{shelf_ref}/contents  Shelf with the pallets on it
    GET    /api/shelves/{shelf_ref}/qr        QR code SVG for the shelf label
    DELETE /api/shelves/{shelf_ref}           Delete a shelf (empty only)
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status as http_status
from fastapi.responses import Response
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.config import settings
from mehustaja.database import get_db
from mehustaja.middleware.exceptions import ConflictError, ResourceNotFoundError
from mehustaja.models.pallet import Pallet, PalletCrateMapping
from mehustaja.models.shelf import Shelf, ShelfStatus
from mehustaja.schemas.pallet import PalletSummary
from mehustaja.schemas.shelf import CreateShelfRequest, ShelfContents, ShelfSummary
from mehustaja.services.shelving import next_shelf_name, resolve_shelf, shelf_holding
from mehustaja.services.uow import unit_of_work
from mehustaja.utils.qr import SHELF, make_payload, render_svg

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_shelf(db: AsyncSession, shelf_ref: str, for_update: bool = False) -> Shelf:
    shelf = await resolve_shelf(db, shelf_ref, for_update=for_update)
    if shelf is None:
        raise ResourceNotFoundError("Shelf", shelf_ref)
    return shelf


# ── Create ───────────────────────────────────────────────────

@router.post("/", response_model=ShelfSummary, status_code=http_status.HTTP_201_CREATED)
async def create_shelf(body: CreateShelfRequest, db: AsyncSession = Depends(get_db)):
    location = body.location.strip()
    async with unit_of_work(db):
        shelf_id = str(uuid.uuid4())
        shelf = Shelf(
            id=shelf_id,
            qr_code=make_payload(SHELF, shelf_id),
            name=(body.shelf_name or "").strip() or await next_shelf_name(db, location),
            location=location,
            capacity=body.capacity or settings.default_shelf_capacity,
            status=ShelfStatus.OPEN,
        )
        db.add(shelf)
        await db.flush()

    logger.info("Created shelf %s (%s) at %s", shelf.id, shelf.name, shelf.location)
    return ShelfSummary.model_validate(shelf)


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=list[ShelfSummary])
async def list_shelves(
    location: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    holding = (
        select(Pallet.shelf_id.label("shelf_id"), func.count(Pallet.id).label("holding"))
        .where(Pallet.shelf_id.is_not(None))
        .group_by(Pallet.shelf_id)
        .subquery()
    )
    stmt = (
        select(Shelf, func.coalesce(holding.c.holding, 0))
        .outerjoin(holding, holding.c.shelf_id == Shelf.id)
    )
    if location:
        stmt = stmt.where(Shelf.location == location)

    rows = (await db.execute(stmt.order_by(Shelf.location, Shelf.name))).all()
    items = []
    for shelf, count in rows:
        summary = ShelfSummary.model_validate(shelf)
        summary.holding = int(count)
        items.append(summary)
    return items


# ── Detail ───────────────────────────────────────────────────

@router.get("/{shelf_ref}/contents", response_model=ShelfContents)
async def get_shelf_contents(shelf_ref: str, db: AsyncSession = Depends(get_db)):
    shelf = await _get_shelf(db, shelf_ref)
    rows = (
        await db.execute(
            select(Pallet, func.count(PalletCrateMapping.id))
            .outerjoin(PalletCrateMapping, PalletCrateMapping.pallet_id == Pallet.id)
            .where(Pallet.shelf_id == shelf.id)
            .group_by(Pallet.id)
            .order_by(Pallet.shelved_at)
        )
    ).all()

    pallets = []
    for pallet, count in rows:
        summary = PalletSummary.model_validate(pallet)
        summary.holding = int(count)
        pallets.append(summary)

    shelf_summary = ShelfSummary.model_validate(shelf)
    shelf_summary.holding = len(pallets)
    return ShelfContents(shelf=shelf_summary, pallets=pallets)


@router.get("/{shelf_ref}/qr")
async def get_shelf_qr(shelf_ref: str, db: AsyncSession = Depends(get_db)):
    shelf = await _get_shelf(db, shelf_ref)
    return Response(content=render_svg(shelf.qr_code), media_type="image/svg+xml")


# ── Delete ───────────────────────────────────────────────────

@router.delete("/{shelf_ref}", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_shelf(shelf_ref: str, db: AsyncSession = Depends(get_db)):
    """Delete an empty shelf.  A shelf with pallets on it is a 409."""
    async with unit_of_work(db):
        shelf = await _get_shelf(db, shelf_ref, for_update=True)
        holding = await shelf_holding(db, shelf.id)
        if holding:
            raise ConflictError(
                f"Shelf still holds {holding} pallet(s)",
                error_code="SHELF_NOT_EMPTY",
                details={"shelf_id": shelf.id, "holding": holding},
            )
        await db.execute(delete(Shelf).where(Shelf.id == shelf.id))

    logger.info("Deleted shelf %s", shelf.id)
    return Response(status_code=http_status.HTTP_204_NO_CONTENT)
