"""Pallet management router.

Endpoints:
    POST   /api/pallets/                    Create an empty pallet
    GET    /api/pallets/                    List pallets (with filters)
    POST   /api/pallets/assign-shelf        Put a pallet on a shelf
    GET    /api/pallets/{pallet_ref}        Single pallet summary
    GET    /api/pallets/{pallet_ref}/crates Crates on the pallet
    GET    /api/pallets/{pallet_ref}/orders Orders with crates on the pallet
    GET    /api/pallets/{pallet_ref}/qr     QR code SVG for the pallet label
    DELETE /api/pallets/{pallet_ref}        Delete a pallet (empty only)
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status as http_status
from fastapi.responses import Response
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.adapters.sms import SmsNotifier
from mehustaja.config import settings
from mehustaja.database import get_db
from mehustaja.deps import get_event_bus, get_notifier
from mehustaja.events.bus import PALLET_UPDATED, EventBus
from mehustaja.middleware.exceptions import ConflictError, ResourceNotFoundError
from mehustaja.models.crate import Crate
from mehustaja.models.customer import Customer
from mehustaja.models.order import Order
from mehustaja.models.pallet import Pallet, PalletCrateMapping, PalletStatus
from mehustaja.models.shelf import ShelfStatus
from mehustaja.schemas.common import PaginatedResponse
from mehustaja.schemas.pallet import (
    AssignShelfRequest,
    AssignShelfResponse,
    CreatePalletRequest,
    PalletCrateOut,
    PalletOrderOut,
    PalletSummary,
)
from mehustaja.services.palletizing import pallet_holding, resolve_pallet
from mehustaja.services.shelving import assign_pallet_to_shelf, resolve_shelf, shelf_holding
from mehustaja.services.uow import unit_of_work
from mehustaja.utils.qr import PALLET, make_payload, render_svg

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

async def _get_pallet(db: AsyncSession, pallet_ref: str, for_update: bool = False) -> Pallet:
    pallet = await resolve_pallet(db, pallet_ref, for_update=for_update)
    if pallet is None:
        raise ResourceNotFoundError("Pallet", pallet_ref)
    return pallet


def _holding_subquery():
    return (
        select(
            PalletCrateMapping.pallet_id.label("pallet_id"),
            func.count(PalletCrateMapping.id).label("holding"),
        )
        .group_by(PalletCrateMapping.pallet_id)
        .subquery()
    )


async def _summary(db: AsyncSession, pallet: Pallet) -> PalletSummary:
    summary = PalletSummary.model_validate(pallet)
    summary.holding = await pallet_holding(db, pallet.id)
    return summary


# ── Create ───────────────────────────────────────────────────

@router.post("/", response_model=PalletSummary, status_code=http_status.HTTP_201_CREATED)
async def create_pallet(
    body: CreatePalletRequest,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Create an empty pallet; its QR payload is derived from the new id."""
    async with unit_of_work(db, bus) as events:
        pallet_id = str(uuid.uuid4())
        pallet = Pallet(
            id=pallet_id,
            qr_code=make_payload(PALLET, pallet_id),
            location=body.location.strip(),
            capacity=body.capacity or settings.default_pallet_capacity,
            status=PalletStatus.OPEN,
        )
        db.add(pallet)
        await db.flush()
        events.add(PALLET_UPDATED, pallet_id=pallet.id)

    logger.info("Created pallet %s at %s (capacity %d)", pallet.id, pallet.location, pallet.capacity)
    return PalletSummary.model_validate(pallet)


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[PalletSummary])
async def list_pallets(
    location: str | None = Query(None),
    status: str | None = Query(None),
    shelf_id: str | None = Query(None),
    limit: int = Query(50, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    holding = _holding_subquery()
    base = (
        select(Pallet, func.coalesce(holding.c.holding, 0))
        .outerjoin(holding, holding.c.pallet_id == Pallet.id)
    )
    if location:
        base = base.where(Pallet.location == location)
    if status:
        base = base.where(Pallet.status == status)
    if shelf_id:
        base = base.where(Pallet.shelf_id == shelf_id)

    total = await db.scalar(select(func.count()).select_from(base.subquery())) or 0
    rows = (
        await db.execute(base.order_by(Pallet.created_at.desc()).limit(limit).offset(offset))
    ).all()

    items = []
    for pallet, count in rows:
        summary = PalletSummary.model_validate(pallet)
        summary.holding = int(count)
        items.append(summary)

    return PaginatedResponse[PalletSummary](
        items=items, total=total, limit=limit, offset=offset,
    )


# ── Shelf placement ──────────────────────────────────────────

@router.post("/assign-shelf", response_model=AssignShelfResponse)
async def assign_shelf(
    body: AssignShelfRequest,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
    notifier: SmsNotifier = Depends(get_notifier),
):
    """Place a pallet on a shelf, optionally texting customers whose
    orders on the pallet are ready for pickup."""
    placement = await assign_pallet_to_shelf(
        db, body.pallet_id, body.shelf_id, bus,
        notifier=notifier, send_sms=body.send_sms,
    )
    return AssignShelfResponse(
        message=(
            "Pallet assigned to shelf." if placement.changed
            else "Pallet already on this shelf."
        ),
        pallet_id=placement.pallet.id,
        shelf_id=placement.shelf.id,
        shelf_status=placement.shelf.status,
        sms_sent=placement.sms_sent,
    )


# ── Detail ───────────────────────────────────────────────────

@router.get("/{pallet_ref}", response_model=PalletSummary)
async def get_pallet(pallet_ref: str, db: AsyncSession = Depends(get_db)):
    pallet = await _get_pallet(db, pallet_ref)
    return await _summary(db, pallet)


@router.get("/{pallet_ref}/crates", response_model=list[PalletCrateOut])
async def get_pallet_crates(pallet_ref: str, db: AsyncSession = Depends(get_db)):
    pallet = await _get_pallet(db, pallet_ref)
    rows = (
        await db.execute(
            select(Crate, Order.status, Customer.name)
            .join(PalletCrateMapping, PalletCrateMapping.crate_id == Crate.id)
            .join(Order, Order.id == Crate.order_id)
            .join(Customer, Customer.id == Order.customer_id)
            .where(PalletCrateMapping.pallet_id == pallet.id)
            .order_by(PalletCrateMapping.created_at, Crate.position)
        )
    ).all()
    return [
        PalletCrateOut(
            crate_id=crate.id,
            qr_code=crate.qr_code,
            sequence=crate.sequence,
            pouch_count=crate.pouch_count,
            order_id=crate.order_id,
            order_status=order_status,
            customer_name=customer_name,
        )
        for crate, order_status, customer_name in rows
    ]


@router.get("/{pallet_ref}/orders", response_model=list[PalletOrderOut])
async def get_pallet_orders(pallet_ref: str, db: AsyncSession = Depends(get_db)):
    pallet = await _get_pallet(db, pallet_ref)
    rows = (
        await db.execute(
            select(Order, func.count(PalletCrateMapping.id))
            .join(Crate, Crate.order_id == Order.id)
            .join(PalletCrateMapping, PalletCrateMapping.crate_id == Crate.id)
            .where(PalletCrateMapping.pallet_id == pallet.id)
            .group_by(Order.id)
            .order_by(Order.created_at)
        )
    ).all()
    return [
        PalletOrderOut(
            order_id=order.id,
            customer_id=order.customer_id,
            customer_name=order.customer_name or "",
            phone=order.phone,
            status=order.status,
            total_pouches=order.total_pouches,
            crates_on_pallet=int(count),
        )
        for order, count in rows
    ]


@router.get("/{pallet_ref}/qr")
async def get_pallet_qr(pallet_ref: str, db: AsyncSession = Depends(get_db)):
    pallet = await _get_pallet(db, pallet_ref)
    return Response(content=render_svg(pallet.qr_code), media_type="image/svg+xml")


# ── Delete ───────────────────────────────────────────────────

@router.delete("/{pallet_ref}", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_pallet(
    pallet_ref: str,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Delete an empty pallet.  A pallet holding crates is a 409.

    A shelved pallet frees its slot, so the shelf reopens below capacity.
    """
    async with unit_of_work(db, bus) as events:
        pallet = await _get_pallet(db, pallet_ref)
        # Shelf before pallet, the order assign-shelf locks them in
        shelf = None
        if pallet.shelf_id is not None:
            shelf = await resolve_shelf(db, pallet.shelf_id, for_update=True)
        pallet = await _get_pallet(db, pallet.id, for_update=True)
        holding = await pallet_holding(db, pallet.id)
        if holding:
            raise ConflictError(
                f"Pallet still holds {holding} crate(s)",
                error_code="PALLET_NOT_EMPTY",
                details={"pallet_id": pallet.id, "holding": holding},
            )
        await db.execute(delete(Pallet).where(Pallet.id == pallet.id))
        if shelf is not None and await shelf_holding(db, shelf.id) < shelf.capacity:
            shelf.status = ShelfStatus.OPEN
        events.add(PALLET_UPDATED, pallet_id=pallet.id)

    logger.info("Deleted pallet %s", pallet.id)
    return Response(status_code=http_status.HTTP_204_NO_CONTENT)
