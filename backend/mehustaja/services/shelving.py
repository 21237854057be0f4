"""Pallet-to-shelf placement.

Shelves hold pallets the way pallets hold crates: the pallet points at
its shelf, the shelf's holding count is derived from those pointers, and
a shelf turns ``full`` exactly when holding == capacity.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.adapters.sms import SmsNotifier
from mehustaja.events.bus import PALLET_UPDATED, EventBus
from mehustaja.middleware.exceptions import ConflictError, ResourceNotFoundError
from mehustaja.models.crate import Crate
from mehustaja.models.order import Order, OrderStatus
from mehustaja.models.pallet import Pallet, PalletCrateMapping
from mehustaja.models.shelf import Shelf, ShelfStatus
from mehustaja.services.notifications import notify_orders
from mehustaja.services.palletizing import resolve_pallet
from mehustaja.services.uow import unit_of_work

logger = logging.getLogger(__name__)


@dataclass
class ShelfPlacement:
    pallet: Pallet
    shelf: Shelf
    changed: bool
    sms_sent: int = 0


async def resolve_shelf(
    db: AsyncSession,
    ref: str,
    *,
    for_update: bool = False,
) -> Shelf | None:
    stmt = select(Shelf).where(or_(Shelf.qr_code == ref, Shelf.id == ref))
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def shelf_holding(db: AsyncSession, shelf_id: str) -> int:
    result = await db.scalar(
        select(func.count(Pallet.id)).where(Pallet.shelf_id == shelf_id)
    )
    return int(result or 0)


async def next_shelf_name(db: AsyncSession, location: str) -> str:
    """Generate <location>-S<nn>, numbering per location."""
    count = await db.scalar(
        select(func.count(Shelf.id)).where(Shelf.location == location)
    )
    return f"{location}-S{(count or 0) + 1:02d}"


async def orders_on_pallet(
    db: AsyncSession,
    pallet_id: str,
    status: str | None = None,
) -> list[Order]:
    stmt = (
        select(Order)
        .join(Crate, Crate.order_id == Order.id)
        .join(PalletCrateMapping, PalletCrateMapping.crate_id == Crate.id)
        .where(PalletCrateMapping.pallet_id == pallet_id)
        .distinct()
        .order_by(Order.created_at)
    )
    if status:
        stmt = stmt.where(Order.status == status)
    return list((await db.execute(stmt)).scalars().all())


async def assign_pallet_to_shelf(
    db: AsyncSession,
    pallet_ref: str,
    shelf_ref: str,
    bus: EventBus,
    notifier: SmsNotifier | None = None,
    send_sms: bool = False,
) -> ShelfPlacement:
    async with unit_of_work(db, bus) as events:
        shelf = await resolve_shelf(db, shelf_ref.strip(), for_update=True)
        if shelf is None:
            raise ResourceNotFoundError("Shelf", shelf_ref, message="Shelf QR not found")
        pallet = await resolve_pallet(db, pallet_ref.strip(), for_update=True)
        if pallet is None:
            raise ResourceNotFoundError("Pallet", pallet_ref, message="Pallet QR not found")

        changed = pallet.shelf_id != shelf.id
        if pallet.shelf_id is not None and changed:
            raise ConflictError(
                "Pallet is already on another shelf",
                error_code="PALLET_ALREADY_SHELVED",
                details={"pallet_id": pallet.id, "shelf_id": pallet.shelf_id},
            )

        holding = await shelf_holding(db, shelf.id)
        if changed:
            if holding + 1 > shelf.capacity:
                raise ConflictError(
                    f"Shelf {shelf.name} is full ({holding}/{shelf.capacity})",
                    error_code="SHELF_CAPACITY_EXCEEDED",
                    details={"shelf_id": shelf.id, "holding": holding, "capacity": shelf.capacity},
                )
            pallet.shelf_id = shelf.id
            pallet.shelved_at = datetime.utcnow()
            holding += 1
            events.add(PALLET_UPDATED, pallet_id=pallet.id)

        shelf.status = ShelfStatus.FULL if holding >= shelf.capacity else ShelfStatus.OPEN

    placement = ShelfPlacement(pallet=pallet, shelf=shelf, changed=changed)
    logger.info("Pallet %s on shelf %s (%d/%d)", pallet.id, shelf.name, holding, shelf.capacity)

    if send_sms and notifier is not None:
        ready = await orders_on_pallet(db, pallet.id, status=OrderStatus.READY)
        placement.sms_sent = await notify_orders(db, ready, notifier)

    return placement
