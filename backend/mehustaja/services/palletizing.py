"""Crate-to-pallet assignment and derived order readiness.

One scan batch (a pallet QR plus the crate QRs scanned onto it) is a
single transaction:

  1. Resolve the pallet (row locked).  Unknown pallet → 404, no writes.
  2. Resolve the crates.  Unknown crate QRs are left out and reported
     back as ``unresolved``; they are not an error.
  3. Crates already on this pallet are skipped, crates on another pallet
     reject the whole batch.
  4. Capacity gate: the pallet may never hold more crates than its
     capacity; it turns ``full`` exactly when holding == capacity.
  5. Insert one mapping per new crate.
  6. For every order touched, count its crates against its mapped
     crates; when they match the order becomes ``ready-for-pickup``.

Orders are locked in id order before counting so two scanners working
on crates of the same order cannot both miss the last crate.  Nothing
is announced until the commit succeeded.
"""

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.events.bus import ORDER_READY, PALLET_UPDATED, EventBus, PendingEvents
from mehustaja.middleware.exceptions import (
    ConflictError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from mehustaja.models.crate import Crate
from mehustaja.models.order import Order, OrderStatus
from mehustaja.models.pallet import Pallet, PalletCrateMapping, PalletStatus
from mehustaja.services.orders import crate_progress
from mehustaja.services.uow import unit_of_work

logger = logging.getLogger(__name__)

# Orders in these states never flip to ready-for-pickup again
_NOT_READYABLE = (OrderStatus.READY, OrderStatus.PICKED_UP, OrderStatus.DELETED)


@dataclass
class AssignmentResult:
    pallet: Pallet
    holding: int
    assigned: int
    skipped: int
    unresolved: list[str] = field(default_factory=list)
    ready_order_ids: list[str] = field(default_factory=list)


async def resolve_pallet(
    db: AsyncSession,
    ref: str,
    *,
    for_update: bool = False,
) -> Pallet | None:
    """Find a pallet by QR payload or internal id."""
    stmt = select(Pallet).where(or_(Pallet.qr_code == ref, Pallet.id == ref))
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def pallet_holding(db: AsyncSession, pallet_id: str) -> int:
    result = await db.scalar(
        select(func.count(PalletCrateMapping.id))
        .where(PalletCrateMapping.pallet_id == pallet_id)
    )
    return int(result or 0)


async def _map_crate(db: AsyncSession, pallet: Pallet, crate: Crate) -> None:
    db.add(PalletCrateMapping(
        id=str(uuid.uuid4()),
        pallet_id=pallet.id,
        crate_id=crate.id,
    ))
    await db.flush()


async def refresh_order_readiness(
    db: AsyncSession,
    order_ids: list[str],
    events: PendingEvents,
) -> list[str]:
    """Derive ready-for-pickup for each order; return the ids that flipped."""
    flipped = []
    for order_id in sorted(set(order_ids)):
        order = (
            await db.execute(
                select(Order).where(Order.id == order_id).with_for_update()
            )
        ).scalar_one_or_none()
        if order is None or order.status in _NOT_READYABLE:
            continue

        total, mapped = await crate_progress(db, order_id)
        if total and total == mapped:
            order.status = OrderStatus.READY
            events.add(ORDER_READY, order_id=order_id)
            flipped.append(order_id)
    return flipped


async def assign_crates_to_pallet(
    db: AsyncSession,
    pallet_ref: str | None,
    crate_refs: list[str] | None,
    bus: EventBus,
) -> AssignmentResult:
    pallet_ref = pallet_ref.strip() if isinstance(pallet_ref, str) else None
    if not pallet_ref or not isinstance(crate_refs, list):
        raise ValidationFailedError()
    refs = list(dict.fromkeys(r.strip() for r in crate_refs if r and r.strip()))
    if not refs:
        raise ValidationFailedError()

    async with unit_of_work(db, bus) as events:
        pallet = await resolve_pallet(db, pallet_ref, for_update=True)
        if pallet is None:
            raise ResourceNotFoundError("Pallet", pallet_ref, message="Pallet QR not found")

        crates = list((
            await db.execute(
                select(Crate)
                .where(or_(Crate.qr_code.in_(refs), Crate.id.in_(refs)))
                .order_by(Crate.order_id, Crate.position)
            )
        ).scalars().all())
        known = {c.qr_code for c in crates} | {c.id for c in crates}
        unresolved = [r for r in refs if r not in known]

        placed = dict((
            await db.execute(
                select(PalletCrateMapping.crate_id, PalletCrateMapping.pallet_id)
                .where(PalletCrateMapping.crate_id.in_([c.id for c in crates]))
            )
        ).all())
        elsewhere = [c.qr_code for c in crates if placed.get(c.id, pallet.id) != pallet.id]
        if elsewhere:
            raise ConflictError(
                f"{len(elsewhere)} crate(s) already on another pallet",
                error_code="CRATE_ALREADY_PALLETIZED",
                details={"crates": elsewhere},
            )

        new_crates = [c for c in crates if c.id not in placed]
        # Every order the batch touches, skipped crates included
        order_ids = sorted({c.order_id for c in crates})

        # Lock orders before touching their crates
        if order_ids:
            await db.execute(
                select(Order.id)
                .where(Order.id.in_(order_ids))
                .order_by(Order.id)
                .with_for_update()
            )

        holding = await pallet_holding(db, pallet.id)
        if holding + len(new_crates) > pallet.capacity:
            raise ConflictError(
                f"Pallet holds {holding}/{pallet.capacity} crates, "
                f"cannot add {len(new_crates)}",
                error_code="PALLET_CAPACITY_EXCEEDED",
                details={
                    "pallet_id": pallet.id,
                    "holding": holding,
                    "capacity": pallet.capacity,
                    "requested": len(new_crates),
                },
            )

        for crate in new_crates:
            await _map_crate(db, pallet, crate)
        holding += len(new_crates)

        pallet.status = PalletStatus.FULL if holding >= pallet.capacity else PalletStatus.OPEN

        ready = await refresh_order_readiness(db, order_ids, events)
        if new_crates:
            events.add(PALLET_UPDATED, pallet_id=pallet.id)

    logger.info(
        "Pallet %s: %d crate(s) assigned, %d skipped, %d unresolved, %d order(s) ready",
        pallet.id, len(new_crates), len(crates) - len(new_crates), len(unresolved), len(ready),
    )
    return AssignmentResult(
        pallet=pallet,
        holding=holding,
        assigned=len(new_crates),
        skipped=len(crates) - len(new_crates),
        unresolved=unresolved,
        ready_order_ids=ready,
    )
