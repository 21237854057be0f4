"""Order status workflow.

Transitions handled here:

    pending    → processing        guard: crate pouches add up to total_pouches
    processing → loading           stores the operator's comment
    ready      → picked-up         explicit handover at the counter

``→ ready-for-pickup`` is not requested by anyone: it is derived in the
palletizing service once every crate of the order is on a pallet.

Repeating a transition the order has already made re-confirms it
(200, ``changed=False``) without announcing it again.  Any other
source state is an InvalidTransitionError.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mehustaja.events.bus import (
    ORDER_PROCESSING,
    ORDER_STATUS_UPDATED,
    EventBus,
)
from mehustaja.middleware.exceptions import (
    GuardFailedError,
    InvalidTransitionError,
    ResourceNotFoundError,
)
from mehustaja.models.crate import Crate
from mehustaja.models.order import Order, OrderStatus
from mehustaja.models.pallet import PalletCrateMapping
from mehustaja.services.uow import unit_of_work

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    order: Order
    changed: bool
    message: str


async def get_order(
    db: AsyncSession,
    order_id: str,
    *,
    for_update: bool = False,
    with_crates: bool = False,
) -> Order:
    stmt = select(Order).where(Order.id == order_id)
    if with_crates:
        stmt = stmt.options(selectinload(Order.crates))
    if for_update:
        stmt = stmt.with_for_update()
    order = (await db.execute(stmt)).scalar_one_or_none()
    if order is None:
        raise ResourceNotFoundError("Order", order_id)
    return order


async def pouches_in_crates(db: AsyncSession, order_id: str) -> int:
    result = await db.scalar(
        select(func.coalesce(func.sum(Crate.pouch_count), 0))
        .where(Crate.order_id == order_id)
    )
    return int(result)


async def crate_progress(db: AsyncSession, order_id: str) -> tuple[int, int]:
    """Return (crates of the order, crates of the order already on a pallet)."""
    total = await db.scalar(
        select(func.count(Crate.id)).where(Crate.order_id == order_id)
    )
    mapped = await db.scalar(
        select(func.count(PalletCrateMapping.id))
        .join(Crate, Crate.id == PalletCrateMapping.crate_id)
        .where(Crate.order_id == order_id)
    )
    return int(total or 0), int(mapped or 0)


# ── pending → processing ─────────────────────────────────────

async def mark_processing(
    db: AsyncSession,
    order_id: str,
    bus: EventBus,
) -> TransitionResult:
    """Move a pending order to processing once its crates hold every pouch."""
    async with unit_of_work(db, bus) as events:
        order = await get_order(db, order_id, for_update=True)

        if order.status == OrderStatus.PROCESSING:
            return TransitionResult(order, False, "Order already processing.")
        if order.status != OrderStatus.PENDING:
            raise InvalidTransitionError(order.id, order.status, OrderStatus.PROCESSING)

        pouch_sum = await pouches_in_crates(db, order.id)
        if pouch_sum != order.total_pouches:
            raise GuardFailedError(
                "Crates not complete yet.",
                details={
                    "order_id": order.id,
                    "total_pouches": order.total_pouches,
                    "pouches_in_crates": pouch_sum,
                },
            )

        order.status = OrderStatus.PROCESSING
        events.add(ORDER_PROCESSING, order_id=order.id)

    logger.info("Order %s is processing", order.id)
    return TransitionResult(order, True, "Order marked as processing.")


# ── processing → loading ─────────────────────────────────────

async def mark_loading(
    db: AsyncSession,
    order_id: str,
    comment: str | None,
    bus: EventBus,
) -> TransitionResult:
    """Juice is done; crates go to the loading area."""
    async with unit_of_work(db, bus) as events:
        order = await get_order(db, order_id, for_update=True)

        if order.status == OrderStatus.LOADING:
            if comment is not None:
                order.comment = comment
            return TransitionResult(order, False, "Order already loading.")
        if order.status != OrderStatus.PROCESSING:
            raise InvalidTransitionError(order.id, order.status, OrderStatus.LOADING)

        order.status = OrderStatus.LOADING
        order.comment = comment or None
        events.add(ORDER_STATUS_UPDATED, order_id=order.id)

    logger.info("Order %s is loading", order.id)
    return TransitionResult(order, True, "Order updated to loading.")


# ── ready-for-pickup → picked-up ─────────────────────────────

async def confirm_pickup(
    db: AsyncSession,
    order_id: str,
    bus: EventBus,
) -> TransitionResult:
    async with unit_of_work(db, bus) as events:
        order = await get_order(db, order_id, for_update=True)

        if order.status == OrderStatus.PICKED_UP:
            return TransitionResult(order, False, "Order already picked up.")
        if order.status != OrderStatus.READY:
            raise InvalidTransitionError(order.id, order.status, OrderStatus.PICKED_UP)

        order.status = OrderStatus.PICKED_UP
        order.picked_up_at = datetime.utcnow()
        events.add(ORDER_STATUS_UPDATED, order_id=order.id)

    logger.info("Order %s picked up", order.id)
    return TransitionResult(order, True, "Order marked as picked up.")
