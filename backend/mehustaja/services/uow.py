"""Transaction boundary shared by every state-changing service.

Usage:
    async with unit_of_work(db, bus) as events:
        order.status = OrderStatus.PROCESSING
        events.add(ORDER_PROCESSING, order_id=order.id)

The block commits on success and rolls back on any exception.  Queued
events reach the bus only after the commit returned, so a listener that
re-reads the row always sees the new state, and a rolled-back change is
never announced.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.events.bus import EventBus, PendingEvents


@asynccontextmanager
async def unit_of_work(
    db: AsyncSession,
    bus: EventBus | None = None,
) -> AsyncIterator[PendingEvents]:
    pending = PendingEvents()
    try:
        yield pending
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if bus is not None:
        await pending.publish(bus)
