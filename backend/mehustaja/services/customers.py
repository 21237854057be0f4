"""Customer delete bin.

Moving a customer to the bin is reversible: every order of the customer
is parked in ``deleted`` and remembers its status in ``previous_status``.
Restoring puts each order back where it was and re-derives readiness.

Removing a customer from the bin is final and cascades: mapping rows of
their crates, the crates, the orders and the customer go in one
transaction.  Pallets that lose crates that way reopen.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.events.bus import CUSTOMER_UPDATED, PALLET_UPDATED, EventBus
from mehustaja.middleware.exceptions import ConflictError, ResourceNotFoundError
from mehustaja.models.crate import Crate
from mehustaja.models.customer import Customer
from mehustaja.models.order import Order, OrderStatus
from mehustaja.models.pallet import Pallet, PalletCrateMapping, PalletStatus
from mehustaja.services.palletizing import refresh_order_readiness
from mehustaja.services.uow import unit_of_work

logger = logging.getLogger(__name__)


async def _get_customer(db: AsyncSession, customer_id: str) -> Customer:
    customer = (
        await db.execute(
            select(Customer).where(Customer.id == customer_id).with_for_update()
        )
    ).scalar_one_or_none()
    if customer is None:
        raise ResourceNotFoundError("Customer", customer_id)
    return customer


async def _orders_of(db: AsyncSession, customer_id: str) -> list[Order]:
    return list((
        await db.execute(
            select(Order).where(Order.customer_id == customer_id).with_for_update()
        )
    ).scalars().all())


async def move_to_bin(db: AsyncSession, customer_id: str, bus: EventBus) -> Customer:
    async with unit_of_work(db, bus) as events:
        customer = await _get_customer(db, customer_id)
        if customer.is_deleted:
            raise ConflictError("Customer is already in the bin", error_code="ALREADY_DELETED")

        customer.is_deleted = True
        customer.deleted_at = datetime.utcnow()
        for order in await _orders_of(db, customer.id):
            if order.status != OrderStatus.DELETED:
                order.previous_status = order.status
                order.status = OrderStatus.DELETED
        events.add(CUSTOMER_UPDATED, customer_id=customer.id)

    logger.info("Customer %s moved to bin", customer.id)
    return customer


async def restore(db: AsyncSession, customer_id: str, bus: EventBus) -> Customer:
    async with unit_of_work(db, bus) as events:
        customer = await _get_customer(db, customer_id)
        if not customer.is_deleted:
            raise ConflictError("Customer is not in the bin", error_code="NOT_DELETED")

        customer.is_deleted = False
        customer.deleted_at = None
        restored = []
        for order in await _orders_of(db, customer.id):
            if order.status == OrderStatus.DELETED:
                order.status = order.previous_status or OrderStatus.PENDING
                order.previous_status = None
                restored.append(order.id)
        # Crates may have been scanned while the customer sat in the bin
        await refresh_order_readiness(db, restored, events)
        events.add(CUSTOMER_UPDATED, customer_id=customer.id)

    logger.info("Customer %s restored", customer.id)
    return customer


async def force_delete(db: AsyncSession, customer_id: str, bus: EventBus) -> None:
    async with unit_of_work(db, bus) as events:
        customer = await _get_customer(db, customer_id)
        if not customer.is_deleted:
            raise ConflictError(
                "Move the customer to the bin before deleting permanently",
                error_code="NOT_DELETED",
            )

        order_ids = select(Order.id).where(Order.customer_id == customer.id)
        crate_ids = select(Crate.id).where(Crate.order_id.in_(order_ids))

        affected_pallets = list((
            await db.execute(
                select(PalletCrateMapping.pallet_id)
                .where(PalletCrateMapping.crate_id.in_(crate_ids))
                .distinct()
            )
        ).scalars().all())

        await db.execute(
            delete(PalletCrateMapping).where(PalletCrateMapping.crate_id.in_(crate_ids))
        )
        await db.execute(delete(Crate).where(Crate.order_id.in_(order_ids)))
        await db.execute(delete(Order).where(Order.customer_id == customer.id))
        await db.execute(delete(Customer).where(Customer.id == customer.id))

        for pallet_id in affected_pallets:
            pallet = await db.get(Pallet, pallet_id)
            holding = await db.scalar(
                select(func.count(PalletCrateMapping.id))
                .where(PalletCrateMapping.pallet_id == pallet_id)
            )
            if pallet is not None and (holding or 0) < pallet.capacity:
                pallet.status = PalletStatus.OPEN
            events.add(PALLET_UPDATED, pallet_id=pallet_id)
        events.add(CUSTOMER_UPDATED, customer_id=customer_id)

    logger.info("Customer %s deleted permanently", customer_id)
