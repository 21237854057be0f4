"""Customer SMS notifications.

The SMS is sent outside any transaction (it is slow and cannot be rolled
back).  Only when the gateway accepted it is ``sms_sent_at`` stamped on
the order, in its own short transaction.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.adapters.sms import SmsNotifier
from mehustaja.config import settings
from mehustaja.middleware.exceptions import ResourceNotFoundError
from mehustaja.models.customer import Customer
from mehustaja.models.order import Order
from mehustaja.services.uow import unit_of_work

logger = logging.getLogger(__name__)


def ready_message(customer: Customer) -> str:
    return settings.sms_ready_template.format(name=customer.name)


async def latest_order(db: AsyncSession, customer_id: str) -> Order | None:
    return (
        await db.execute(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc())
            .limit(1)
        )
    ).scalar_one_or_none()


async def notify_customer(
    db: AsyncSession,
    customer_id: str,
    notifier: SmsNotifier,
    message: str | None = None,
    order_id: str | None = None,
) -> tuple[Customer, bool]:
    """Text a customer; stamp the order (given or latest) when the SMS went out."""
    customer = await db.get(Customer, customer_id)
    if customer is None or customer.is_deleted:
        raise ResourceNotFoundError("Customer", customer_id)

    sent = await notifier.send_sms(customer.phone, message or ready_message(customer))
    if not sent:
        return customer, False

    async with unit_of_work(db):
        order = (
            await db.get(Order, order_id) if order_id
            else await latest_order(db, customer.id)
        )
        if order is not None:
            order.sms_sent_at = datetime.utcnow()

    return customer, True


async def notify_orders(
    db: AsyncSession,
    orders: list[Order],
    notifier: SmsNotifier,
) -> int:
    """Send the ready SMS for each order; return how many were sent."""
    sent = 0
    for order in orders:
        try:
            _, ok = await notify_customer(db, order.customer_id, notifier, order_id=order.id)
        except ResourceNotFoundError:
            logger.info("Skipping SMS for order %s: customer is in the bin", order.id)
            continue
        sent += int(ok)
    return sent
