"""Order intake service.

Handles registering a new customer order at the intake desk:
  - Creating the Customer and its Order (status ``pending``)
  - Splitting the pouch total into crates of ``crate_capacity`` pouches,
    the last crate taking the remainder
  - Giving every crate its QR payload and "i/n" label

Everything is written in one transaction; a failure part-way leaves no
customer, order or crate behind.
"""

import logging
import math
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.config import settings
from mehustaja.models.crate import Crate
from mehustaja.models.customer import Customer
from mehustaja.models.order import Order, OrderStatus
from mehustaja.schemas.order import OrderIntakeRequest
from mehustaja.services.uow import unit_of_work
from mehustaja.utils.qr import CRATE, make_payload

logger = logging.getLogger(__name__)


def split_into_crates(pouch_total: int, capacity: int | None = None) -> list[int]:
    """Return the pouch count of each crate for ``pouch_total`` pouches.

    >>> split_into_crates(17)
    [8, 8, 1]
    """
    capacity = capacity or settings.crate_capacity
    if capacity < 1:
        raise ValueError("crate capacity must be at least 1")
    if pouch_total < 1:
        raise ValueError("pouch total must be at least 1")

    crate_count = math.ceil(pouch_total / capacity)
    counts = [capacity] * (crate_count - 1)
    counts.append(pouch_total - capacity * (crate_count - 1))
    return counts


async def register_order(body: OrderIntakeRequest, db: AsyncSession) -> Order:
    """Create customer, order and crates; return the order with crates attached.

    Raises:
        ValueError if the pouch total cannot be packed.
    """
    counts = split_into_crates(body.total_pouches)

    async with unit_of_work(db):
        customer = Customer(
            id=str(uuid.uuid4()),
            name=body.customer.name.strip(),
            phone=body.customer.phone,
            email=body.customer.email,
            address=body.customer.address,
            city=body.customer.city,
        )
        order = Order(
            id=str(uuid.uuid4()),
            customer=customer,
            total_pouches=body.total_pouches,
            weight_kg=body.weight_kg,
            comment=body.comment,
            status=OrderStatus.PENDING,
        )
        for position, pouch_count in enumerate(counts, start=1):
            crate_id = str(uuid.uuid4())
            order.crates.append(Crate(
                id=crate_id,
                qr_code=make_payload(CRATE, crate_id),
                position=position,
                sequence=f"{position}/{len(counts)}",
                pouch_count=pouch_count,
            ))
        db.add(order)
        await db.flush()

    logger.info(
        "Registered order %s for %s: %d pouches in %d crates",
        order.id, customer.name, order.total_pouches, len(counts),
    )
    return order
