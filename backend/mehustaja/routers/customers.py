"""Customer management router.

Endpoints:
    GET    /api/customers/                  Active customers with their latest order
    GET    /api/customers/deleted           Customers in the bin
    POST   /api/customers/{id}/delete       Move a customer to the bin
    POST   /api/customers/{id}/restore      Take a customer out of the bin
    DELETE /api/customers/{id}              Delete a binned customer permanently
    POST   /api/customers/{id}/notify       Text the customer
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.adapters.sms import SmsNotifier
from mehustaja.database import get_db
from mehustaja.deps import get_event_bus, get_notifier
from mehustaja.events.bus import EventBus
from mehustaja.models.customer import Customer
from mehustaja.models.order import Order
from mehustaja.schemas.customer import (
    CustomerListItem,
    CustomerOut,
    NotifyRequest,
    NotifyResponse,
)
from mehustaja.services import customers as customer_service
from mehustaja.services.notifications import notify_customer

router = APIRouter()


async def _with_latest_order(
    db: AsyncSession,
    customers: list[Customer],
) -> list[CustomerListItem]:
    ids = [c.id for c in customers]
    latest: dict[str, Order] = {}
    if ids:
        orders = (
            await db.execute(
                select(Order)
                .where(Order.customer_id.in_(ids))
                .order_by(Order.created_at.desc())
            )
        ).scalars().all()
        for order in orders:
            latest.setdefault(order.customer_id, order)

    items = []
    for customer in customers:
        item = CustomerListItem.model_validate(customer)
        order = latest.get(customer.id)
        if order is not None:
            item.order_id = order.id
            item.order_status = order.status
            item.total_pouches = order.total_pouches
            item.sms_sent_at = order.sms_sent_at
        items.append(item)
    return items


async def _list(db: AsyncSession, deleted: bool, search: str | None) -> list[CustomerListItem]:
    stmt = select(Customer).where(Customer.is_deleted == deleted)
    if search and search.strip():
        like = f"%{search.strip()}%"
        stmt = stmt.where(or_(Customer.name.ilike(like), Customer.phone.ilike(like)))
    customers = list((await db.execute(stmt.order_by(Customer.name))).scalars().all())
    return await _with_latest_order(db, customers)


# ── Lists ────────────────────────────────────────────────────

@router.get("/", response_model=list[CustomerListItem])
async def list_customers(
    search: str | None = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    return await _list(db, deleted=False, search=search)


@router.get("/deleted", response_model=list[CustomerListItem])
async def list_deleted_customers(
    search: str | None = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    return await _list(db, deleted=True, search=search)


# ── Bin ──────────────────────────────────────────────────────

@router.post("/{customer_id}/delete", response_model=CustomerOut)
async def move_to_bin(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Soft-delete: the customer and their orders can be restored."""
    return await customer_service.move_to_bin(db, customer_id, bus)


@router.post("/{customer_id}/restore", response_model=CustomerOut)
async def restore_customer(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    return await customer_service.restore(db, customer_id, bus)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Permanent delete of a binned customer, their orders and crates."""
    await customer_service.force_delete(db, customer_id, bus)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Notify ───────────────────────────────────────────────────

@router.post("/{customer_id}/notify", response_model=NotifyResponse)
async def notify(
    customer_id: str,
    body: NotifyRequest | None = None,
    db: AsyncSession = Depends(get_db),
    notifier: SmsNotifier = Depends(get_notifier),
):
    message = body.message if body else None
    customer, sent = await notify_customer(db, customer_id, notifier, message=message)
    return NotifyResponse(customer_id=customer.id, phone=customer.phone, sent=sent)
