"""Order router.

Endpoints:
    POST  /api/orders/                      Register an order (customer + crates)
    GET   /api/orders/                      List orders, optionally by status
    GET   /api/orders/pickup?query=         Ready orders matching name / phone
    GET   /api/orders/{order_id}            Order detail with crates
    POST  /api/orders/{order_id}/processing pending → processing (crate guard)
    POST  /api/orders/{order_id}/done       processing → loading
    POST  /api/orders/{order_id}/pickup     ready-for-pickup → picked-up
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.database import get_db
from mehustaja.deps import get_event_bus
from mehustaja.events.bus import EventBus
from mehustaja.models.customer import Customer
from mehustaja.models.order import Order, OrderStatus
from mehustaja.schemas.order import (
    LoadingRequest,
    OrderDetail,
    OrderIntakeRequest,
    OrderSummary,
    TransitionResponse,
)
from mehustaja.services import orders as order_service
from mehustaja.services.intake import register_order

router = APIRouter()


async def _order_detail(db: AsyncSession, order: Order) -> OrderDetail:
    detail = OrderDetail.model_validate(order)
    total, mapped = await order_service.crate_progress(db, order.id)
    detail.crates_total = total
    detail.crates_palletized = mapped
    detail.pouches_in_crates = sum(c.pouch_count for c in detail.crates)
    return detail


def _transition_response(result: order_service.TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        message=result.message,
        order_id=result.order.id,
        status=result.order.status,
        changed=result.changed,
    )


# ── Intake ───────────────────────────────────────────────────

@router.post("/", response_model=OrderDetail, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderIntakeRequest,
    db: AsyncSession = Depends(get_db),
):
    """Register customer, order and crates in one go.

    The response lists every crate with its QR payload so the desk can
    print the crate labels straight away.
    """
    try:
        order = await register_order(body, db)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )
    return await _order_detail(db, order)


# ── Queries ──────────────────────────────────────────────────

@router.get("/", response_model=list[OrderSummary])
async def list_orders(
    status: str | None = Query(None),
    limit: int = Query(100, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Orders newest first, each with its customer's name and phone."""
    stmt = select(Order).join(Customer, Customer.id == Order.customer_id)
    if status:
        if status not in OrderStatus.ALL:
            raise HTTPException(status_code=400, detail=f"Unknown order status: {status}")
        stmt = stmt.where(Order.status == status)
    else:
        stmt = stmt.where(Order.status != OrderStatus.DELETED)

    result = await db.execute(stmt.order_by(Order.created_at.desc()).limit(limit).offset(offset))
    return [OrderSummary.model_validate(o) for o in result.scalars().all()]


@router.get("/pickup", response_model=list[OrderSummary])
async def search_pickup(
    query: str = Query("", max_length=100),
    db: AsyncSession = Depends(get_db),
):
    """Orders waiting at the counter whose customer matches ``query``."""
    stmt = (
        select(Order)
        .join(Customer, Customer.id == Order.customer_id)
        .where(Order.status == OrderStatus.READY, Customer.is_deleted == False)  # noqa: E712
    )
    q = query.strip()
    if q:
        like = f"%{q}%"
        stmt = stmt.where(or_(Customer.name.ilike(like), Customer.phone.ilike(like)))

    result = await db.execute(stmt.order_by(Customer.name).limit(50))
    return [OrderSummary.model_validate(o) for o in result.scalars().all()]


@router.get("/{order_id}", response_model=OrderDetail)
async def get_order(order_id: str, db: AsyncSession = Depends(get_db)):
    order = await order_service.get_order(db, order_id, with_crates=True)
    return await _order_detail(db, order)


# ── Status transitions ───────────────────────────────────────

@router.post("/{order_id}/processing", response_model=TransitionResponse)
async def mark_processing(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Start juicing.  Rejected with 400 while crates do not add up."""
    result = await order_service.mark_processing(db, order_id, bus)
    return _transition_response(result)


@router.post("/{order_id}/done", response_model=TransitionResponse)
async def mark_loading(
    order_id: str,
    body: LoadingRequest | None = None,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    comment = body.comment if body else None
    result = await order_service.mark_loading(db, order_id, comment, bus)
    return _transition_response(result)


@router.post("/{order_id}/pickup", response_model=TransitionResponse)
async def confirm_pickup(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    result = await order_service.confirm_pickup(db, order_id, bus)
    return _transition_response(result)
