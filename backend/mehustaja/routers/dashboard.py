"""Admin dashboard router.  Read-only aggregates over the floor.

Endpoints:
    GET  /api/dashboard/summary        Order pipeline, today's pickups, pallet and shelf fill
    GET  /api/dashboard/today-metrics  Today's intake against yesterday's
"""

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mehustaja.database import get_db
from mehustaja.models.crate import Crate
from mehustaja.models.order import Order, OrderStatus
from mehustaja.models.pallet import Pallet, PalletCrateMapping
from mehustaja.models.shelf import Shelf
from mehustaja.schemas.dashboard import (
    DashboardSummary,
    DayChanges,
    DayTotals,
    StatusCounts,
    TodayMetrics,
)

router = APIRouter()

_ACTIVE = (OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.LOADING, OrderStatus.READY)


def _day_start(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


async def _status_counts(db: AsyncSession, status_col) -> StatusCounts:
    result = await db.execute(select(status_col, func.count()).group_by(status_col))
    return StatusCounts(**{status: count for status, count in result.all() if status})


async def _day_totals(db: AsyncSession, start: datetime, end: datetime) -> DayTotals:
    row = (
        await db.execute(
            select(
                func.count(Order.id),
                func.coalesce(func.sum(Order.total_pouches), 0),
                func.coalesce(func.sum(Order.weight_kg), 0),
            ).where(
                Order.status != OrderStatus.DELETED,
                Order.created_at >= start,
                Order.created_at < end,
            )
        )
    ).one()
    return DayTotals(orders=row[0] or 0, pouches=int(row[1] or 0), kg_taken_in=float(row[2] or 0))


def _change_pct(today: float, yesterday: float) -> float:
    if not yesterday:
        return 100.0 if today else 0.0
    return round((today - yesterday) / yesterday * 100, 1)


@router.get("/summary", response_model=DashboardSummary)
async def get_summary(db: AsyncSession = Depends(get_db)):
    today_start = _day_start(datetime.utcnow())

    by_status = {status: 0 for status in OrderStatus.ALL if status != OrderStatus.DELETED}
    result = await db.execute(
        select(Order.status, func.count())
        .where(Order.status != OrderStatus.DELETED)
        .group_by(Order.status)
    )
    for status, count in result.all():
        by_status[status] = count

    created_today = await db.scalar(
        select(func.count(Order.id)).where(
            Order.status != OrderStatus.DELETED, Order.created_at >= today_start,
        )
    )
    picked_up_today = await db.execute(
        select(func.count(Order.id), func.count(func.distinct(Order.customer_id))).where(
            Order.status == OrderStatus.PICKED_UP, Order.picked_up_at >= today_start,
        )
    )
    picked_up, customers_served = picked_up_today.one()

    # Crates of live orders still waiting for a pallet
    unpalletized = await db.scalar(
        select(func.count(Crate.id))
        .join(Order, Order.id == Crate.order_id)
        .outerjoin(PalletCrateMapping, PalletCrateMapping.crate_id == Crate.id)
        .where(Order.status.in_(_ACTIVE), PalletCrateMapping.id.is_(None))
    )

    return DashboardSummary(
        orders_by_status=by_status,
        active_orders=sum(by_status[s] for s in _ACTIVE),
        orders_created_today=created_today or 0,
        orders_picked_up_today=picked_up or 0,
        customers_served_today=customers_served or 0,
        unpalletized_crates=unpalletized or 0,
        pallets=await _status_counts(db, Pallet.status),
        shelves=await _status_counts(db, Shelf.status),
    )


@router.get("/today-metrics", response_model=TodayMetrics)
async def get_today_metrics(db: AsyncSession = Depends(get_db)):
    today_start = _day_start(datetime.utcnow())
    yesterday_start = today_start - timedelta(days=1)

    today = await _day_totals(db, today_start, today_start + timedelta(days=1))
    yesterday = await _day_totals(db, yesterday_start, today_start)

    return TodayMetrics(
        today=today,
        yesterday=yesterday,
        changes=DayChanges(
            orders_pct=_change_pct(today.orders, yesterday.orders),
            pouches_pct=_change_pct(today.pouches, yesterday.pouches),
            kg_taken_in_pct=_change_pct(today.kg_taken_in, yesterday.kg_taken_in),
        ),
    )
