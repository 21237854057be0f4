"""Pydantic schemas for the admin dashboard."""

from pydantic import BaseModel


class StatusCounts(BaseModel):
    open: int = 0
    full: int = 0


class DashboardSummary(BaseModel):
    orders_by_status: dict[str, int]
    active_orders: int
    orders_created_today: int
    orders_picked_up_today: int
    customers_served_today: int
    unpalletized_crates: int
    pallets: StatusCounts
    shelves: StatusCounts


class DayTotals(BaseModel):
    orders: int = 0
    pouches: int = 0
    kg_taken_in: float = 0.0


class DayChanges(BaseModel):
    orders_pct: float = 0.0
    pouches_pct: float = 0.0
    kg_taken_in_pct: float = 0.0


class TodayMetrics(BaseModel):
    today: DayTotals
    yesterday: DayTotals
    changes: DayChanges
