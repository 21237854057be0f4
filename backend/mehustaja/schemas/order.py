"""Pydantic schemas for order intake and the status workflow."""

from datetime import datetime

from pydantic import BaseModel, Field

from mehustaja.schemas.customer import CustomerIn, CustomerOut


# ── Intake ───────────────────────────────────────────────────

class OrderIntakeRequest(BaseModel):
    """Payload for POST /api/orders: the intake desk form.

    ``total_pouches`` is the final pouch count; converting apple weight
    to pouches happens at the desk.
    """
    customer: CustomerIn
    total_pouches: int = Field(..., ge=1)
    weight_kg: float | None = Field(None, ge=0)
    comment: str | None = None


# ── Crates ───────────────────────────────────────────────────

class CrateOut(BaseModel):
    id: str
    order_id: str
    qr_code: str
    position: int
    sequence: str
    pouch_count: int

    model_config = {"from_attributes": True}


class CrateUpdate(BaseModel):
    """Payload for PATCH /api/crates/{crate}."""
    pouch_count: int = Field(..., ge=0)


# ── Orders ───────────────────────────────────────────────────

class OrderSummary(BaseModel):
    id: str
    customer_id: str
    customer_name: str | None = None
    phone: str | None = None
    status: str
    total_pouches: int
    weight_kg: float | None = None
    comment: str | None = None
    sms_sent_at: datetime | None = None
    picked_up_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderDetail(OrderSummary):
    customer: CustomerOut
    crates: list[CrateOut] = []
    crates_total: int = 0
    crates_palletized: int = 0
    pouches_in_crates: int = 0


class CrateDetail(CrateOut):
    order: OrderSummary
    pallet_id: str | None = None
    pallet_qr_code: str | None = None


# ── Transitions ──────────────────────────────────────────────

class LoadingRequest(BaseModel):
    """Payload for POST /api/orders/{id}/done."""
    comment: str | None = None


class TransitionResponse(BaseModel):
    message: str
    order_id: str
    status: str
    changed: bool
