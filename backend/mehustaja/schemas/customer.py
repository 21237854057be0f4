"""Pydantic schemas for customers and the delete bin."""

from datetime import datetime

from pydantic import BaseModel, Field


class CustomerIn(BaseModel):
    """Customer part of the intake form."""
    name: str = Field(..., min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=30)
    email: str | None = None
    address: str | None = None
    city: str | None = None


class CustomerOut(BaseModel):
    id: str
    name: str
    phone: str | None
    email: str | None
    address: str | None
    city: str | None
    is_deleted: bool
    deleted_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerListItem(CustomerOut):
    """Customer with their most recent order, for the management table."""
    order_id: str | None = None
    order_status: str | None = None
    total_pouches: int | None = None
    sms_sent_at: datetime | None = None


class NotifyRequest(BaseModel):
    """Payload for POST /api/customers/{id}/notify.  Empty = ready template."""
    message: str | None = Field(None, max_length=640)


class NotifyResponse(BaseModel):
    customer_id: str
    phone: str | None
    sent: bool
