"""Pydantic schemas for pallets and crate-to-pallet assignment."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field


class CreatePalletRequest(BaseModel):
    """Payload for POST /api/pallets/."""
    location: str = Field(..., min_length=1, max_length=100)
    capacity: int | None = Field(None, ge=1)  # None = default_pallet_capacity


class PalletSummary(BaseModel):
    id: str
    qr_code: str
    location: str
    capacity: int
    holding: int = 0
    status: str
    shelf_id: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Assignment (scan crates onto a pallet) ───────────────────

class AssignPalletRequest(BaseModel):
    """Payload for POST /api/assign-pallet.

    Both fields are optional here so that a missing value is answered
    with the 400 the scanners expect instead of a schema 422.
    """
    pallet_id: str | None = None
    crate_ids: list[str] | None = None


class AssignPalletResponse(BaseModel):
    message: str
    pallet_id: str
    pallet_status: str
    holding: int
    assigned: int
    skipped: int
    unresolved: list[str] = []


class PalletCrateOut(BaseModel):
    crate_id: str
    qr_code: str
    sequence: str
    pouch_count: int
    order_id: str
    order_status: str
    customer_name: str


class PalletOrderOut(BaseModel):
    order_id: str
    customer_id: str
    customer_name: str
    phone: str | None
    status: str
    total_pouches: int
    crates_on_pallet: int


# ── Shelf placement ──────────────────────────────────────────

class AssignShelfRequest(BaseModel):
    """Payload for POST /api/pallets/assign-shelf."""
    pallet_id: str = Field(..., validation_alias=AliasChoices("pallet_id", "palletId"))
    shelf_id: str = Field(..., validation_alias=AliasChoices("shelf_id", "shelfId"))
    send_sms: bool = Field(False, validation_alias=AliasChoices("send_sms", "sendSms"))


class AssignShelfResponse(BaseModel):
    message: str
    pallet_id: str
    shelf_id: str
    shelf_status: str
    sms_sent: int = 0
