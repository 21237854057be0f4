"""Pydantic schemas for shelves."""

from datetime import datetime

from pydantic import BaseModel, Field

from mehustaja.schemas.pallet import PalletSummary


class CreateShelfRequest(BaseModel):
    """Payload for POST /api/shelves/.  Name is generated when omitted."""
    location: str = Field(..., min_length=1, max_length=100)
    capacity: int | None = Field(None, ge=1)  # None = default_shelf_capacity
    shelf_name: str | None = Field(None, max_length=100)


class ShelfSummary(BaseModel):
    id: str
    qr_code: str
    name: str
    location: str
    capacity: int
    holding: int = 0
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ShelfContents(BaseModel):
    shelf: ShelfSummary
    pallets: list[PalletSummary]
