"""Pallet — a physical pallet that crates are stacked on.

Pallets are created empty with a capacity (in crates), filled by
scanning crate QR codes, and later placed on a shelf.  How many crates a
pallet holds is always counted from PalletCrateMapping, never stored.

Lifecycle:  open → full
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mehustaja.database import Base


class PalletStatus:
    OPEN = "open"
    FULL = "full"


class Pallet(Base):
    __tablename__ = "pallets"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    qr_code: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    location: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    capacity: Mapped[int] = mapped_column(Integer, default=8)

    # open | full
    status: Mapped[str] = mapped_column(
        String(20), default=PalletStatus.OPEN, index=True
    )

    # ── Storage ──────────────────────────────────────────────
    shelf_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("shelves.id"), index=True
    )
    shelved_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    shelf = relationship("Shelf", back_populates="pallets")


class PalletCrateMapping(Base):
    """Join table: a crate placed on a pallet.  Insert-only.

    A crate can sit on one pallet at a time, so crate_id is unique.
    """
    __tablename__ = "pallet_crate_mappings"
    __table_args__ = (
        UniqueConstraint("crate_id", name="uq_pallet_crate_mappings_crate_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    pallet_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("pallets.id"), nullable=False, index=True
    )
    crate_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("crates.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
