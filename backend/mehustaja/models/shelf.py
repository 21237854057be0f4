"""Shelf — a storage location holding pallets.

Same aggregation pattern one level up: a pallet points at its shelf and
the shelf's holding count is derived from those pointers.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mehustaja.database import Base


class ShelfStatus:
    OPEN = "open"
    FULL = "full"


class Shelf(Base):
    __tablename__ = "shelves"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    qr_code: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    capacity: Mapped[int] = mapped_column(Integer, default=6)

    # open | full
    status: Mapped[str] = mapped_column(String(20), default=ShelfStatus.OPEN)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # ── Relationships ────────────────────────────────────────
    pallets = relationship("Pallet", back_populates="shelf")
