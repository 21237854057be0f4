"""Crate — a physical crate of juice pouches, scanned by its QR label.

Crates are created at intake, ``crate_capacity`` pouches each with the
last crate taking the remainder.  ``sequence`` is the printed "i/n" label.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mehustaja.database import Base


class Crate(Base):
    __tablename__ = "crates"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id"), nullable=False, index=True
    )
    qr_code: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    sequence: Mapped[str] = mapped_column(String(20), nullable=False)
    pouch_count: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # ── Relationships ────────────────────────────────────────
    order = relationship("Order", back_populates="crates")
