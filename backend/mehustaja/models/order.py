"""Order — one intake of apples, tracked until the juice is picked up.

Lifecycle:  pending → processing → loading → ready-for-pickup → picked-up

``ready-for-pickup`` is never set by a client: it is derived when every
crate of the order has been mapped to a pallet.  ``deleted`` parks the
order while its customer sits in the bin; ``previous_status`` remembers
where to return on restore.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mehustaja.database import Base


class OrderStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    LOADING = "loading"
    READY = "ready-for-pickup"
    PICKED_UP = "picked-up"
    DELETED = "deleted"

    ALL = (PENDING, PROCESSING, LOADING, READY, PICKED_UP, DELETED)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id"), nullable=False, index=True
    )

    # ── Quantities ───────────────────────────────────────────
    total_pouches: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_kg: Mapped[float | None] = mapped_column(Float)

    # ── Status ───────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(30), default=OrderStatus.PENDING, index=True
    )
    previous_status: Mapped[str | None] = mapped_column(String(30))
    comment: Mapped[str | None] = mapped_column(Text)

    # ── Customer contact / handover ──────────────────────────
    sms_sent_at: Mapped[datetime | None] = mapped_column(DateTime)
    picked_up_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    customer = relationship("Customer", back_populates="orders", lazy="selectin")
    crates = relationship(
        "Crate", back_populates="order", order_by="Crate.position"
    )

    @property
    def customer_name(self) -> str | None:
        return self.customer.name if self.customer else None

    @property
    def phone(self) -> str | None:
        return self.customer.phone if self.customer else None
