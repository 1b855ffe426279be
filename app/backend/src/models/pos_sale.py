"""Point-of-sale transaction model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .business import BusinessRegistration


class PosSale(Base):
    """A single sale recorded by a business's POS terminal."""

    __tablename__ = "pos_sales"
    __table_args__ = (
        CheckConstraint(
            "payment_method IN ('card','cash')",
            name="ck_pos_sales_payment_method",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(
        ForeignKey("business_registrations.id"), nullable=False, index=True
    )
    sold_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False, default="card")

    business: Mapped["BusinessRegistration"] = relationship(
        "BusinessRegistration", back_populates="sales"
    )


__all__ = ["PosSale"]
