"""Business expense model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .business import BusinessRegistration


class Expense(Base):
    """An outgoing payment categorized for comparison reports."""

    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(
        ForeignKey("business_registrations.id"), nullable=False, index=True
    )
    spent_on: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    # e.g. rent, labor, utilities, ingredients
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    business: Mapped["BusinessRegistration"] = relationship(
        "BusinessRegistration", back_populates="expenses"
    )


__all__ = ["Expense"]
