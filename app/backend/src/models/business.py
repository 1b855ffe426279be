"""Business registration model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .expense import Expense
    from .pos_sale import PosSale
    from .report import Report


class BusinessRegistration(Base):
    """A registered small business owned by a member."""

    __tablename__ = "business_registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    region: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    reports: Mapped[list["Report"]] = relationship(
        "Report", back_populates="business", cascade="all, delete-orphan"
    )
    sales: Mapped[list["PosSale"]] = relationship(
        "PosSale", back_populates="business", cascade="all, delete-orphan"
    )
    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", back_populates="business", cascade="all, delete-orphan"
    )


__all__ = ["BusinessRegistration"]
