"""Materialized report storage."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .business import BusinessRegistration


class Report(Base):
    """Generated report content, written once per (business, month, type)."""

    __tablename__ = "reports"
    __table_args__ = (
        UniqueConstraint(
            "business_id",
            "report_month",
            "report_type",
            name="uq_reports_business_month_type",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(
        ForeignKey("business_registrations.id"), nullable=False, index=True
    )

    # Always the first day of the month
    report_month: Mapped[date] = mapped_column(Date, nullable=False)
    report_type: Mapped[str] = mapped_column(String(64), nullable=False)

    content: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    business: Mapped["BusinessRegistration"] = relationship(
        "BusinessRegistration", back_populates="reports"
    )


__all__ = ["Report"]
