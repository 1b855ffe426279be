"""Expense summaries for industry comparison reports."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Any, Protocol

from sqlalchemy import func

from app.backend.src.core.months import format_month, month_bounds
from app.backend.src.db import session_scope
from app.backend.src.models.business import BusinessRegistration
from app.backend.src.models.expense import Expense
from app.backend.src.services.report_store import SessionFactory


class ExpenseMetrics(Protocol):
    def average_expense_by_category(self, business_id: int, month: date) -> dict[str, Any]:
        ...

    def my_expense_summary(self, business_id: int, month: date) -> dict[str, Any]:
        ...


class SqlExpenseMetrics:
    def __init__(self, session_factory: SessionFactory = session_scope) -> None:
        self._session_factory = session_factory

    def average_expense_by_category(self, business_id: int, month: date) -> dict[str, Any]:
        """Per-category average spend of businesses in the same region.

        Businesses without a region are compared against every business.
        """

        start, end = month_bounds(month)
        with self._session_factory() as session:
            region = (
                session.query(BusinessRegistration.region)
                .filter(BusinessRegistration.id == business_id)
                .scalar()
            )
            query = (
                session.query(
                    Expense.business_id,
                    Expense.category,
                    func.sum(Expense.amount),
                )
                .join(BusinessRegistration, BusinessRegistration.id == Expense.business_id)
                .filter(Expense.spent_on >= start, Expense.spent_on < end)
            )
            if region:
                query = query.filter(BusinessRegistration.region == region)
            rows = query.group_by(Expense.business_id, Expense.category).all()

        peers = {peer_id for peer_id, _, _ in rows}
        category_totals: dict[str, float] = defaultdict(float)
        for _, category, amount in rows:
            category_totals[category] += float(amount or 0)

        peer_count = len(peers)
        categories = {
            category: round(total / peer_count, 2)
            for category, total in sorted(category_totals.items())
        } if peer_count else {}
        return {
            "month": format_month(month),
            "region": region,
            "business_count": peer_count,
            "average_total": round(sum(categories.values()), 2),
            "categories": categories,
        }

    def my_expense_summary(self, business_id: int, month: date) -> dict[str, Any]:
        start, end = month_bounds(month)
        with self._session_factory() as session:
            rows = (
                session.query(Expense.category, func.sum(Expense.amount))
                .filter(
                    Expense.business_id == business_id,
                    Expense.spent_on >= start,
                    Expense.spent_on < end,
                )
                .group_by(Expense.category)
                .all()
            )

        categories = {category: round(float(amount or 0), 2) for category, amount in sorted(rows)}
        return {
            "month": format_month(month),
            "total_expense": round(sum(categories.values()), 2),
            "categories": categories,
        }


__all__ = ["ExpenseMetrics", "SqlExpenseMetrics"]
