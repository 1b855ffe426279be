"""Sales summaries derived from POS transactions."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time
from typing import Any, Protocol

from sqlalchemy import func

from app.backend.src.core.months import format_month, month_bounds
from app.backend.src.db import session_scope
from app.backend.src.models.pos_sale import PosSale
from app.backend.src.services.report_store import SessionFactory

# (slot, first hour, end hour exclusive); anything else is "night"
TIME_SLOTS: tuple[tuple[str, int, int], ...] = (
    ("morning", 6, 11),
    ("afternoon", 11, 17),
    ("evening", 17, 22),
)


class PosMetrics(Protocol):
    def average_market_metrics(self, month: date) -> dict[str, Any]:
        ...

    def my_income_summary(self, business_id: int, month: date) -> dict[str, Any]:
        ...


def time_slot(moment: datetime) -> str:
    for name, start, end in TIME_SLOTS:
        if start <= moment.hour < end:
            return name
    return "night"


def _month_window(month: date) -> tuple[datetime, datetime]:
    start, end = month_bounds(month)
    return datetime.combine(start, time.min), datetime.combine(end, time.min)


class SqlPosMetrics:
    def __init__(self, session_factory: SessionFactory = session_scope) -> None:
        self._session_factory = session_factory

    def average_market_metrics(self, month: date) -> dict[str, Any]:
        """Average monthly revenue and transaction count across all businesses."""

        start, end = _month_window(month)
        with self._session_factory() as session:
            rows = (
                session.query(
                    PosSale.business_id,
                    func.sum(PosSale.amount),
                    func.count(PosSale.id),
                )
                .filter(PosSale.sold_at >= start, PosSale.sold_at < end)
                .group_by(PosSale.business_id)
                .all()
            )

        business_count = len(rows)
        if not business_count:
            return {
                "month": format_month(month),
                "business_count": 0,
                "average_revenue": 0.0,
                "average_transactions": 0.0,
            }

        total_revenue = sum(float(revenue or 0) for _, revenue, _ in rows)
        total_transactions = sum(int(count or 0) for _, _, count in rows)
        return {
            "month": format_month(month),
            "business_count": business_count,
            "average_revenue": round(total_revenue / business_count, 2),
            "average_transactions": round(total_transactions / business_count, 2),
        }

    def my_income_summary(self, business_id: int, month: date) -> dict[str, Any]:
        """Revenue totals for one business, split by time slot and payment method."""

        start, end = _month_window(month)
        with self._session_factory() as session:
            rows = (
                session.query(PosSale.sold_at, PosSale.amount, PosSale.payment_method)
                .filter(
                    PosSale.business_id == business_id,
                    PosSale.sold_at >= start,
                    PosSale.sold_at < end,
                )
                .all()
            )

        by_slot: dict[str, float] = defaultdict(float)
        by_method: dict[str, float] = {"card": 0.0, "cash": 0.0}
        total = 0.0
        for sold_at, amount, method in rows:
            value = float(amount or 0)
            total += value
            by_slot[time_slot(sold_at)] += value
            by_method[method] = by_method.get(method, 0.0) + value

        return {
            "month": format_month(month),
            "total_revenue": round(total, 2),
            "transaction_count": len(rows),
            "revenue_by_time_slot": {
                name: round(by_slot.get(name, 0.0), 2)
                for name in [slot[0] for slot in TIME_SLOTS] + ["night"]
            },
            "card_revenue": round(by_method["card"], 2),
            "cash_revenue": round(by_method["cash"], 2),
            "card_share": round(by_method["card"] / total, 4) if total else 0.0,
        }


__all__ = ["PosMetrics", "SqlPosMetrics", "TIME_SLOTS", "time_slot"]
