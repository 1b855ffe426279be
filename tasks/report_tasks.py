"""Celery tasks for back-filling monthly reports."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any

import structlog

from app.backend.src.core.months import format_month, previous_month
from app.backend.src.services.report_factory import get_report_engine
from .worker import celery

LOGGER = structlog.get_logger(__name__)


async def backfill_previous_month(business_id: int, *, today: date | None = None) -> dict[str, Any]:
    """Generate last month's reports for a business unless they all exist."""

    engine = get_report_engine()
    month = previous_month(today)
    if await engine.has_all_reports_for_previous_month(business_id, today=today):
        return {"status": "complete", "month": format_month(month)}

    reports = await engine.get_all_reports(business_id, month)
    return {
        "status": "generated",
        "month": format_month(month),
        "report_types": sorted(reports),
    }


@celery.task(name="tasks.backfill_previous_month_reports")
def backfill_previous_month_reports(business_id: int) -> dict[str, Any]:
    """Scheduler entrypoint for the previous-month back-fill."""

    try:
        result = asyncio.run(backfill_previous_month(business_id))
    except Exception as exc:  # logged and re-raised so Celery records the failure
        LOGGER.error("report_backfill_failed", business_id=business_id, error=str(exc))
        raise
    LOGGER.info("report_backfill_finished", business_id=business_id, **result)
    return result


__all__ = ["backfill_previous_month", "backfill_previous_month_reports"]
