"""Unit tests for the previous-month back-fill task."""

from __future__ import annotations

import asyncio
import os
import sys
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_reports.db")

import pytest

from app.backend.src.services.report_errors import GenerationFailed, GenerationFailureReason
from tasks import report_tasks


class BackfillEngine:
    def __init__(self, *, complete: bool, error: Exception | None = None) -> None:
        self.complete = complete
        self.error = error
        self.generated: list[tuple[int, date]] = []

    async def has_all_reports_for_previous_month(self, business_id, *, today=None):
        return self.complete

    async def get_all_reports(self, business_id, month):
        if self.error is not None:
            raise self.error
        self.generated.append((business_id, month))
        return {"INDUSTRY_REPORT": {}, "MARKET_REPORT": {}}


def test_backfill_skips_complete_months(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = BackfillEngine(complete=True)
    monkeypatch.setattr(report_tasks, "get_report_engine", lambda: engine)

    result = asyncio.run(report_tasks.backfill_previous_month(1, today=date(2025, 1, 15)))

    assert result == {"status": "complete", "month": "2024-12"}
    assert engine.generated == []


def test_backfill_generates_missing_reports(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = BackfillEngine(complete=False)
    monkeypatch.setattr(report_tasks, "get_report_engine", lambda: engine)

    result = asyncio.run(report_tasks.backfill_previous_month(1, today=date(2025, 1, 15)))

    assert result == {
        "status": "generated",
        "month": "2024-12",
        "report_types": ["INDUSTRY_REPORT", "MARKET_REPORT"],
    }
    assert engine.generated == [(1, date(2024, 12, 1))]


def test_celery_task_reraises_generation_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = BackfillEngine(
        complete=False,
        error=GenerationFailed(GenerationFailureReason.UPSTREAM_ERROR, "refused"),
    )
    monkeypatch.setattr(report_tasks, "get_report_engine", lambda: engine)

    with pytest.raises(GenerationFailed):
        report_tasks.backfill_previous_month_reports(1)
