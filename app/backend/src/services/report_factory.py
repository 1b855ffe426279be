"""Construction of the report engine from settings."""

from __future__ import annotations

from functools import lru_cache

import structlog

from app.backend.src.core.config import Settings, get_settings
from app.backend.src.services.business_lookup import SqlBusinessLookup
from app.backend.src.services.expense_metrics import SqlExpenseMetrics
from app.backend.src.services.generation_client import OpenAIGenerationClient
from app.backend.src.services.inflight import (
    InFlightRegistry,
    LocalInFlightRegistry,
    RedisInFlightRegistry,
)
from app.backend.src.services.pos_metrics import SqlPosMetrics
from app.backend.src.services.prompt_store import SqlPromptReferenceStore
from app.backend.src.services.report_engine import ReportEngine
from app.backend.src.services.report_store import SqlReportStore

LOGGER = structlog.get_logger(__name__)


def build_registry(settings: Settings) -> InFlightRegistry:
    if settings.report_registry_backend == "redis":
        return RedisInFlightRegistry.from_settings(settings)
    return LocalInFlightRegistry()


def build_report_engine(settings: Settings) -> ReportEngine:
    registry = build_registry(settings)
    LOGGER.info(
        "report_engine_initialized",
        model=settings.openai_model,
        registry=settings.report_registry_backend,
        max_attempts=settings.report_generation_max_attempts,
    )
    return ReportEngine(
        businesses=SqlBusinessLookup(),
        report_store=SqlReportStore(),
        prompt_store=SqlPromptReferenceStore(),
        pos_metrics=SqlPosMetrics(),
        expense_metrics=SqlExpenseMetrics(),
        generation_client=OpenAIGenerationClient.from_settings(settings),
        registry=registry,
        market_bsi_index=settings.market_bsi_index,
        max_attempts=settings.report_generation_max_attempts,
    )


@lru_cache()
def get_report_engine() -> ReportEngine:
    """Return the process-wide engine; one registry is shared by every caller."""

    return build_report_engine(get_settings())


__all__ = ["build_registry", "build_report_engine", "get_report_engine"]
