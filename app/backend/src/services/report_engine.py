"""Get-or-generate orchestration for monthly business reports."""

from __future__ import annotations

import asyncio
from datetime import date
from time import perf_counter
from typing import Any

import structlog
from pydantic import ValidationError

from app.backend.src.core.months import format_month, previous_month
from app.backend.src.schemas.report import (
    BusinessRef,
    PromptKind,
    ReportKey,
    ReportRecord,
    ReportType,
)
from app.backend.src.services.business_lookup import BusinessLookup
from app.backend.src.services.expense_metrics import ExpenseMetrics
from app.backend.src.services.generation_client import (
    GenerationClient,
    GenerationFailure,
    GenerationRequest,
    GenerationResult,
    GenerationSuccess,
)
from app.backend.src.services.inflight import InFlightRegistry, LocalInFlightRegistry
from app.backend.src.services.metrics import (
    report_generation_failures_total,
    report_generation_seconds,
    report_requests_total,
)
from app.backend.src.services.pos_metrics import PosMetrics
from app.backend.src.services.prompt_store import PromptReferenceStore
from app.backend.src.services.report_errors import (
    BusinessNotFound,
    GenerationFailed,
    GenerationFailureReason,
    InvalidReportType,
    PersistenceError,
    ReportConflict,
    ReportError,
)
from app.backend.src.services.report_prompts import get_report_definition
from app.backend.src.services.report_store import ReportStore

LOGGER = structlog.get_logger(__name__)


class ReportEngine:
    """Serve stored reports, generating and persisting them on a miss.

    Concurrent requests for the same missing report share one generation
    through the in-flight registry; the store is only written on success.
    """

    def __init__(
        self,
        *,
        businesses: BusinessLookup,
        report_store: ReportStore,
        prompt_store: PromptReferenceStore,
        pos_metrics: PosMetrics,
        expense_metrics: ExpenseMetrics,
        generation_client: GenerationClient,
        registry: InFlightRegistry | None = None,
        market_bsi_index: int = 98,
        max_attempts: int = 1,
    ) -> None:
        self._businesses = businesses
        self._reports = report_store
        self._prompts = prompt_store
        self._pos_metrics = pos_metrics
        self._expense_metrics = expense_metrics
        self._client = generation_client
        self._registry = registry if registry is not None else LocalInFlightRegistry()
        self._market_bsi_index = market_bsi_index
        self._max_attempts = max(1, max_attempts)

    async def get_or_create_report(
        self, business_id: int, month: date, report_type: ReportType | str
    ) -> dict[str, Any]:
        report_type = ReportType.parse(report_type)
        business = await self._resolve(business_id)
        key = ReportKey(business_id=business.id, month=month, report_type=report_type)

        record = await asyncio.to_thread(self._reports.find, key)
        if record is not None:
            LOGGER.info("report_cache_hit", cache_key=key.cache_key)
            report_requests_total.labels(report_type=report_type.value, outcome="hit").inc()
            return record.content

        outcome = "joined"

        async def produce() -> dict[str, Any]:
            nonlocal outcome
            outcome = "generated"
            stored = await asyncio.to_thread(self._reports.find, key)
            if stored is not None:
                # Written by the previous leader between our read and our claim.
                outcome = "hit"
                return stored.content
            return await self._generate_and_store(business, key)

        try:
            content = await self._registry.run(key, produce)
        except ReportError:
            report_requests_total.labels(report_type=report_type.value, outcome="failed").inc()
            raise

        report_requests_total.labels(report_type=report_type.value, outcome=outcome).inc()
        return content

    async def get_all_reports(self, business_id: int, month: date) -> dict[str, dict[str, Any]]:
        """Fetch every report type for one month; any failure fails the whole call."""

        report_types = list(ReportType)
        contents = await asyncio.gather(
            *(self.get_or_create_report(business_id, month, report_type) for report_type in report_types)
        )
        return {
            report_type.value: content for report_type, content in zip(report_types, contents)
        }

    async def has_all_reports_for_previous_month(
        self, business_id: int, *, today: date | None = None
    ) -> bool:
        """Return ``True`` when every report type exists for last month. Never generates."""

        business = await self._resolve(business_id)
        month = previous_month(today)
        for report_type in ReportType:
            key = ReportKey(business_id=business.id, month=month, report_type=report_type)
            if not await asyncio.to_thread(self._reports.exists, key):
                LOGGER.info("previous_month_report_missing", cache_key=key.cache_key)
                return False
        return True

    async def business_for_member(self, member_id: int) -> BusinessRef:
        business = await asyncio.to_thread(self._businesses.for_member, member_id)
        if business is None:
            raise BusinessNotFound(member_id=member_id)
        return business

    async def _resolve(self, business_id: int) -> BusinessRef:
        business = await asyncio.to_thread(self._businesses.resolve, business_id)
        if business is None:
            raise BusinessNotFound(business_id)
        return business

    async def _generate_and_store(self, business: BusinessRef, key: ReportKey) -> dict[str, Any]:
        LOGGER.info("report_generation_started", cache_key=key.cache_key)
        request = await self._build_request(business, key)
        content = await self._generate(request, key)

        record = ReportRecord(key=key, content=content)
        try:
            await asyncio.to_thread(self._reports.insert, record)
        except ReportConflict:
            # Another process stored the report first; records are never overwritten.
            stored = await asyncio.to_thread(self._reports.find, key)
            if stored is None:
                raise PersistenceError(f"Report {key} conflicted on insert but cannot be read")
            LOGGER.info("report_insert_lost_race", cache_key=key.cache_key)
            return stored.content

        LOGGER.info("report_generated", cache_key=key.cache_key)
        return content

    async def _build_request(self, business: BusinessRef, key: ReportKey) -> GenerationRequest:
        try:
            if key.report_type is ReportType.MARKET:
                context = await self._market_context(key.month)
            elif key.report_type is ReportType.INDUSTRY_COMPARISON:
                context = await self._industry_context(business.id, key.month)
            else:
                raise InvalidReportType(key.report_type)
        except ReportError:
            raise
        except Exception as exc:
            LOGGER.warning("report_context_failed", cache_key=key.cache_key, error=str(exc))
            raise PersistenceError(f"Unable to collect report context for {key}") from exc

        return GenerationRequest.for_report(key.report_type, context)

    async def _market_context(self, month: date) -> dict[str, Any]:
        issue, trend = await asyncio.gather(
            asyncio.to_thread(self._prompts.get, month, PromptKind.ISSUE),
            asyncio.to_thread(self._prompts.get, month, PromptKind.TREND),
        )
        return {
            "month": format_month(month),
            "bsi_index": self._market_bsi_index,
            "market_issue": issue,
            "trend": trend,
        }

    async def _industry_context(self, business_id: int, month: date) -> dict[str, Any]:
        market, category_expense, my_income, my_expense = await asyncio.gather(
            asyncio.to_thread(self._pos_metrics.average_market_metrics, month),
            asyncio.to_thread(self._expense_metrics.average_expense_by_category, business_id, month),
            asyncio.to_thread(self._pos_metrics.my_income_summary, business_id, month),
            asyncio.to_thread(self._expense_metrics.my_expense_summary, business_id, month),
        )
        return {
            "average_market_metrics": market,
            "average_expense_by_category": category_expense,
            "my_income": my_income,
            "my_expense": my_expense,
        }

    async def _generate(self, request: GenerationRequest, key: ReportKey) -> dict[str, Any]:
        report_type = key.report_type.value
        attempt = 0
        while True:
            attempt += 1
            started = perf_counter()
            try:
                result: GenerationResult = await asyncio.to_thread(self._client.generate, request)
            except Exception as exc:
                result = GenerationFailure(GenerationFailureReason.TRANSPORT_ERROR, str(exc))
            finally:
                report_generation_seconds.labels(report_type=report_type).observe(
                    perf_counter() - started
                )

            if isinstance(result, GenerationSuccess):
                try:
                    return self._validated(key, result.content)
                except GenerationFailed as exc:
                    result = GenerationFailure(exc.reason, exc.detail)

            report_generation_failures_total.labels(
                report_type=report_type, reason=result.reason.value
            ).inc()
            LOGGER.warning(
                "report_generation_failed",
                cache_key=key.cache_key,
                reason=result.reason.value,
                detail=result.detail,
                attempt=attempt,
            )
            retryable = result.reason is GenerationFailureReason.TRANSPORT_ERROR
            if retryable and attempt < self._max_attempts:
                continue
            raise GenerationFailed(result.reason, result.detail)

    @staticmethod
    def _validated(key: ReportKey, content: Any) -> dict[str, Any]:
        definition = get_report_definition(key.report_type)
        if not isinstance(content, dict):
            raise GenerationFailed(
                GenerationFailureReason.SCHEMA_VIOLATION, "generated content is not an object"
            )
        missing = definition.required_fields - content.keys()
        if missing:
            raise GenerationFailed(
                GenerationFailureReason.SCHEMA_VIOLATION,
                f"generated content is missing {', '.join(sorted(missing))}",
            )
        try:
            return definition.content_model.model_validate(content).model_dump(mode="json")
        except ValidationError as exc:
            raise GenerationFailed(GenerationFailureReason.SCHEMA_VIOLATION, str(exc)) from exc


__all__ = ["ReportEngine"]
