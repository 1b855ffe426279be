"""Monthly business report endpoints."""

from __future__ import annotations

from datetime import date

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.backend.src.core.months import format_month, parse_month, previous_month
from app.backend.src.core.security import CurrentMember, get_current_member
from app.backend.src.schemas.report import (
    AllReportsResponse,
    PreviousMonthStatus,
    ReportResponse,
    ReportType,
)
from app.backend.src.services.report_engine import ReportEngine
from app.backend.src.services.report_errors import (
    BusinessNotFound,
    GenerationFailed,
    InvalidReportType,
    PersistenceError,
    ReportError,
)
from app.backend.src.services.report_factory import get_report_engine

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


def _parse_month_or_400(value: str) -> date:
    try:
        return parse_month(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Month must be formatted as YYYY-MM.",
        ) from exc


def _to_http_error(exc: ReportError) -> HTTPException:
    if isinstance(exc, InvalidReportType):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, BusinessNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, GenerationFailed):
        LOGGER.warning("report_request_generation_failed", reason=exc.reason.value, detail=exc.detail)
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "message": "Report generation is temporarily unavailable. Please try again later.",
                "reason": exc.reason.value,
            },
        )
    if isinstance(exc, PersistenceError):
        LOGGER.error("report_request_persistence_failed", error=str(exc))
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Report storage is temporarily unavailable. Please try again later.",
        )
    LOGGER.error("report_request_failed", error=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Report request failed.",
    )


@router.get("/previous-month/status", response_model=PreviousMonthStatus)
async def previous_month_status(
    member: CurrentMember = Depends(get_current_member),
    engine: ReportEngine = Depends(get_report_engine),
) -> PreviousMonthStatus:
    """Report whether every report type exists for last month."""

    try:
        business = await engine.business_for_member(member.member_id)
        complete = await engine.has_all_reports_for_previous_month(business.id)
    except ReportError as exc:
        raise _to_http_error(exc) from exc
    return PreviousMonthStatus(month=format_month(previous_month()), complete=complete)


@router.get("/{month}", response_model=ReportResponse)
async def get_report(
    month: str,
    report_type: str = Query(default=ReportType.MARKET.value),
    member: CurrentMember = Depends(get_current_member),
    engine: ReportEngine = Depends(get_report_engine),
) -> ReportResponse:
    """Return one report, generating it on first request."""

    report_month = _parse_month_or_400(month)
    try:
        parsed_type = ReportType.parse(report_type)
        business = await engine.business_for_member(member.member_id)
        content = await engine.get_or_create_report(business.id, report_month, parsed_type)
    except ReportError as exc:
        raise _to_http_error(exc) from exc
    return ReportResponse(month=format_month(report_month), report_type=parsed_type, content=content)


@router.get("/{month}/all", response_model=AllReportsResponse)
async def get_all_reports(
    month: str,
    member: CurrentMember = Depends(get_current_member),
    engine: ReportEngine = Depends(get_report_engine),
) -> AllReportsResponse:
    """Return every report type for the month, or fail as a whole."""

    report_month = _parse_month_or_400(month)
    try:
        business = await engine.business_for_member(member.member_id)
        reports = await engine.get_all_reports(business.id, report_month)
    except ReportError as exc:
        raise _to_http_error(exc) from exc
    return AllReportsResponse(month=format_month(report_month), reports=reports)


__all__ = ["router"]
