"""Report value types and content schemas."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.backend.src.core.months import format_month, month_start
from app.backend.src.services.report_errors import InvalidReportType


class ReportType(str, Enum):
    """Report kinds the engine knows how to generate."""

    MARKET = "MARKET_REPORT"
    INDUSTRY_COMPARISON = "INDUSTRY_REPORT"

    @classmethod
    def parse(cls, value: "ReportType | str") -> "ReportType":
        """Accept a member, its name or its wire value (case-insensitive)."""

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().upper()
            for member in cls:
                if normalized in {member.name, member.value}:
                    return member
        raise InvalidReportType(value)


class PromptKind(str, Enum):
    """Monthly reference text used to enrich market reports."""

    ISSUE = "issue"
    TREND = "trend"


@dataclass(frozen=True)
class ReportKey:
    """Identifies at most one persisted report."""

    business_id: int
    month: date
    report_type: ReportType

    def __post_init__(self) -> None:
        object.__setattr__(self, "month", month_start(self.month))
        object.__setattr__(self, "report_type", ReportType.parse(self.report_type))

    @property
    def cache_key(self) -> str:
        return f"{self.business_id}:{format_month(self.month)}:{self.report_type.value}"

    def __str__(self) -> str:
        return self.cache_key


@dataclass(frozen=True)
class ReportRecord:
    """A materialized report. Created once per key and never updated."""

    key: ReportKey
    content: dict[str, Any]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class BusinessRef:
    """Minimal view of a registered business."""

    id: int
    member_id: int | None = None
    name: str | None = None
    region: str | None = None
    industry: str | None = None


class _ReportContent(BaseModel):
    # Strict so "98" is not silently accepted for an integer field.
    model_config = ConfigDict(strict=True, extra="ignore")


class MarketReportContent(_ReportContent):
    """Monthly market-trend report for cafe operators."""

    month: str = Field(description="Report month in YYYY-MM form")
    BSI_index: int = Field(description="Latest Business Survey Index (BSI) value")
    BSI_description: str = Field(description="What the BSI value means for business sentiment")
    market_issue: str = Field(
        description="Price movements of key cafe ingredients (milk, coffee beans, sugar, ...)"
    )
    trend: str = Field(description="Latest cafe consumption trends")
    recommendations: list[str] = Field(
        description="Forecasts and recommendations for cafe operators based on the above"
    )


class IndustryComparisonReportContent(_ReportContent):
    """Comparison of a business's month against same-industry peers."""

    average_sale: str = Field(description="Peer average revenue, e.g. '약 1181만원'")
    average_expense: str = Field(description="Peer average expense, e.g. '약 821만원'")
    my_income: str = Field(description="This business's revenue, e.g. '약 281만원'")
    my_expense: str = Field(description="This business's expense, e.g. '약 181만원'")
    sale_description: str = Field(
        description="Revenue analysis versus peers: ratio, peak time slots, card/cash mix, advice"
    )
    expense_description: str = Field(
        description="Expense analysis versus peers by category with percentage gaps and advice"
    )


class ReportResponse(BaseModel):
    month: str
    report_type: ReportType
    content: dict[str, Any]


class AllReportsResponse(BaseModel):
    month: str
    reports: dict[str, dict[str, Any]]


class PreviousMonthStatus(BaseModel):
    month: str
    complete: bool


__all__ = [
    "AllReportsResponse",
    "BusinessRef",
    "IndustryComparisonReportContent",
    "MarketReportContent",
    "PreviousMonthStatus",
    "PromptKind",
    "ReportKey",
    "ReportRecord",
    "ReportResponse",
    "ReportType",
]
