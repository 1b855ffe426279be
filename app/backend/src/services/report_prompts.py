"""Prompt and schema definitions for each report type."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pydantic import BaseModel

from app.backend.src.schemas.report import (
    IndustryComparisonReportContent,
    MarketReportContent,
    ReportType,
)

PromptBuilder = Callable[[Mapping[str, Any]], str]


@dataclass(frozen=True)
class ReportDefinition:
    """Everything the generation client needs to know about a report type."""

    report_type: ReportType
    function_name: str
    description: str
    content_model: type[BaseModel]
    system_prompt: PromptBuilder
    user_prompt: PromptBuilder

    @property
    def response_schema(self) -> dict[str, Any]:
        return self.content_model.model_json_schema()

    @property
    def required_fields(self) -> frozenset[str]:
        return frozenset(
            name for name, info in self.content_model.model_fields.items() if info.is_required()
        )


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def _market_system_prompt(context: Mapping[str, Any]) -> str:
    return (
        f"You write the {context.get('month')} monthly market trend report for Korean cafe "
        "operators, based on Korean economic news and public data (Bank of Korea, Korea "
        "Meteorological Administration, Ministry of Agriculture, Statistics Korea). "
        "Answer in a friendly, approachable tone."
    )


def _market_user_prompt(context: Mapping[str, Any]) -> str:
    month = context.get("month")
    bsi_index = context.get("bsi_index")
    return f"""
Organize the following information as JSON:

1. month: {month}
2. BSI_index: {bsi_index}
3. BSI_description: the business outlook implied by a BSI of {bsi_index} (grounded in real data)
4. market_issue: {_as_text(context.get("market_issue")) or "price movements of key cafe ingredients"}
5. trend: {_as_text(context.get("trend")) or "latest cafe consumption trends in Korea"}
6. recommendations: recommendations for cafe operators derived from the information above

Base everything on the most recent accurate sources available and do not invent data.
"""


def _industry_system_prompt(context: Mapping[str, Any]) -> str:
    return f"""
You write comparison reports for cafe owners. The following data describes cafe revenue and expenses.

Peer averages:
- Average revenue: {_as_text(context.get("average_market_metrics"))}
- Average expense by category: {_as_text(context.get("average_expense_by_category"))}

This cafe:
- Revenue: {_as_text(context.get("my_income"))}
- Expense: {_as_text(context.get("my_expense"))}

Compare this cafe with its peers and return the analysis as JSON in a friendly tone.
"""


def _industry_user_prompt(context: Mapping[str, Any]) -> str:
    return """
Organize the following as JSON. Write every amount as "약 N만원", rounding to the nearest
10,000 KRW (5145000.00 -> "약 515만원", 11814000 -> "약 1181만원").

1. average_sale: peer average revenue
2. average_expense: peer average expense
3. my_income: this cafe's revenue
4. my_expense: this cafe's expense
5. sale_description: revenue versus peers, covering
   - the ratio to peer revenue ("10% lower than nearby cafes")
   - the time slots where most revenue happens
   - the card versus cash split
   - concrete advice for growing revenue in the weakest time slots
6. expense_description: expenses versus peers, covering
   - comparison by category (labor, utilities, rent, ...)
   - the peer average for each category
   - how many percent above or below average this cafe is
   - concrete advice for cutting the categories that run above average
"""


REPORT_DEFINITIONS: dict[ReportType, ReportDefinition] = {
    ReportType.MARKET: ReportDefinition(
        report_type=ReportType.MARKET,
        function_name="generateMarketReport",
        description=(
            "Create the monthly market trend report summarizing key ingredient price "
            "movements and cafe beverage and dessert consumption trends."
        ),
        content_model=MarketReportContent,
        system_prompt=_market_system_prompt,
        user_prompt=_market_user_prompt,
    ),
    ReportType.INDUSTRY_COMPARISON: ReportDefinition(
        report_type=ReportType.INDUSTRY_COMPARISON,
        function_name="generateIndustryComparisonReport",
        description="Create a revenue and expense comparison against same-industry peers.",
        content_model=IndustryComparisonReportContent,
        system_prompt=_industry_system_prompt,
        user_prompt=_industry_user_prompt,
    ),
}


def get_report_definition(report_type: ReportType | str) -> ReportDefinition:
    return REPORT_DEFINITIONS[ReportType.parse(report_type)]


__all__ = ["REPORT_DEFINITIONS", "ReportDefinition", "get_report_definition"]
