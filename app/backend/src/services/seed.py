"""Utilities for seeding development data."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from app.backend.src.core.months import format_month
from app.backend.src.models import BusinessRegistration, PromptReference
from app.backend.src.schemas.report import PromptKind

DEFAULT_MEMBER_ID = 1
DEFAULT_BUSINESS_NAME = "Demo Cafe"
DEFAULT_REGION = "Seoul Mapo-gu"
DEFAULT_INDUSTRY = "cafe"
DEFAULT_PROMPTS = {
    PromptKind.ISSUE: "Milk and coffee bean prices rose again this month while sugar held steady.",
    PromptKind.TREND: "Low-sugar drinks and seasonal dessert sets are driving weekend traffic.",
}


@dataclass
class SeedResult:
    """Information about the seeded business and prompt references."""

    business: BusinessRegistration
    business_created: bool
    prompts_created: list[str]


def seed_development_business(
    session: Session,
    *,
    member_id: int = DEFAULT_MEMBER_ID,
    business_name: str = DEFAULT_BUSINESS_NAME,
    region: str = DEFAULT_REGION,
    industry: str = DEFAULT_INDUSTRY,
    month: date | None = None,
) -> SeedResult:
    """Ensure a demo business and the month's prompt references exist.

    Existing prompt text is left untouched.
    """

    business = (
        session.query(BusinessRegistration)
        .filter(BusinessRegistration.member_id == member_id)
        .one_or_none()
    )
    business_created = False
    if business is None:
        business = BusinessRegistration(
            member_id=member_id,
            business_name=business_name,
            region=region,
            industry=industry,
        )
        session.add(business)
        session.flush()
        business_created = True

    month_value = format_month(month or date.today())
    prompts_created: list[str] = []
    for kind, contents in DEFAULT_PROMPTS.items():
        exists = (
            session.query(PromptReference.id)
            .filter(PromptReference.month == month_value, PromptReference.kind == kind.value)
            .first()
        )
        if exists is None:
            session.add(PromptReference(month=month_value, kind=kind.value, contents=contents))
            prompts_created.append(kind.value)
    session.flush()

    return SeedResult(
        business=business,
        business_created=business_created,
        prompts_created=prompts_created,
    )


__all__ = ["seed_development_business", "SeedResult"]
