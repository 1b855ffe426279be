"""Unit tests for the SQL-backed report, prompt and business adapters."""

from __future__ import annotations

import os
import sys
from contextlib import contextmanager
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_reports.db")

import pytest
from sqlalchemy.exc import OperationalError

from app.backend.src.db import get_engine, session_scope
from app.backend.src.models import BusinessRegistration, PromptReference, Report
from app.backend.src.models.base import Base
from app.backend.src.schemas.report import PromptKind, ReportKey, ReportRecord, ReportType
from app.backend.src.services.business_lookup import SqlBusinessLookup
from app.backend.src.services.prompt_store import SqlPromptReferenceStore
from app.backend.src.services.report_errors import PersistenceError, ReportConflict
from app.backend.src.services.report_store import SqlReportStore
from app.backend.src.services.seed import DEFAULT_PROMPTS, seed_development_business

NOVEMBER = date(2024, 11, 1)


@pytest.fixture(autouse=True)
def setup_database() -> None:  # type: ignore[no-untyped-def]
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def business_id() -> int:
    with session_scope() as session:
        business = BusinessRegistration(
            member_id=7, business_name="Corner Cafe", region="Seoul Mapo-gu", industry="cafe"
        )
        session.add(business)
        session.flush()
        return business.id


@contextmanager
def _broken_session():
    raise OperationalError("SELECT 1", {}, Exception("database is locked"))
    yield  # pragma: no cover


def test_insert_then_find_round_trips_content(business_id: int) -> None:
    store = SqlReportStore()
    key = ReportKey(business_id=business_id, month=NOVEMBER, report_type=ReportType.MARKET)

    assert store.find(key) is None
    assert store.exists(key) is False

    store.insert(ReportRecord(key=key, content={"month": "2024-11", "recommendations": ["a"]}))

    record = store.find(key)
    assert record is not None
    assert record.content == {"month": "2024-11", "recommendations": ["a"]}
    assert record.key == key
    assert store.exists(key) is True


def test_reports_are_keyed_by_type_and_month(business_id: int) -> None:
    store = SqlReportStore()
    market = ReportKey(business_id=business_id, month=NOVEMBER, report_type=ReportType.MARKET)
    store.insert(ReportRecord(key=market, content={"kind": "market"}))

    industry = ReportKey(
        business_id=business_id, month=NOVEMBER, report_type=ReportType.INDUSTRY_COMPARISON
    )
    december = ReportKey(business_id=business_id, month=date(2024, 12, 1), report_type="MARKET_REPORT")

    assert store.find(industry) is None
    assert store.find(december) is None
    assert store.find(ReportKey(business_id, date(2024, 11, 30), ReportType.MARKET)) is not None


def test_second_insert_for_same_key_conflicts(business_id: int) -> None:
    store = SqlReportStore()
    key = ReportKey(business_id=business_id, month=NOVEMBER, report_type=ReportType.MARKET)
    store.insert(ReportRecord(key=key, content={"first": True}))

    with pytest.raises(ReportConflict):
        store.insert(ReportRecord(key=key, content={"second": True}))

    assert store.find(key).content == {"first": True}
    with session_scope() as session:
        assert session.query(Report).count() == 1


def test_store_errors_surface_as_persistence_errors() -> None:
    store = SqlReportStore(session_factory=_broken_session)
    key = ReportKey(business_id=1, month=NOVEMBER, report_type=ReportType.MARKET)

    with pytest.raises(PersistenceError):
        store.find(key)
    with pytest.raises(PersistenceError):
        store.exists(key)
    with pytest.raises(PersistenceError):
        store.insert(ReportRecord(key=key, content={}))


def test_prompt_store_returns_text_or_empty_string() -> None:
    with session_scope() as session:
        session.add(PromptReference(month="2024-11", kind="issue", contents="Milk prices up"))

    prompts = SqlPromptReferenceStore()

    assert prompts.get(NOVEMBER, PromptKind.ISSUE) == "Milk prices up"
    assert prompts.get(NOVEMBER, PromptKind.TREND) == ""
    assert prompts.get(date(2024, 10, 1), PromptKind.ISSUE) == ""


def test_prompt_store_errors_surface_as_persistence_errors() -> None:
    prompts = SqlPromptReferenceStore(session_factory=_broken_session)

    with pytest.raises(PersistenceError):
        prompts.get(NOVEMBER, PromptKind.ISSUE)


def test_business_lookup_by_id_and_member(business_id: int) -> None:
    lookup = SqlBusinessLookup()

    business = lookup.resolve(business_id)
    assert business is not None
    assert business.member_id == 7
    assert business.name == "Corner Cafe"
    assert business.region == "Seoul Mapo-gu"

    assert lookup.for_member(7).id == business_id
    assert lookup.resolve(business_id + 100) is None
    assert lookup.for_member(8) is None


def test_business_lookup_errors_surface_as_persistence_errors() -> None:
    lookup = SqlBusinessLookup(session_factory=_broken_session)

    with pytest.raises(PersistenceError):
        lookup.resolve(1)


def test_seed_is_idempotent() -> None:
    with session_scope() as session:
        first = seed_development_business(session, month=NOVEMBER)
        assert first.business_created is True
        assert sorted(first.prompts_created) == ["issue", "trend"]

    with session_scope() as session:
        second = seed_development_business(session, month=NOVEMBER)
        assert second.business_created is False
        assert second.prompts_created == []
        assert session.query(BusinessRegistration).count() == 1

    prompts = SqlPromptReferenceStore()
    assert prompts.get(NOVEMBER, PromptKind.TREND) == DEFAULT_PROMPTS[PromptKind.TREND]
