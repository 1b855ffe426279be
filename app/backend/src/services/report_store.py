"""Keyed, write-once storage for generated reports."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Callable, Protocol

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.backend.src.db import session_scope
from app.backend.src.models.report import Report
from app.backend.src.schemas.report import ReportKey, ReportRecord
from app.backend.src.services.report_errors import PersistenceError, ReportConflict

LOGGER = structlog.get_logger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]


class ReportStore(Protocol):
    """Narrow interface the engine depends on."""

    def find(self, key: ReportKey) -> ReportRecord | None:
        ...

    def insert(self, record: ReportRecord) -> None:
        """Persist ``record``; raise :class:`ReportConflict` if the key is taken."""
        ...

    def exists(self, key: ReportKey) -> bool:
        ...


def _key_filter(key: ReportKey) -> tuple:
    return (
        Report.business_id == key.business_id,
        Report.report_month == key.month,
        Report.report_type == key.report_type.value,
    )


class SqlReportStore:
    """Report store backed by the ``reports`` table."""

    def __init__(self, session_factory: SessionFactory = session_scope) -> None:
        self._session_factory = session_factory

    def find(self, key: ReportKey) -> ReportRecord | None:
        try:
            with self._session_factory() as session:
                row = session.query(Report).filter(*_key_filter(key)).one_or_none()
                if row is None:
                    return None
                return ReportRecord(key=key, content=row.content, created_at=row.created_at)
        except SQLAlchemyError as exc:
            LOGGER.warning("report_store_read_failed", cache_key=key.cache_key, error=str(exc))
            raise PersistenceError(f"Unable to read report {key}") from exc

    def exists(self, key: ReportKey) -> bool:
        try:
            with self._session_factory() as session:
                found = session.query(Report.id).filter(*_key_filter(key)).first()
                return found is not None
        except SQLAlchemyError as exc:
            LOGGER.warning("report_store_exists_failed", cache_key=key.cache_key, error=str(exc))
            raise PersistenceError(f"Unable to check report {key}") from exc

    def insert(self, record: ReportRecord) -> None:
        key = record.key
        try:
            with self._session_factory() as session:
                session.add(
                    Report(
                        business_id=key.business_id,
                        report_month=key.month,
                        report_type=key.report_type.value,
                        content=record.content,
                        created_at=record.created_at,
                    )
                )
                session.flush()
        except IntegrityError as exc:
            LOGGER.info("report_insert_conflict", cache_key=key.cache_key)
            raise ReportConflict(key) from exc
        except SQLAlchemyError as exc:
            LOGGER.warning("report_store_write_failed", cache_key=key.cache_key, error=str(exc))
            raise PersistenceError(f"Unable to store report {key}") from exc


__all__ = ["ReportStore", "SessionFactory", "SqlReportStore"]
