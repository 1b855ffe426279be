"""Lookup of monthly prompt reference text."""

from __future__ import annotations

from datetime import date
from typing import Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError

from app.backend.src.core.months import format_month
from app.backend.src.db import session_scope
from app.backend.src.models.prompt import PromptReference
from app.backend.src.schemas.report import PromptKind
from app.backend.src.services.report_errors import PersistenceError
from app.backend.src.services.report_store import SessionFactory

LOGGER = structlog.get_logger(__name__)


class PromptReferenceStore(Protocol):
    def get(self, month: date, kind: PromptKind) -> str:
        """Return the reference text, or an empty string when none exists."""
        ...


class SqlPromptReferenceStore:
    def __init__(self, session_factory: SessionFactory = session_scope) -> None:
        self._session_factory = session_factory

    def get(self, month: date, kind: PromptKind) -> str:
        month_value = format_month(month)
        try:
            with self._session_factory() as session:
                contents = (
                    session.query(PromptReference.contents)
                    .filter(
                        PromptReference.month == month_value,
                        PromptReference.kind == PromptKind(kind).value,
                    )
                    .scalar()
                )
        except SQLAlchemyError as exc:
            LOGGER.warning(
                "prompt_reference_read_failed", month=month_value, kind=str(kind), error=str(exc)
            )
            raise PersistenceError(f"Unable to read {kind} prompt for {month_value}") from exc

        return contents or ""


__all__ = ["PromptReferenceStore", "SqlPromptReferenceStore"]
