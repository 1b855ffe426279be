"""Resolution of callers and identifiers to registered businesses."""

from __future__ import annotations

from typing import Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError

from app.backend.src.db import session_scope
from app.backend.src.models.business import BusinessRegistration
from app.backend.src.schemas.report import BusinessRef
from app.backend.src.services.report_errors import PersistenceError
from app.backend.src.services.report_store import SessionFactory

LOGGER = structlog.get_logger(__name__)


class BusinessLookup(Protocol):
    def resolve(self, business_id: int) -> BusinessRef | None:
        ...

    def for_member(self, member_id: int) -> BusinessRef | None:
        ...


def _to_ref(row: BusinessRegistration) -> BusinessRef:
    return BusinessRef(
        id=row.id,
        member_id=row.member_id,
        name=row.business_name,
        region=row.region,
        industry=row.industry,
    )


class SqlBusinessLookup:
    def __init__(self, session_factory: SessionFactory = session_scope) -> None:
        self._session_factory = session_factory

    def resolve(self, business_id: int) -> BusinessRef | None:
        return self._first(BusinessRegistration.id == business_id)

    def for_member(self, member_id: int) -> BusinessRef | None:
        return self._first(BusinessRegistration.member_id == member_id)

    def _first(self, criterion) -> BusinessRef | None:
        try:
            with self._session_factory() as session:
                row = session.query(BusinessRegistration).filter(criterion).one_or_none()
                return _to_ref(row) if row is not None else None
        except SQLAlchemyError as exc:
            LOGGER.warning("business_lookup_failed", error=str(exc))
            raise PersistenceError("Unable to look up business registration") from exc


__all__ = ["BusinessLookup", "SqlBusinessLookup"]
