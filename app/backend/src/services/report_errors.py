"""Error taxonomy for report generation.

Collaborator failures are wrapped into these types before they leave the
engine so callers never see transport or ORM specific exceptions.
"""

from __future__ import annotations

from enum import Enum


class ReportError(Exception):
    """Base class for every report-engine failure."""


class ClientError(ReportError):
    """Caller mistake; surfaced as-is and never retried."""


class BusinessNotFound(ClientError):
    def __init__(self, business_id: int | None = None, *, member_id: int | None = None) -> None:
        self.business_id = business_id
        self.member_id = member_id
        if member_id is not None:
            message = f"No business registration exists for member {member_id}"
        else:
            message = f"Business {business_id} does not exist"
        super().__init__(message)


class InvalidReportType(ClientError):
    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid report type: {value!r}")


class GenerationFailureReason(str, Enum):
    """Why a generation attempt produced no usable content."""

    TRANSPORT_ERROR = "TransportError"
    SCHEMA_VIOLATION = "SchemaViolation"
    UPSTREAM_ERROR = "UpstreamError"


class GenerationFailed(ReportError):
    """The generation service did not yield a valid report."""

    def __init__(self, reason: GenerationFailureReason, detail: str = "") -> None:
        self.reason = GenerationFailureReason(reason)
        self.detail = detail
        super().__init__(f"Report generation failed ({self.reason.value}): {detail}")


class PersistenceError(ReportError):
    """A backing store was unavailable or rejected the operation."""


class ReportConflict(ReportError):
    """A record already exists for the key being inserted."""

    def __init__(self, key: object) -> None:
        self.key = key
        super().__init__(f"A report already exists for {key}")


__all__ = [
    "BusinessNotFound",
    "ClientError",
    "GenerationFailed",
    "GenerationFailureReason",
    "InvalidReportType",
    "PersistenceError",
    "ReportConflict",
    "ReportError",
]
