"""Prometheus metric definitions for report generation."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

report_requests_total = Counter(
    "report_requests_total",
    "Report requests by report type and outcome (hit, generated, joined, failed).",
    labelnames=["report_type", "outcome"],
)

report_generation_seconds = Histogram(
    "report_generation_seconds",
    "Time spent waiting on the generation service for a single report.",
    labelnames=["report_type"],
)

report_generation_failures_total = Counter(
    "report_generation_failures_total",
    "Failed generation attempts by report type and failure reason.",
    labelnames=["report_type", "reason"],
)

__all__ = [
    "report_generation_failures_total",
    "report_generation_seconds",
    "report_requests_total",
]
