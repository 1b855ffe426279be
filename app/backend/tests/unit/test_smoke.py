"""Integration-flavored smoke tests for the FastAPI app."""

from __future__ import annotations

import os
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

# Configure environment before application imports
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_reports.db")

import pytest
from fastapi.testclient import TestClient

from app.backend.src.db import get_engine
from app.backend.src.main import app
from app.backend.src.models.base import Base


@pytest.fixture(scope="module", autouse=True)
def setup_database() -> None:
    engine = get_engine()
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def test_liveness_endpoint(client: TestClient) -> None:
    response = client.get("/api/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "live"


def test_readiness_reports_registry_backend(client: TestClient) -> None:
    response = client.get("/api/health/ready")
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "ready"
    assert body["registry"] in {"local", "redis"}


def test_metrics_endpoint_exposes_report_counters(client: TestClient) -> None:
    response = client.get("/api/metrics")
    assert response.status_code == 200
    assert "report_requests_total" in response.text
