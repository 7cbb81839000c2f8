"""
Unit tests for metrics endpoint.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from booking_engine.main import app
from booking_engine.metrics import (
    escrow_entries,
    gateway_latency,
    gateway_requests,
    reservation_transitions,
    settlement_duration,
    settlement_released,
)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    return TestClient(app)


@pytest.mark.unit
def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    """Test that /metrics endpoint returns Prometheus text format."""
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


@pytest.mark.unit
def test_metrics_endpoint_contains_engine_metrics(client: TestClient) -> None:
    """Test that every engine metric is exported once it has been touched."""
    reservation_transitions.labels(transition="create", outcome="success").inc()
    escrow_entries.labels(status="completed").inc()
    settlement_released.inc(2)
    settlement_duration.observe(0.2)
    gateway_requests.labels(operation="refund", outcome="success").inc()
    gateway_latency.labels(operation="refund").observe(0.3)

    content = client.get("/metrics").text

    assert "booking_reservation_transitions_total" in content
    assert "booking_escrow_entries_total" in content
    assert "booking_settlement_released_total" in content
    assert "booking_settlement_run_duration_seconds" in content
    assert "booking_gateway_requests_total" in content
    assert "booking_gateway_latency_seconds" in content


@pytest.mark.unit
def test_metrics_endpoint_includes_help_and_type_metadata(client: TestClient) -> None:
    """Test that metrics include Prometheus HELP and TYPE metadata."""
    content = client.get("/metrics").text

    assert "# HELP booking_reservation_transitions_total" in content
    assert "# TYPE booking_reservation_transitions_total counter" in content
