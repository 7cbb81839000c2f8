"""
Integration tests for the /availability endpoints.
"""

from __future__ import annotations

from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from factories import as_user, at


@pytest.mark.integration
def test_host_declares_weekly_window_and_lists_slots(client: TestClient, host_id: UUID) -> None:
    created = client.post(
        "/availability",
        json={
            "start_at": at(23, 9, month=2).isoformat(),
            "end_at": at(23, 12, month=2).isoformat(),
            "recurrence": "weekly",
            "days_of_week": [2, 0],
        },
        headers=as_user(host_id),
    )

    assert created.status_code == 201
    assert created.json()["days_of_week"] == [0, 2]

    slots = client.get(
        f"/availability/hosts/{host_id}",
        params={"start": at(2, 0).isoformat(), "end": at(9, 0).isoformat()},
    )

    assert slots.status_code == 200
    assert [s["start_at"] for s in slots.json()] == [
        "2026-03-02T09:00:00Z",
        "2026-03-04T09:00:00Z",
    ]


@pytest.mark.integration
def test_customers_cannot_declare_availability(client: TestClient, customer_id: UUID) -> None:
    response = client.post(
        "/availability",
        json={"start_at": at(4, 9).isoformat(), "end_at": at(4, 12).isoformat()},
        headers=as_user(customer_id),
    )

    assert response.status_code == 403


@pytest.mark.integration
def test_invalid_weekday_is_422(client: TestClient, host_id: UUID) -> None:
    response = client.post(
        "/availability",
        json={
            "start_at": at(4, 9).isoformat(),
            "end_at": at(4, 12).isoformat(),
            "recurrence": "weekly",
            "days_of_week": [7],
        },
        headers=as_user(host_id),
    )

    assert response.status_code == 422


@pytest.mark.integration
def test_range_too_wide_is_400(client: TestClient, weekly_host: UUID) -> None:
    response = client.get(
        f"/availability/hosts/{weekly_host}",
        params={"start": at(1, 0).isoformat(), "end": at(1, 0, month=12).isoformat()},
    )

    assert response.status_code == 400


@pytest.mark.integration
def test_retire_by_non_owner_is_403(
    client: TestClient, host_id: UUID, customer_id: UUID
) -> None:
    created = client.post(
        "/availability",
        json={"start_at": at(4, 9).isoformat(), "end_at": at(4, 12).isoformat()},
        headers=as_user(host_id),
    ).json()

    denied = client.delete(f"/availability/{created['id']}", headers=as_user(customer_id))
    retired = client.delete(f"/availability/{created['id']}", headers=as_user(host_id))

    assert denied.status_code == 403
    assert retired.status_code == 200
