"""
Integration tests for the /calls and /users endpoints.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from booking_engine.models.enums import ReservationStatus
from factories import NOW, FakeTokenAuthority, as_user, at, make_reservation

INTERNAL = {"X-Internal-Token": "test-internal-token"}


@pytest.mark.integration
def test_customer_joins_call_shortly_before_start(
    client: TestClient,
    db_engine: Engine,
    customer_id: UUID,
    host_id: UUID,
    token_authority: FakeTokenAuthority,
) -> None:
    reservation_id = make_reservation(
        db_engine, customer_id, host_id, NOW + timedelta(minutes=5), NOW + timedelta(minutes=65)
    )

    response = client.post(f"/calls/{reservation_id}/token", headers=as_user(customer_id))

    assert response.status_code == 200
    body = response.json()
    uid = customer_id.int % 100000
    assert body == {
        "token": f"token-session-{reservation_id}-{uid}",
        "channel": f"session-{reservation_id}",
        "uid": uid,
        "role": "subscriber",
        "expires_at": "2026-02-23T10:00:00Z",
    }
    assert token_authority.minted[0]["role"] == "subscriber"


@pytest.mark.integration
def test_call_token_rules(
    client: TestClient,
    db_engine: Engine,
    customer_id: UUID,
    other_customer_id: UUID,
    host_id: UUID,
) -> None:
    """Test early-join, participant and status checks on the call token route."""
    confirmed = make_reservation(db_engine, customer_id, host_id, at(4, 10), at(4, 11))
    pending = make_reservation(
        db_engine, customer_id, host_id, at(4, 11), at(4, 12), status=ReservationStatus.PENDING
    )

    host = client.post(f"/calls/{confirmed}/token", headers=as_user(host_id))
    too_early = client.post(f"/calls/{confirmed}/token", headers=as_user(customer_id))
    stranger = client.post(f"/calls/{confirmed}/token", headers=as_user(other_customer_id))
    unpaid = client.post(f"/calls/{pending}/token", headers=as_user(customer_id))
    missing = client.post(f"/calls/{uuid4()}/token", headers=as_user(customer_id))

    assert host.status_code == 200
    assert host.json()["role"] == "publisher"
    assert too_early.status_code == 400
    assert too_early.json()["detail"] == "Too early to join this call"
    assert stranger.status_code == 403
    assert unpaid.status_code == 400
    assert missing.status_code == 404


@pytest.mark.integration
def test_identity_service_syncs_user(client: TestClient) -> None:
    user_id = uuid4()
    payload = {
        "email": "new-host@example.com",
        "display_name": "New Host",
        "role": "host",
        "country": "PT",
    }

    denied = client.put(f"/users/{user_id}", json=payload)
    forged = client.put(
        f"/users/{user_id}", json=payload, headers={"X-Internal-Token": "guess"}
    )
    synced = client.put(f"/users/{user_id}", json=payload, headers=INTERNAL)

    assert denied.status_code == 401
    assert forged.status_code == 401
    assert synced.status_code == 200
    assert synced.json() == {
        "id": str(user_id),
        "email": "new-host@example.com",
        "display_name": "New Host",
        "role": "host",
        "country": "PT",
        "is_active": True,
        "has_payout_account": False,
    }

    renamed = client.put(
        f"/users/{user_id}", json={**payload, "display_name": "Renamed"}, headers=INTERNAL
    )
    assert renamed.json()["display_name"] == "Renamed"


@pytest.mark.integration
def test_users_me_hides_gateway_refs(client: TestClient, host_id: UUID) -> None:
    response = client.get("/users/me", headers=as_user(host_id))

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "host@example.com"
    assert body["has_payout_account"] is True
    assert "payout_account_ref" not in body


@pytest.mark.integration
def test_user_lookup_is_self_or_admin(
    client: TestClient, customer_id: UUID, other_customer_id: UUID, admin_id: UUID
) -> None:
    assert client.get(f"/users/{customer_id}", headers=as_user(customer_id)).status_code == 200
    assert client.get(f"/users/{customer_id}", headers=as_user(admin_id)).status_code == 200
    assert client.get(
        f"/users/{customer_id}", headers=as_user(other_customer_id)
    ).status_code == 403
    assert client.get(f"/users/{uuid4()}", headers=as_user(admin_id)).status_code == 404
