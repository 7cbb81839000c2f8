"""
Unit tests for FastAPI dependency providers and access guards.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import Mock
from uuid import uuid4

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from booking_engine.dependencies import (
    get_current_actor,
    get_db_engine,
    require_admin,
    require_host,
    require_internal_token,
)
from booking_engine.models.enums import UserRole
from factories import make_user


@pytest.fixture
def guarded_app(db_engine: Engine) -> FastAPI:
    """App exposing one route per guard, wired to the test database."""
    app = FastAPI()

    @app.get("/whoami")
    def whoami(actor: dict[str, Any] = Depends(get_current_actor)) -> dict[str, str]:
        return {"id": str(actor["id"]), "role": actor["role"].value}

    @app.get("/admin")
    def admin_only(actor: dict[str, Any] = Depends(require_admin)) -> dict[str, str]:
        return {"id": str(actor["id"])}

    @app.get("/host")
    def host_only(actor: dict[str, Any] = Depends(require_host)) -> dict[str, str]:
        return {"id": str(actor["id"])}

    @app.get("/internal", dependencies=[Depends(require_internal_token)])
    def internal() -> dict[str, str]:
        return {"status": "ok"}

    app.dependency_overrides[get_db_engine] = lambda: db_engine
    return app


@pytest.mark.unit
def test_get_db_engine_yields_application_engine() -> None:
    """Test that the provider yields the same engine singleton every time."""
    first = next(get_db_engine())
    second = next(get_db_engine())

    assert isinstance(first, Engine)
    assert first is second


@pytest.mark.unit
def test_db_engine_can_be_overridden() -> None:
    """Test that routes pick up an overridden engine."""
    app = FastAPI()

    @app.get("/engine")
    def engine_name(engine: Engine = Depends(get_db_engine)) -> dict[str, str]:
        return {"engine_name": engine.name}

    mock_engine = Mock(spec=Engine)
    mock_engine.name = "mock_engine"
    app.dependency_overrides[get_db_engine] = lambda: mock_engine

    response = TestClient(app).get("/engine")

    assert response.json() == {"engine_name": "mock_engine"}


@pytest.mark.unit
def test_actor_resolved_from_header(guarded_app: FastAPI, customer_id: Any) -> None:
    """Test that X-User-Id is resolved against the user mirror."""
    response = TestClient(guarded_app).get("/whoami", headers={"X-User-Id": str(customer_id)})

    assert response.status_code == 200
    assert response.json() == {"id": str(customer_id), "role": "customer"}


@pytest.mark.unit
@pytest.mark.parametrize(
    "headers,detail",
    [
        ({}, "Missing X-User-Id header"),
        ({"X-User-Id": "not-a-uuid"}, "Malformed X-User-Id header"),
        ({"X-User-Id": str(uuid4())}, "Unknown or inactive user"),
    ],
)
def test_actor_rejected_with_401(
    guarded_app: FastAPI, headers: dict[str, str], detail: str
) -> None:
    """Test each way the caller identity can be missing or wrong."""
    response = TestClient(guarded_app).get("/whoami", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == detail


@pytest.mark.unit
def test_inactive_user_is_rejected(guarded_app: FastAPI, db_engine: Engine) -> None:
    """Test that deactivated users cannot act."""
    user_id = make_user(db_engine, UserRole.CUSTOMER, is_active=False)

    response = TestClient(guarded_app).get("/whoami", headers={"X-User-Id": str(user_id)})

    assert response.status_code == 401


@pytest.mark.unit
def test_require_admin(guarded_app: FastAPI, admin_id: Any, customer_id: Any) -> None:
    """Test that only admins pass the admin guard."""
    client = TestClient(guarded_app)

    assert client.get("/admin", headers={"X-User-Id": str(admin_id)}).status_code == 200
    denied = client.get("/admin", headers={"X-User-Id": str(customer_id)})
    assert denied.status_code == 403
    assert denied.json()["detail"] == "Admin access required"


@pytest.mark.unit
def test_require_host(guarded_app: FastAPI, host_id: Any, customer_id: Any) -> None:
    """Test that only hosts pass the host guard."""
    client = TestClient(guarded_app)

    assert client.get("/host", headers={"X-User-Id": str(host_id)}).status_code == 200
    assert client.get("/host", headers={"X-User-Id": str(customer_id)}).status_code == 403


@pytest.mark.unit
def test_internal_token_guard(guarded_app: FastAPI) -> None:
    """Test the shared-secret guard for identity service pushes."""
    client = TestClient(guarded_app)

    assert client.get("/internal").status_code == 401
    assert client.get("/internal", headers={"X-Internal-Token": "wrong"}).status_code == 401
    ok = client.get("/internal", headers={"X-Internal-Token": "test-internal-token"})
    assert ok.status_code == 200
