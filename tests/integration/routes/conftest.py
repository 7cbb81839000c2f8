"""
Fixtures for HTTP-level tests.

The application's dependencies are overridden with the in-memory database
and the recording gateways, and every service clock is frozen at ``NOW``.
"""

from __future__ import annotations

from contextlib import ExitStack
from typing import Generator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from booking_engine.dependencies import (
    get_db_engine,
    get_notifier,
    get_payment_gateway,
    get_token_authority,
)
from booking_engine.main import app
from factories import NOW, FakeGateway, FakeNotifier, FakeTokenAuthority

CLOCKED_MODULES = (
    "booking_engine.services.reservations",
    "booking_engine.services.escrow",
    "booking_engine.services.checkout",
    "booking_engine.services.settlement",
    "booking_engine.services.calls",
    "booking_engine.services.availability",
    "booking_engine.services.users",
)


@pytest.fixture
def client(
    db_engine: Engine,
    gateway: FakeGateway,
    notifier: FakeNotifier,
    token_authority: FakeTokenAuthority,
) -> Generator[TestClient, None, None]:
    """TestClient wired to test doubles with the clock frozen."""
    app.dependency_overrides[get_db_engine] = lambda: db_engine
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_token_authority] = lambda: token_authority

    with ExitStack() as stack:
        for module in CLOCKED_MODULES:
            stack.enter_context(patch(f"{module}.utc_now", return_value=NOW))
        yield TestClient(app)

    app.dependency_overrides.clear()
