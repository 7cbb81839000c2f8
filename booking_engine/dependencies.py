"""
FastAPI dependency injection providers.

Routes receive the database engine, the external gateway adapters and the
calling user through these providers. Tests replace any of them with
``app.dependency_overrides``.

Caller identity is established upstream by the identity service, which
forwards the authenticated user's id in the ``X-User-Id`` header. The id is
resolved against the local user mirror on every request.
"""

from __future__ import annotations

import hmac
from typing import Any, Generator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.engine import Engine

from booking_engine.config import INTERNAL_API_TOKEN
from booking_engine.db.engine import engine
from booking_engine.db.readers.users import get_user
from booking_engine.models.enums import UserRole
from booking_engine.network.notifications import HttpNotifier, Notifier
from booking_engine.network.payments import PaymentGateway, StripeGateway
from booking_engine.network.video_tokens import HttpTokenAuthority, TokenAuthority


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
        >>> client = TestClient(app)
    """
    yield engine


def get_payment_gateway() -> PaymentGateway:
    """Stripe-backed gateway; raises GatewayError (502) when no key is configured."""
    return StripeGateway()


def get_notifier() -> Notifier:
    return HttpNotifier()


def get_token_authority() -> TokenAuthority:
    return HttpTokenAuthority()


def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    db_engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Resolve the calling user from the ``X-User-Id`` header.

    Returns:
        dict: The active user row

    Raises:
        HTTPException: 401 if the header is missing, malformed or unknown
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed X-User-Id header",
        )

    with db_engine.connect() as conn:
        user = get_user(conn, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user",
        )
    return user


def require_admin(actor: dict[str, Any] = Depends(get_current_actor)) -> dict[str, Any]:
    """
    Restrict a route to admins.

    Raises:
        HTTPException: 403 if the caller is not an admin
    """
    if actor["role"] != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


def require_host(actor: dict[str, Any] = Depends(get_current_actor)) -> dict[str, Any]:
    """
    Restrict a route to hosts.

    Raises:
        HTTPException: 403 if the caller is not a host
    """
    if actor["role"] != UserRole.HOST:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Host access required",
        )
    return actor


def require_internal_token(x_internal_token: Optional[str] = Header(None)) -> None:
    """
    Guard service-to-service routes with the shared ``INTERNAL_API_TOKEN``.

    Raises:
        HTTPException: 401 if no token is configured or the header does not match
    """
    if not INTERNAL_API_TOKEN or not x_internal_token or not hmac.compare_digest(
        x_internal_token, INTERNAL_API_TOKEN
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal token",
        )
