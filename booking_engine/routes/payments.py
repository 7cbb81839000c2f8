from typing import Any, Callable, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from booking_engine.dependencies import (
    get_current_actor,
    get_db_engine,
    get_notifier,
    get_payment_gateway,
    require_admin,
    require_host,
)
from booking_engine.errors import BookingError, GatewayError, NotFoundError
from booking_engine.network.notifications import Notifier
from booking_engine.network.payments import PaymentGateway
from booking_engine.schemas.payments import (
    PaymentIntentOut,
    PaymentIntentPayload,
    PayoutAccountOut,
    PayoutAccountPayload,
    RefundPayload,
    ReleaseOut,
    TransactionOut,
    TransactionStatsOut,
)
from booking_engine.services import checkout, escrow
from booking_engine.services.settlement import process_releases

logger = structlog.get_logger(__name__)
router = APIRouter()

SIGNATURE_HEADER = "Stripe-Signature"


@router.get("/payments")
def list_transactions(
    _: dict[str, Any] = Depends(require_admin),
    db_engine: Engine = Depends(get_db_engine),
) -> list[TransactionOut]:
    """List every ledger entry (admin only)."""
    try:
        return [TransactionOut.model_validate(row) for row in escrow.list_all(db_engine)]
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("transaction_list_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/payments/me")
def list_my_transactions(
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
) -> list[TransactionOut]:
    """List entries where the caller paid or is being paid."""
    try:
        rows = escrow.list_for_user(db_engine, actor["id"])
        return [TransactionOut.model_validate(row) for row in rows]
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("transaction_list_failed", user_id=str(actor["id"]), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/payments/stats")
def transaction_stats(
    _: dict[str, Any] = Depends(require_admin),
    db_engine: Engine = Depends(get_db_engine),
) -> TransactionStatsOut:
    """Totals over completed payments (admin only)."""
    try:
        return TransactionStatsOut(**escrow.get_stats(db_engine))
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("transaction_stats_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/payments/{transaction_id}")
def get_transaction_endpoint(
    transaction_id: UUID,
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
) -> TransactionOut:
    """Fetch one ledger entry; visible to its payer, payee and admins."""
    try:
        return TransactionOut.model_validate(
            escrow.get_transaction_for(db_engine, transaction_id, actor)
        )
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "transaction_fetch_failed", transaction_id=str(transaction_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/payments/intents", status_code=status.HTTP_201_CREATED)
def create_payment_intent_endpoint(
    payload: PaymentIntentPayload,
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentIntentOut:
    """
    Open a held payment for one of the caller's pending reservations.

    Args:
        payload: Host, reservation, amount and description
        actor: Paying customer
        db_engine: Database engine
        gateway: Payment gateway adapter

    Returns:
        PaymentIntentOut: Client secret for the payment SDK and the ledger entry id
    """
    try:
        result = escrow.create_payment_intent(
            db_engine,
            gateway,
            customer_id=actor["id"],
            host_id=payload.host_id,
            gross=payload.amount,
            reservation_id=payload.reservation_id,
            description=payload.description,
        )
        return PaymentIntentOut(**result)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "payment_intent_creation_failed",
            reservation_id=str(payload.reservation_id),
            error=str(e),
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/payments/connect-account", status_code=status.HTTP_201_CREATED)
def create_connect_account_endpoint(
    payload: PayoutAccountPayload,
    actor: dict[str, Any] = Depends(require_host),
    db_engine: Engine = Depends(get_db_engine),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PayoutAccountOut:
    """Register a payout account for the calling host."""
    try:
        account_ref = escrow.register_payout_account(
            db_engine, gateway, actor["id"], payload.country.upper()
        )
        return PayoutAccountOut(account_ref=account_ref)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("payout_account_creation_failed", host_id=str(actor["id"]), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/payments/{transaction_id}/refund")
def refund_transaction_endpoint(
    transaction_id: UUID,
    payload: RefundPayload,
    admin: dict[str, Any] = Depends(require_admin),
    db_engine: Engine = Depends(get_db_engine),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> TransactionOut:
    """Refund a completed payment (admin only). The reservation is left untouched."""
    try:
        row = escrow.refund(db_engine, gateway, transaction_id, payload.reason)
        logger.info(
            "refund_requested", transaction_id=str(transaction_id), admin_id=str(admin["id"])
        )
        return TransactionOut.model_validate(row)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("refund_failed", transaction_id=str(transaction_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/payments/releases")
def process_releases_endpoint(
    _: dict[str, Any] = Depends(require_admin),
    db_engine: Engine = Depends(get_db_engine),
    notifier: Notifier = Depends(get_notifier),
) -> list[ReleaseOut]:
    """Run a settlement pass now (admin only)."""
    try:
        released = process_releases(db_engine, notifier=notifier)
        return [ReleaseOut.model_validate(row) for row in released]
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("settlement_run_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


def _failure_reason(intent: dict[str, Any]) -> Optional[str]:
    error = intent.get("last_payment_error") or {}
    return error.get("message")


@router.post("/payments/webhook")
async def receive_gateway_webhook(
    request: Request,
    db_engine: Engine = Depends(get_db_engine),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
) -> JSONResponse:
    """
    Handle payment gateway webhook events.

    Supported event types:
    - payment_intent.succeeded: capture the entry and confirm the reservation
    - payment_intent.payment_failed: mark the entry failed

    Other event types are acknowledged with 200 so the gateway stops retrying.
    Events for intents this service never created are acknowledged as ignored.

    Returns:
        JSONResponse: Acknowledgment response
    """
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning("webhook_missing_signature")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing signature"},
        )

    payload = await request.body()
    try:
        event = gateway.verify_webhook(payload, signature)
    except GatewayError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid signature"},
        )

    event_type = event.get("type")
    intent = (event.get("data") or {}).get("object") or {}
    intent_ref = intent.get("id")

    logger.info("webhook_received", event_type=event_type, event_id=event.get("id"))

    event_handlers: dict[str, Callable[[], Any]] = {
        "payment_intent.succeeded": lambda: checkout.handle_capture(
            db_engine, gateway, intent_ref, notifier=notifier
        ),
        "payment_intent.payment_failed": lambda: checkout.handle_payment_failed(
            db_engine, intent_ref, reason=_failure_reason(intent)
        ),
    }

    handler = event_handlers.get(event_type or "")
    if handler is None:
        logger.warning("webhook_unsupported_event_type", event_type=event_type)
        return JSONResponse(content={"status": "accepted"})

    if not intent_ref:
        logger.warning("webhook_missing_intent", event_type=event_type)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing payment intent id"},
        )

    try:
        await run_in_threadpool(handler)
    except NotFoundError:
        logger.warning("webhook_unknown_intent", event_type=event_type, intent_ref=intent_ref)
        return JSONResponse(content={"status": "ignored"})
    except GatewayError as e:
        logger.error("webhook_gateway_failed", event_type=event_type, error=e.message)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Gateway unavailable"},
        )
    except Exception as e:
        logger.exception(
            "webhook_processing_failed",
            event_type=event_type,
            intent_ref=intent_ref,
            error=str(e),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    return JSONResponse(content={"status": "accepted"})
