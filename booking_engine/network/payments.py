"""
Payment gateway adapter.

The ledger talks to the gateway through the ``PaymentGateway`` protocol; the
production implementation is backed by Stripe Connect (destination charges
with an application fee). Every mutating call carries an idempotency key so a
retried request can never create a second charge or refund.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, TypeVar

import stripe
import structlog

from booking_engine.config import GATEWAY_TIMEOUT_SECONDS, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from booking_engine.errors import GatewayError
from booking_engine.metrics import gateway_latency, gateway_requests

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PaymentIntent:
    """Reference and client secret of a freshly created payment intent."""

    intent_ref: str
    client_secret: str


@dataclass(frozen=True)
class IntentStatus:
    """Gateway-side view of an intent: status string and captured charge, if any."""

    status: str
    charge_ref: Optional[str]


class PaymentGateway(Protocol):
    """Operations the escrow ledger consumes from the payment processor."""

    def create_customer(self, email: str, name: str) -> str: ...

    def create_connect_account(self, email: str, country: str) -> str: ...

    def create_payment_intent(
        self,
        amount_minor: int,
        currency: str,
        customer_ref: str,
        host_ref: str,
        description: str,
        fee_minor: int,
        idempotency_key: str,
    ) -> PaymentIntent: ...

    def refund(self, intent_ref: str, idempotency_key: str) -> str: ...

    def retrieve_intent(self, intent_ref: str) -> IntentStatus: ...

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]: ...


def _call_gateway(operation: str, func: Callable[[], T]) -> T:
    """
    Run one gateway call with latency/outcome metrics and error translation.

    Args:
        operation: Metric label and log field naming the call
        func: Zero-argument callable performing the SDK request

    Returns:
        Whatever ``func`` returns

    Raises:
        GatewayError: If the SDK raises any Stripe error
    """
    start_time = time.time()
    try:
        result = func()
    except stripe.StripeError as e:
        gateway_requests.labels(operation=operation, outcome="failure").inc()
        logger.exception("gateway_call_failed", operation=operation, error=str(e))
        raise GatewayError(f"Payment gateway {operation} failed") from e
    finally:
        gateway_latency.labels(operation=operation).observe(time.time() - start_time)

    gateway_requests.labels(operation=operation, outcome="success").inc()
    return result


class StripeGateway:
    """
    ``PaymentGateway`` backed by the Stripe API.

    Amounts arrive already converted to minor units. Charges are destination
    charges routed to the host's connect account, with the platform's
    commission plus VAT taken as the application fee.
    """

    def __init__(
        self,
        api_key: str = STRIPE_SECRET_KEY,
        webhook_secret: str = STRIPE_WEBHOOK_SECRET,
        timeout_seconds: int = GATEWAY_TIMEOUT_SECONDS,
    ) -> None:
        if not api_key:
            raise GatewayError("Payment gateway is not configured")
        stripe.api_key = api_key
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)
        self.webhook_secret = webhook_secret

    def create_customer(self, email: str, name: str) -> str:
        customer = _call_gateway(
            "create_customer",
            lambda: stripe.Customer.create(email=email, name=name),
        )
        return str(customer.id)

    def create_connect_account(self, email: str, country: str) -> str:
        account = _call_gateway(
            "create_connect_account",
            lambda: stripe.Account.create(
                type="express",
                country=country,
                email=email,
                capabilities={
                    "card_payments": {"requested": True},
                    "transfers": {"requested": True},
                },
            ),
        )
        return str(account.id)

    def create_payment_intent(
        self,
        amount_minor: int,
        currency: str,
        customer_ref: str,
        host_ref: str,
        description: str,
        fee_minor: int,
        idempotency_key: str,
    ) -> PaymentIntent:
        intent = _call_gateway(
            "create_payment_intent",
            lambda: stripe.PaymentIntent.create(
                amount=amount_minor,
                currency=currency.lower(),
                customer=customer_ref,
                description=description,
                transfer_data={"destination": host_ref},
                application_fee_amount=fee_minor,
                idempotency_key=idempotency_key,
            ),
        )
        return PaymentIntent(intent_ref=str(intent.id), client_secret=str(intent.client_secret))

    def refund(self, intent_ref: str, idempotency_key: str) -> str:
        refund = _call_gateway(
            "refund",
            lambda: stripe.Refund.create(
                payment_intent=intent_ref,
                idempotency_key=idempotency_key,
            ),
        )
        return str(refund.id)

    def retrieve_intent(self, intent_ref: str) -> IntentStatus:
        intent = _call_gateway(
            "retrieve_intent",
            lambda: stripe.PaymentIntent.retrieve(intent_ref),
        )
        # latest_charge is an id string unless the charge was expanded
        latest_charge = getattr(intent, "latest_charge", None)
        charge_ref = latest_charge if isinstance(latest_charge, str) else None
        if latest_charge is not None and charge_ref is None:
            charge_ref = str(getattr(latest_charge, "id", "")) or None
        return IntentStatus(status=str(intent.status), charge_ref=charge_ref)

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify a webhook signature and return the event as a plain dict.

        Raises:
            GatewayError: If the payload is not valid JSON or the signature does not match
        """
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            raise GatewayError("Invalid webhook signature") from e
        return dict(event.to_dict())
