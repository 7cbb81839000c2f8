"""
Prometheus metrics for reservations, the escrow ledger, settlement runs and
external gateway calls.

This module defines all Prometheus metrics used throughout the application for
observability and monitoring. Metrics are exposed via the /metrics endpoint for
scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., total transitions)
    - Histogram: Observations bucketed by value (e.g., gateway latency)

Example:
    >>> from booking_engine.metrics import gateway_latency, gateway_requests
    >>> with gateway_latency.labels(operation="create_payment_intent").time():
    ...     intent = gateway.create_payment_intent(...)
    >>> gateway_requests.labels(operation="create_payment_intent", outcome="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Reservation Metrics
# =============================================================================

reservation_transitions = Counter(
    "booking_reservation_transitions_total",
    "Reservation state machine transitions attempted",
    ["transition", "outcome"],
)
"""
Counter for reservation transitions.

Labels:
    transition: create, confirm, cancel, reschedule, complete, override
    outcome: success or rejected
"""

# =============================================================================
# Escrow Ledger Metrics
# =============================================================================

escrow_entries = Counter(
    "booking_escrow_entries_total",
    "Escrow ledger entries moved into a status",
    ["status"],
)
"""
Counter for ledger entry status changes.

Labels:
    status: pending, completed, failed, refunded
"""

# =============================================================================
# Settlement Metrics
# =============================================================================

settlement_released = Counter(
    "booking_settlement_released_total",
    "Escrow entries flagged as released by settlement runs",
)
"""Counter for entries released once past the retention window."""

settlement_duration = Histogram(
    "booking_settlement_run_duration_seconds",
    "Duration of settlement runs in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
"""
Histogram for settlement run duration.

Buckets: 0.05s, 0.1s, 0.25s, 0.5s, 1s, 2.5s, 5s, 10s, +Inf
"""

# =============================================================================
# Gateway Metrics
# =============================================================================

gateway_requests = Counter(
    "booking_gateway_requests_total",
    "Requests made to external gateways",
    ["operation", "outcome"],
)
"""
Counter for external gateway calls.

Labels:
    operation: Gateway operation (e.g., "create_payment_intent", "refund", "mint_token")
    outcome: success or failure
"""

gateway_latency = Histogram(
    "booking_gateway_latency_seconds",
    "External gateway request latency in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
"""
Histogram for gateway request latency.

Labels:
    operation: Gateway operation

Buckets: 0.1s, 0.25s, 0.5s, 1s, 2.5s, 5s, 10s, +Inf
"""
