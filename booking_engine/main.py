# booking_engine/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from booking_engine.config import ALLOWED_ORIGINS
from booking_engine.errors import register_error_handlers
from booking_engine.logging_config import setup_logging
from booking_engine.middleware import RequestIDMiddleware
from booking_engine.routes.availability import router as availability_router
from booking_engine.routes.calls import router as calls_router
from booking_engine.routes.health import router as health_router
from booking_engine.routes.metrics import router as metrics_router
from booking_engine.routes.payments import router as payments_router
from booking_engine.routes.reservations import router as reservations_router
from booking_engine.routes.users import router as users_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Booking Engine API",
    description="Slot booking against host availability with an escrow payment ledger",
    version="1.0.0",
)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(users_router, tags=["Users"])
app.include_router(availability_router, tags=["Availability"])
app.include_router(reservations_router, tags=["Reservations"])
app.include_router(payments_router, tags=["Payments"])
app.include_router(calls_router, tags=["Calls"])

logger.info("application_configured")
