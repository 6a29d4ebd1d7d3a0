# chef_bookings/main.py

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chef_bookings.config import ALLOWED_ORIGINS
from chef_bookings.errors import BookingError
from chef_bookings.logging_config import setup_logging
from chef_bookings.middleware import RequestIDMiddleware
from chef_bookings.routes.admin import router as admin_router
from chef_bookings.routes.health import router as health_router
from chef_bookings.routes.metrics import router as metrics_router
from chef_bookings.routes.public import router as public_router
from chef_bookings.routes.webhook import router as webhook_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Chef Bookings API",
    description="Private-chef reservations, gift cards and pop-up seats paid through Stripe Checkout",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Render domain errors as ``{"error": message}`` with the error's status."""
    if exc.status_code >= 500:
        logger.error("request_failed", error_type=type(exc).__name__, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(public_router, prefix="/api", tags=["Bookings"])
app.include_router(webhook_router, prefix="/api", tags=["Webhooks"])
app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])
