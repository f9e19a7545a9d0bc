"""
Main FastAPI application.
Admin API for booking payments.

Endpoints:
- /admin/payments/* - Retry, capture, refund
- /admin/charges/* - Pending, declined and captured charge tables
- /admin/bookings/* - Listings, stats, cancellation, ledger
- /admin/configuration - Cancellation policy and hold timing
"""

import logging
import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from ..lib.errors import ServiceError

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("stripe").setLevel(logging.WARNING)

# Create app
app = FastAPI(
    title="CleanOps Payments API",
    description="Booking payments, holds and cancellations for a cleaning business",
    version="1.0.0",
    docs_url="/docs" if os.environ.get("APP_ENV") == "development" else None,
    redoc_url=None,
)

# CORS - admin portal origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Local dev
        os.environ.get("ADMIN_PORTAL_ORIGIN", "http://localhost:3000"),
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Known failures: report the code and message as-is."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    """Anything else is an internal error, never an auth failure."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"code": "INTERNAL_SERVER_ERROR", "message": "Internal server error"},
    )


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "version": "1.0.0"}


# Import and include routers
from .routes import payments, bookings, configuration

app.include_router(payments.router, prefix="/admin", tags=["payments"])
app.include_router(bookings.router, prefix="/admin/bookings", tags=["bookings"])
app.include_router(configuration.router, prefix="/admin/configuration", tags=["configuration"])
