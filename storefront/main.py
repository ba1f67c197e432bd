"""Storefront checkout API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.api.health import router as health_router
from storefront.api.idempotency import setup_idempotency_middleware
from storefront.api.middleware import setup_middleware
from storefront.api.orders import router as orders_router
from storefront.api.payments import router as payments_router
from storefront.api.promo_codes import router as promo_codes_router
from storefront.api.webhooks import router as webhooks_router
from storefront.infrastructure.config import settings
from storefront.infrastructure.logging_config import configure_logging
from storefront.infrastructure.payment_gateway import close_gateway_client

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events."""
    configure_logging(settings)
    logger.info(
        "Starting storefront API",
        version=settings.api_version,
        debug=settings.debug,
        currency=settings.currency,
    )

    yield

    await close_gateway_client()
    logger.info("Shutting down storefront API")


app = FastAPI(
    title="Storefront Checkout API",
    description="Checkout pricing, COD eligibility and payment reconciliation",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request ID, customer auth, error handling
setup_middleware(app)

# Idempotency-Key replay for order and intent creation
setup_idempotency_middleware(app)

app.include_router(health_router, tags=["Health"])
app.include_router(orders_router)
app.include_router(payments_router)
app.include_router(promo_codes_router)
app.include_router(webhooks_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", {})
    else:
        error_code = "ERROR"
        message = str(detail)
        details = {}

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation errors with per-field messages."""
    field_errors = {
        ".".join(str(part) for part in error["loc"] if part != "body"): error["msg"]
        for error in exc.errors()
    }
    return JSONResponse(
        status_code=422,
        content={
            "error_code": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": {"field_errors": field_errors},
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "details": {},
            "request_id": request_id,
        },
    )
