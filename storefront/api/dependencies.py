"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from storefront.api.middleware import LOGIN_URL
from storefront.domain.value_objects import Customer
from storefront.infrastructure.payment_gateway import GatewayClient, get_gateway_client


def get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def get_current_customer(request: Request) -> Customer:
    """Customer resolved by the auth middleware."""
    customer = getattr(request.state, "customer", None)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "SESSION_EXPIRED",
                "message": "Your session has expired, please sign in again",
                "details": {"login_url": LOGIN_URL},
            },
        )
    return customer


def get_gateway() -> GatewayClient:
    """Gateway client; overridden in tests."""
    return get_gateway_client()


# HTTP status per service error code; anything unlisted is a 400
ERROR_STATUS_CODES = {
    "ORDER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PRODUCT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PROMO_CODE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ELIGIBILITY_CONFLICT": status.HTTP_409_CONFLICT,
    "INSUFFICIENT_STOCK": status.HTTP_409_CONFLICT,
    "PAYMENT_ALREADY_CAPTURED": status.HTTP_409_CONFLICT,
    "INVALID_STATE_TRANSITION": status.HTTP_409_CONFLICT,
    "GATEWAY_ERROR": status.HTTP_502_BAD_GATEWAY,
}


def raise_for_error(error_code: str | None, message: str | None, details: dict | None = None) -> None:
    """Raise the HTTPException for a failed service result."""
    code = error_code or "ERROR"
    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(code, status.HTTP_400_BAD_REQUEST),
        detail={"error_code": code, "message": message or "Request failed", "details": details or {}},
    )
