"""Payment API endpoints.

Provides endpoints for card payments through the gateway:
- POST /payments/intents - start (or retry) a gateway payment (idempotent)
- GET /payments/intents/{id} - verify an intent and confirm the order
- POST /payment-status/{order_id} - record a failed or cancelled attempt
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from storefront.api.dependencies import get_current_customer, get_gateway, raise_for_error
from storefront.api.schemas import (
    ErrorResponse,
    OrderStatusEnum,
    PaymentIntentCreateRequest,
    PaymentIntentResponse,
    PaymentStatusRequest,
    PaymentStatusResponse,
    PaymentVerifyResponse,
    PriceSchema,
)
from storefront.application.payment_service import PaymentService
from storefront.domain.state_machines import OrderStatus
from storefront.domain.value_objects import Customer
from storefront.infrastructure.payment_gateway import GatewayClient

router = APIRouter(tags=["Payments"])

# Client-reported values accepted by POST /payment-status/{order_id}
REPORTABLE_STATUSES = {
    "failed": OrderStatus.PAYMENT_FAILED,
    "cancelled": OrderStatus.PAYMENT_CANCELLED,
}


def get_service(
    request: Request,
    gateway: Annotated[GatewayClient, Depends(get_gateway)],
) -> PaymentService:
    """Get payment service with request ID and gateway client."""
    request_id = getattr(request.state, "request_id", None)
    return PaymentService(gateway=gateway, request_id=request_id)


@router.post(
    "/payments/intents",
    response_model=PaymentIntentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Create payment intent",
    description=(
        "Create a gateway payment intent for an order awaiting payment. An order "
        "whose last attempt failed or was cancelled is reopened for the retry."
    ),
)
async def create_payment_intent(
    body: PaymentIntentCreateRequest,
    service: Annotated[PaymentService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> PaymentIntentResponse:
    result = await service.create_payment_intent(customer.id, body.order_id)
    if not result.success or result.intent is None:
        raise_for_error(result.error_code, result.error, result.details)

    return PaymentIntentResponse(
        payment_intent_id=result.intent.id,
        order_id=body.order_id,
        redirect_url=result.intent.redirect_url,
        amount=PriceSchema.from_money(result.order.total),
        status=result.intent.status,
    )


@router.get(
    "/payments/intents/{payment_intent_id}",
    response_model=PaymentVerifyResponse,
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Verify payment intent",
)
async def verify_payment_intent(
    payment_intent_id: str,
    service: Annotated[PaymentService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
    order_id: str | None = Query(default=None, description="Order the intent belongs to"),
) -> PaymentVerifyResponse:
    """Check an intent with the gateway.

    A completed or succeeded intent confirms the order. Verifying an
    already confirmed order is harmless.
    """
    result = await service.verify_payment(customer.id, payment_intent_id, order_id)
    if not result.success or result.order is None or result.intent is None:
        raise_for_error(result.error_code, result.error, result.details)

    return PaymentVerifyResponse(
        payment_intent_id=payment_intent_id,
        order_id=str(result.order.id),
        gateway_status=result.intent.status,
        order_status=OrderStatusEnum(result.order.status.value),
        paid=result.paid,
    )


@router.post(
    "/payment-status/{order_id}",
    response_model=PaymentStatusResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Record payment outcome",
)
async def record_payment_status(
    order_id: str,
    body: PaymentStatusRequest,
    service: Annotated[PaymentService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> PaymentStatusResponse:
    """Record that the customer's gateway attempt failed or was cancelled.

    Reporting the status the order already has is a no-op (changed=false).

    Raises:
        HTTPException: 400 for a status other than failed/cancelled, 404 if
            the order is unknown, 409 if the order was already paid.
    """
    target = REPORTABLE_STATUSES.get(body.payment_status.strip().lower())
    if target is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": "INVALID_PAYMENT_STATUS",
                "message": f"Invalid payment status: {body.payment_status}",
                "details": {"allowed": sorted(REPORTABLE_STATUSES)},
            },
        )

    result = await service.record_payment_status(customer.id, order_id, target, body.reason)
    if not result.success or result.order is None:
        raise_for_error(result.error_code, result.error, result.details)

    return PaymentStatusResponse(
        order_id=order_id,
        status=OrderStatusEnum(result.order.status.value),
        changed=result.changed,
    )
