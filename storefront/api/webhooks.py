"""Gateway webhook receiver.

Provides:
- POST /webhooks/gateway - receive payment gateway events
- GET /webhooks/events/{event_id} - inspect a received event
"""

import json
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from storefront.api.dependencies import get_current_customer, get_gateway
from storefront.application.payment_service import PaymentService
from storefront.application.webhook_service import (
    WebhookService,
    get_webhook_service,
    parse_event,
)
from storefront.domain.value_objects import Customer
from storefront.infrastructure.payment_gateway import GatewayClient

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


class WebhookResponse(BaseModel):
    """Response to webhook delivery."""

    success: bool = Field(..., description="Whether event was accepted")
    event_id: str = Field(..., description="Event ID")
    status: str = Field(..., description="processed, duplicate, failed or ignored")
    message: str = Field(..., description="Status message")


def get_service() -> WebhookService:
    return get_webhook_service()


def get_payments(
    request: Request,
    gateway: Annotated[GatewayClient, Depends(get_gateway)],
) -> PaymentService:
    return PaymentService(gateway=gateway, request_id=getattr(request.state, "request_id", None))


def _bad_request(error_code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error_code": error_code, "message": message, "details": {}},
    )


@router.post(
    "/gateway",
    response_model=WebhookResponse,
    summary="Receive gateway webhook",
    description="Receive payment events from the gateway with HMAC verification.",
)
async def receive_gateway_webhook(
    request: Request,
    service: Annotated[WebhookService, Depends(get_service)],
    payments: Annotated[PaymentService, Depends(get_payments)],
    x_gateway_signature: Annotated[str | None, Header()] = None,
) -> WebhookResponse:
    """Receive and apply a gateway event.

    The body must be signed: X-Gateway-Signature is sha256=<hex> of the
    raw body under the shared webhook secret. Events are deduplicated by
    id, and event types the storefront does not handle are acknowledged
    with status="ignored".

    Raises:
        HTTPException: 401 on a bad signature, 400 on a malformed body,
            404 when no order carries the intent (so the gateway retries).
    """
    raw = (await request.body()).decode("utf-8")
    correlation_id = getattr(request.state, "request_id", None)

    if not service.verify_signature(raw, x_gateway_signature):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "INVALID_SIGNATURE",
                "message": "Webhook signature verification failed",
                "details": {},
            },
        )

    try:
        body: dict[str, Any] = json.loads(raw)
        event = parse_event(body)
    except (json.JSONDecodeError, KeyError, TypeError, AttributeError):
        raise _bad_request("INVALID_PAYLOAD", "Malformed webhook payload")

    if event is None:
        logger.warning("Unknown webhook event type", event_type=body.get("event"), event_id=body.get("id"))
        return WebhookResponse(
            success=True,
            event_id=str(body.get("id", "")),
            status="ignored",
            message=f"Unknown event type: {body.get('event')}",
        )

    result = await service.process_event(event, payments, correlation_id=correlation_id)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "ORDER_NOT_FOUND",
                "message": result.message,
                "details": {"event_id": event.event_id},
            },
        )

    return WebhookResponse(
        success=result.success,
        event_id=result.event_id,
        status=result.status.value,
        message=result.message,
    )


@router.get(
    "/events/{event_id}",
    response_model=dict,
    summary="Get event status",
)
async def get_event_status(
    event_id: str,
    service: Annotated[WebhookService, Depends(get_service)],
    customer: Annotated[Customer, Depends(get_current_customer)],
) -> dict:
    event_data = await service.event_log.get(event_id)
    if event_data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "EVENT_NOT_FOUND",
                "message": f"Event not found: {event_id}",
                "details": {"event_id": event_id},
            },
        )
    return {
        "event_id": event_data["event_id"],
        "event_type": event_data["event_type"],
        "payment_intent_id": event_data["payment_intent_id"],
        "status": event_data["status"],
        "received_at": event_data["received_at"].isoformat(),
        "processed_at": event_data["processed_at"].isoformat() if event_data["processed_at"] else None,
        "error_message": event_data["error_message"],
    }
