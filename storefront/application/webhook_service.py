"""Gateway webhook processing service.

Handles payment events pushed by the card-payment gateway with:
- HMAC signature verification
- Event deduplication by gateway event id
- Replay-safe order updates through the payment service
"""

import hashlib
import hmac
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from storefront.application.payment_service import PaymentService
from storefront.domain.base import utc_now
from storefront.domain.exceptions import DomainError
from storefront.domain.state_machines import PaymentOutcome
from storefront.infrastructure.config import settings

logger = structlog.get_logger()


class WebhookEventType(str, Enum):
    """Gateway events the storefront acts on."""

    PAYMENT_COMPLETED = "payment_intent.completed"
    PAYMENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_FAILED = "payment_intent.failed"
    PAYMENT_CANCELLED = "payment_intent.cancelled"

    @property
    def outcome(self) -> PaymentOutcome:
        return _EVENT_OUTCOMES[self]


_EVENT_OUTCOMES = {
    WebhookEventType.PAYMENT_COMPLETED: PaymentOutcome.SUCCESS,
    WebhookEventType.PAYMENT_SUCCEEDED: PaymentOutcome.SUCCESS,
    WebhookEventType.PAYMENT_FAILED: PaymentOutcome.FAILURE,
    WebhookEventType.PAYMENT_CANCELLED: PaymentOutcome.CANCELLED,
}


class EventStatus(str, Enum):
    """Status of a webhook event in the event log."""

    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
    DUPLICATE = "duplicate"


@dataclass
class WebhookEvent:
    """A payment event from the gateway.

    Attributes:
        event_id: Gateway event identifier.
        event_type: Type of event.
        payment_intent_id: Intent the event is about.
        data: Intent data as sent by the gateway.
    """

    event_id: str
    event_type: WebhookEventType
    payment_intent_id: str
    data: dict[str, Any]

    @property
    def reason(self) -> str | None:
        return self.data.get("reason") or self.data.get("failure_reason")

    def compute_payload_hash(self) -> str:
        payload = json.dumps(
            {"event_id": self.event_id, "event_type": self.event_type.value, "data": self.data},
            sort_keys=True,
        )
        return hashlib.sha256(payload.encode()).hexdigest()


@dataclass
class WebhookResult:
    """Result of webhook processing.

    Attributes:
        success: Whether processing succeeded.
        event_id: The event ID.
        status: Final event status.
        message: Status message.
        duplicate: Whether this was a duplicate event.
        order_id: Order the event was applied to.
    """

    success: bool
    event_id: str
    status: EventStatus
    message: str
    duplicate: bool = False
    order_id: str | None = None


class WebhookSignatureVerifier:
    """Verifies HMAC-SHA256 signatures on gateway payloads."""

    def __init__(self, secret: str | None = None) -> None:
        self.secret = secret or settings.webhook_secret

    def sign(self, payload: str) -> str:
        digest = hmac.new(self.secret.encode(), payload.encode(), hashlib.sha256).hexdigest()
        return f"sha256={digest}"

    def verify(self, payload: str, signature: str | None) -> bool:
        """Verify the signature header of a webhook payload.

        Args:
            payload: Raw JSON payload string.
            signature: Signature header value (format: sha256=<hex>).

        Returns:
            True if signature is valid.
        """
        if not signature:
            logger.warning("Missing webhook signature")
            return False

        parts = signature.split("=", 1)
        if len(parts) != 2 or parts[0] != "sha256":
            logger.warning("Invalid signature format", signature_prefix=signature[:20])
            return False

        if not hmac.compare_digest(self.sign(payload), signature):
            logger.warning("Webhook signature mismatch")
            return False
        return True


class InMemoryEventLog:
    """In-memory event log for deduplication.

    In production, this would use the event_log database table.
    """

    def __init__(self) -> None:
        self._events: dict[str, dict[str, Any]] = {}

    async def exists(self, event_id: str) -> bool:
        return event_id in self._events

    async def store(
        self,
        event: WebhookEvent,
        status: EventStatus,
        correlation_id: str | None = None,
    ) -> None:
        self._events[event.event_id] = {
            "event_id": event.event_id,
            "event_type": event.event_type.value,
            "payment_intent_id": event.payment_intent_id,
            "payload_hash": event.compute_payload_hash(),
            "received_at": utc_now(),
            "processed_at": None,
            "status": status.value,
            "error_message": None,
            "correlation_id": correlation_id,
        }

    async def get(self, event_id: str) -> dict[str, Any] | None:
        return self._events.get(event_id)

    async def update_status(
        self,
        event_id: str,
        status: EventStatus,
        error_message: str | None = None,
    ) -> None:
        entry = self._events.get(event_id)
        if entry is None:
            return
        entry["status"] = status.value
        if status == EventStatus.PROCESSED:
            entry["processed_at"] = utc_now()
        if error_message:
            entry["error_message"] = error_message

    async def forget(self, event_id: str) -> None:
        """Drop an event so a gateway redelivery is processed again."""
        self._events.pop(event_id, None)


class WebhookService:
    """Service for processing gateway webhooks.

    Failed events are removed from the log so the gateway's retry of the
    same event id gets another chance.
    """

    def __init__(
        self,
        event_log: InMemoryEventLog | None = None,
        signature_verifier: WebhookSignatureVerifier | None = None,
    ) -> None:
        self.event_log = event_log or InMemoryEventLog()
        self.signature_verifier = signature_verifier or WebhookSignatureVerifier()

    def verify_signature(self, payload: str, signature: str | None) -> bool:
        return self.signature_verifier.verify(payload, signature)

    async def process_event(
        self,
        event: WebhookEvent,
        payments: PaymentService,
        correlation_id: str | None = None,
    ) -> WebhookResult:
        """Process a gateway event.

        Args:
            event: The webhook event to process.
            payments: Payment service applying the outcome.
            correlation_id: Request correlation ID.

        Returns:
            Processing result.
        """
        logger.info(
            "Processing webhook event",
            event_id=event.event_id,
            event_type=event.event_type.value,
            payment_intent_id=event.payment_intent_id,
            correlation_id=correlation_id,
        )

        if await self.event_log.exists(event.event_id):
            logger.info("Duplicate webhook event ignored", event_id=event.event_id)
            return WebhookResult(
                success=True,
                event_id=event.event_id,
                status=EventStatus.DUPLICATE,
                message="Event already processed",
                duplicate=True,
            )

        await self.event_log.store(event, EventStatus.PROCESSING, correlation_id=correlation_id)

        try:
            result = await payments.apply_gateway_outcome(
                event.payment_intent_id, event.event_type.outcome, event.reason
            )
        except DomainError as e:
            logger.error(
                "Failed to process webhook event",
                event_id=event.event_id,
                event_type=event.event_type.value,
                error_code=e.error_code,
                error=e.message,
            )
            await self.event_log.forget(event.event_id)
            return WebhookResult(
                success=False,
                event_id=event.event_id,
                status=EventStatus.FAILED,
                message=e.message,
            )

        order_id = str(result.order.id) if result.order else None
        if not result.success:
            # The order moved past this outcome (e.g. a late failure for a paid order).
            await self.event_log.update_status(
                event.event_id, EventStatus.PROCESSED, error_message=result.error
            )
            logger.info(
                "Webhook outcome not applied",
                event_id=event.event_id,
                order_id=order_id,
                error_code=result.error_code,
            )
            return WebhookResult(
                success=True,
                event_id=event.event_id,
                status=EventStatus.PROCESSED,
                message=result.error or "Outcome not applied",
                order_id=order_id,
            )

        await self.event_log.update_status(event.event_id, EventStatus.PROCESSED)
        logger.info(
            "Webhook event processed successfully",
            event_id=event.event_id,
            order_id=order_id,
            changed=result.changed,
        )
        return WebhookResult(
            success=True,
            event_id=event.event_id,
            status=EventStatus.PROCESSED,
            message="Event processed successfully",
            order_id=order_id,
        )


_webhook_service: WebhookService | None = None


def get_webhook_service() -> WebhookService:
    """Get or create the webhook service instance."""
    global _webhook_service
    if _webhook_service is None:
        _webhook_service = WebhookService()
    return _webhook_service


def reset_webhook_service() -> None:
    global _webhook_service
    _webhook_service = None


def parse_event(body: dict[str, Any]) -> WebhookEvent | None:
    """Parse a gateway event body.

    Returns:
        The event, or None for event types the storefront ignores.

    Raises:
        KeyError: If required fields are missing.
    """
    try:
        event_type = WebhookEventType(body["event"])
    except ValueError:
        return None
    data = body.get("data") or {}
    return WebhookEvent(
        event_id=str(body["id"]),
        event_type=event_type,
        payment_intent_id=str(data["id"]),
        data=data,
    )
