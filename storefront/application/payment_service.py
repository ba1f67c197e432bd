"""Gateway payment service.

Owns the server side of card payments:
- Creating gateway payment intents for pending_payment orders
- Verifying an intent after the customer returns from the gateway
- Recording failed or cancelled attempts reported by the client
- Applying outcomes delivered by gateway webhooks

Every transition goes through the Order aggregate, so replays of the
same outcome never change an order twice and a paid order is never
downgraded.
"""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import structlog

from storefront.application.order_service import publish_events
from storefront.domain.entities import Order
from storefront.domain.exceptions import (
    InvalidStateTransitionError,
    OrderError,
    OrderNotFoundError,
)
from storefront.domain.state_machines import OrderStatus, PaymentOutcome
from storefront.infrastructure.config import settings
from storefront.infrastructure.payment_gateway import (
    GatewayClient,
    GatewayClientError,
    PaymentIntent,
    get_gateway_client,
)
from storefront.infrastructure.repositories import OrderRepository, get_order_repository

logger = structlog.get_logger()


# ============================================================================
# Result Types
# ============================================================================


@dataclass
class PaymentIntentResult:
    """Result of creating a payment intent."""

    intent: PaymentIntent | None = None
    order: Order | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class VerifyPaymentResult:
    """Result of verifying a payment intent with the gateway."""

    order: Order | None = None
    intent: PaymentIntent | None = None
    paid: bool = False
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentStatusResult:
    """Result of recording a payment outcome on an order."""

    order: Order | None = None
    changed: bool = False
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def build_return_url(outcome: PaymentOutcome, order_id: str) -> str:
    """Build the checkout URL the gateway redirects back to."""
    query = urlencode({"payment_status": outcome.value, "orderId": order_id})
    return f"{settings.frontend_url.rstrip('/')}/checkout?{query}"


# ============================================================================
# Payment Service
# ============================================================================


class PaymentService:
    """Application service for gateway payments."""

    def __init__(
        self,
        orders: OrderRepository | None = None,
        gateway: GatewayClient | None = None,
        request_id: str | None = None,
    ) -> None:
        self.orders = orders or get_order_repository()
        self.gateway = gateway or get_gateway_client()
        self.request_id = request_id

    def _get_customer_order(self, customer_id: str | None, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None or (customer_id is not None and order.customer_id != customer_id):
            raise OrderNotFoundError(order_id)
        return order

    def _save(self, order: Order) -> None:
        self.orders.save(order)
        publish_events(order)

    async def create_payment_intent(self, customer_id: str, order_id: str) -> PaymentIntentResult:
        """Create a gateway payment intent for an order awaiting payment.

        A failed or cancelled order is moved back to pending_payment so
        the customer can retry.

        Args:
            customer_id: Customer owning the order.
            order_id: Order to pay.

        Returns:
            PaymentIntentResult with the intent (and its redirect URL).
        """
        try:
            order = self._get_customer_order(customer_id, order_id)
        except OrderNotFoundError as e:
            return PaymentIntentResult(success=False, error=e.message, error_code=e.error_code)

        if order.status.is_paid():
            return PaymentIntentResult(
                order=order,
                success=False,
                error=f"Order {order_id} has already been paid",
                error_code="PAYMENT_ALREADY_CAPTURED",
            )
        if not order.status.is_awaiting_payment():
            return PaymentIntentResult(
                order=order,
                success=False,
                error=f"Order {order_id} is not awaiting online payment (status '{order.status.value}')",
                error_code="INVALID_STATE_TRANSITION",
            )
        if order.total.amount_cents < settings.gateway_min_amount_cents:
            return PaymentIntentResult(
                order=order,
                success=False,
                error=f"Minimum order amount is {settings.gateway_min_amount_cents / 100:.2f} {order.total.currency}",
                error_code="AMOUNT_TOO_LOW",
                details={"min_amount_cents": settings.gateway_min_amount_cents},
            )

        try:
            intent = await self.gateway.create_payment_intent(
                amount_cents=order.total.amount_cents,
                currency=order.total.currency,
                message=f"Order {order_id}",
                success_url=build_return_url(PaymentOutcome.SUCCESS, order_id),
                cancel_url=build_return_url(PaymentOutcome.CANCELLED, order_id),
                failure_url=build_return_url(PaymentOutcome.FAILURE, order_id),
            )
        except GatewayClientError as e:
            logger.error(
                "Payment intent creation failed",
                order_id=order_id,
                error=e.message,
                gateway_status=e.status_code,
                request_id=self.request_id,
            )
            return PaymentIntentResult(
                order=order,
                success=False,
                error="Payment gateway is unavailable",
                error_code="GATEWAY_ERROR",
            )

        order.restart_payment(intent.id)
        self._save(order)
        logger.info(
            "Payment intent attached to order",
            order_id=order_id,
            payment_intent_id=intent.id,
            amount_cents=order.total.amount_cents,
            request_id=self.request_id,
        )
        return PaymentIntentResult(intent=intent, order=order)

    async def verify_payment(
        self, customer_id: str, payment_intent_id: str, order_id: str | None = None
    ) -> VerifyPaymentResult:
        """Check an intent's status with the gateway and confirm the order if paid.

        Args:
            customer_id: Customer owning the order.
            payment_intent_id: Gateway intent to check.
            order_id: Order the client believes the intent belongs to.

        Returns:
            VerifyPaymentResult; paid is True once the order is confirmed.
        """
        order = (
            self.orders.get(order_id) if order_id else self.orders.get_by_payment_intent(payment_intent_id)
        )
        if order is None or order.customer_id != customer_id:
            missing = order_id or payment_intent_id
            return VerifyPaymentResult(
                success=False,
                error=f"Order {missing} not found",
                error_code="ORDER_NOT_FOUND",
            )
        if order.payment_intent_id != payment_intent_id:
            return VerifyPaymentResult(
                order=order,
                success=False,
                error="Payment intent does not belong to this order",
                error_code="PAYMENT_INTENT_MISMATCH",
            )

        try:
            intent = await self.gateway.get_payment_intent(payment_intent_id)
        except GatewayClientError as e:
            logger.warning(
                "Payment verification failed",
                order_id=str(order.id),
                payment_intent_id=payment_intent_id,
                error=e.message,
                request_id=self.request_id,
            )
            return VerifyPaymentResult(
                order=order,
                success=False,
                error="Payment gateway is unavailable",
                error_code="GATEWAY_ERROR",
            )

        if intent.is_successful:
            try:
                if order.confirm_payment(intent.id, source="verification"):
                    self._save(order)
            except InvalidStateTransitionError as e:
                return VerifyPaymentResult(
                    order=order,
                    intent=intent,
                    success=False,
                    error=e.message,
                    error_code=e.error_code,
                    details=e.details,
                )

        logger.info(
            "Payment verified",
            order_id=str(order.id),
            payment_intent_id=payment_intent_id,
            gateway_status=intent.status,
            order_status=order.status.value,
            request_id=self.request_id,
        )
        return VerifyPaymentResult(order=order, intent=intent, paid=order.status.is_paid())

    async def record_payment_status(
        self,
        customer_id: str | None,
        order_id: str,
        status: OrderStatus,
        reason: str | None = None,
    ) -> PaymentStatusResult:
        """Persist a failed or cancelled gateway attempt on an order.

        Recording the status the order already has is a no-op.

        Args:
            customer_id: Customer owning the order; None for gateway callers.
            order_id: Order to update.
            status: PAYMENT_FAILED or PAYMENT_CANCELLED.
            reason: Optional reason reported by the gateway.

        Returns:
            PaymentStatusResult; changed is False for replays.
        """
        try:
            order = self._get_customer_order(customer_id, order_id)
            changed = order.record_payment_outcome(status, reason)
        except OrderError as e:
            logger.warning(
                "Payment status not recorded",
                order_id=order_id,
                target_status=status.value,
                error_code=e.error_code,
                request_id=self.request_id,
            )
            return PaymentStatusResult(
                success=False, error=e.message, error_code=e.error_code, details=e.details
            )
        except InvalidStateTransitionError as e:
            return PaymentStatusResult(
                order=order, success=False, error=e.message, error_code=e.error_code, details=e.details
            )

        if changed:
            self._save(order)
        logger.info(
            "Payment status recorded",
            order_id=order_id,
            status=order.status.value,
            changed=changed,
            request_id=self.request_id,
        )
        return PaymentStatusResult(order=order, changed=changed)

    async def apply_gateway_outcome(
        self, payment_intent_id: str, outcome: PaymentOutcome, reason: str | None = None
    ) -> PaymentStatusResult:
        """Apply an outcome pushed by the gateway for one of its intents.

        Raises:
            OrderNotFoundError: If no order carries the intent.
        """
        order = self.orders.get_by_payment_intent(payment_intent_id)
        if order is None:
            raise OrderNotFoundError(payment_intent_id)

        if outcome is PaymentOutcome.SUCCESS:
            changed = order.confirm_payment(payment_intent_id, source="webhook")
            if changed:
                self._save(order)
            return PaymentStatusResult(order=order, changed=changed)

        return await self.record_payment_status(
            None, str(order.id), outcome.to_order_status(), reason
        )


def get_payment_service(request_id: str | None = None) -> PaymentService:
    """Get payment service instance over the shared repositories."""
    return PaymentService(request_id=request_id)
