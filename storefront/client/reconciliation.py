"""Gateway return handling.

When the gateway sends the customer back to /checkout it appends
payment_status and orderId to the URL. The page may be reloaded or the
redirect replayed, so every (outcome, order) pair is handled at most
once per session.
"""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from storefront.client.api_client import StorefrontAPIClient
from storefront.client.cart import CartStore
from storefront.client.context import CheckoutContext
from storefront.domain.state_machines import CheckoutStep, PaymentOutcome

logger = structlog.get_logger()

FAILURE_MESSAGES = {
    PaymentOutcome.FAILURE: "Your payment did not go through. Please try again or choose another payment method.",
    PaymentOutcome.CANCELLED: "Payment was cancelled. Your cart and details have been kept.",
}

# Status values the payment-status endpoint accepts.
REPORTED_STATUS = {
    PaymentOutcome.FAILURE: "failed",
    PaymentOutcome.CANCELLED: "cancelled",
}


@dataclass
class ReconciliationResult:
    """What handling a gateway return did.

    Attributes:
        handled: False when the URL carried no recognisable callback.
        duplicate: True when this callback was already handled.
        outcome: Parsed payment outcome.
        order_id: Order the callback refers to.
        verified: True when the server confirmed the payment as paid.
        order: Order details for the confirmation view.
    """

    handled: bool
    duplicate: bool = False
    outcome: PaymentOutcome | None = None
    order_id: str | None = None
    verified: bool = False
    order: dict[str, Any] | None = None


def callback_key(outcome: PaymentOutcome, order_id: str) -> str:
    return f"{outcome.value}:{order_id}"


class PaymentReconciler:
    """Applies the gateway's redirect back to checkout."""

    def __init__(self, api: StorefrontAPIClient, cart: CartStore, context: CheckoutContext) -> None:
        self.api = api
        self.cart = cart
        self.context = context

    async def handle_return(self, url: str) -> ReconciliationResult:
        """Handle the URL the customer landed on after the gateway.

        The callback is marked as processed before any side effect, so a
        reload while this runs cannot apply it twice.

        Args:
            url: Full or relative URL, e.g.
                "/checkout?payment_status=failure&orderId=...".

        Returns:
            ReconciliationResult describing what was done.
        """
        params = httpx.URL(url).params
        outcome = PaymentOutcome.parse(params.get("payment_status"))
        order_id = params.get("orderId")
        if outcome is None or not order_id:
            return ReconciliationResult(handled=False)

        key = callback_key(outcome, order_id)
        if self.context.is_callback_processed(key):
            logger.info("Payment callback already handled", callback=key)
            return ReconciliationResult(handled=True, duplicate=True, outcome=outcome, order_id=order_id)
        self.context.mark_callback_processed(key)

        log = logger.bind(order_id=order_id, outcome=outcome.value, session_id=self.context.session_id)
        log.info("Handling payment callback")

        if outcome == PaymentOutcome.SUCCESS:
            return await self._complete(order_id, log)
        return await self._recover(outcome, order_id, log)

    async def _complete(self, order_id: str, log: Any) -> ReconciliationResult:
        verified = False
        intent_id = self.context.payment_intent_id()
        if intent_id:
            response = await self.api.verify_payment(intent_id, order_id)
            if response.success:
                verified = bool(response.data.get("paid"))
            else:
                log.warning("Payment verification failed", error_code=response.error.error_code)

        order = self.context.pending_order()
        response = await self.api.get_order(order_id)
        if response.success:
            order = response.data
        else:
            log.warning("Could not load order after payment", error_code=response.error.error_code)

        self.cart.clear()
        self.context.discard_recovery_snapshot()
        self.context.promo = None
        self.context.submission_key = None
        self.context.step = CheckoutStep.SUBMITTED
        self.context.confirmation = order
        log.info("Gateway payment completed", verified=verified)
        return ReconciliationResult(
            handled=True, outcome=PaymentOutcome.SUCCESS, order_id=order_id, verified=verified, order=order
        )

    async def _recover(self, outcome: PaymentOutcome, order_id: str, log: Any) -> ReconciliationResult:
        if not self.context.restore_recovery_snapshot():
            log.warning("No checkout snapshot to restore")

        response = await self.api.update_payment_status(
            order_id, REPORTED_STATUS[outcome], reason=f"Gateway returned {outcome.value}"
        )
        if not response.success:
            log.warning("Could not report payment outcome", error_code=response.error.error_code)

        self.context.notify("error" if outcome == PaymentOutcome.FAILURE else "warning", FAILURE_MESSAGES[outcome])
        self.context.submitting = False
        self.context.step = CheckoutStep.PAYMENT_SELECTION
        return ReconciliationResult(handled=True, outcome=outcome, order_id=order_id, order=self.context.pending_order())
