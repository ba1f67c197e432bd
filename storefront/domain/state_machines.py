"""State machines for the checkout and order payment lifecycle.

Deterministic state machines that define valid transitions for orders
(server side) and checkout steps (client side), plus the outcome values
the payment gateway reports on redirect.
"""

from enum import Enum
from typing import Self

from storefront.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Order State Machine
# ============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states.

    State diagram:
        PENDING (cod) ─────────── confirm ────────────┐
                                                     ▼
        PENDING_PAYMENT ─── gateway success ───► CONFIRMED ─► SHIPPED ─► DELIVERED
          │        ▲                                 ▲
          │ fail / │ retry                           │ late success
          ▼ cancel │                                 │
        PAYMENT_FAILED / PAYMENT_CANCELLED ──────────┘

        Every non-terminal state before SHIPPED may move to CANCELLED.
    """

    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_CANCELLED = "payment_cancelled"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get list of valid target states, sorted for stable output."""
        return sorted(_ORDER_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return len(_ORDER_TRANSITIONS.get(self, set())) == 0

    def is_paid(self) -> bool:
        """Check if the order's payment has been captured or confirmed.

        COD orders count as paid only once confirmed.
        """
        return self in {OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED}

    def is_awaiting_payment(self) -> bool:
        """Check if a gateway payment may still be attempted."""
        return self in {
            OrderStatus.PENDING_PAYMENT,
            OrderStatus.PAYMENT_FAILED,
            OrderStatus.PAYMENT_CANCELLED,
        }


# Order state transitions (defined outside enum to avoid Enum restrictions)
_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.PENDING_PAYMENT: {
        OrderStatus.CONFIRMED,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.PAYMENT_CANCELLED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PAYMENT_FAILED: {
        OrderStatus.PENDING_PAYMENT,  # retry
        OrderStatus.CONFIRMED,  # late success from the gateway
        OrderStatus.CANCELLED,
    },
    OrderStatus.PAYMENT_CANCELLED: {
        OrderStatus.PENDING_PAYMENT,
        OrderStatus.CONFIRMED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal state
    OrderStatus.CANCELLED: set(),  # Terminal state
}


# ============================================================================
# Checkout Step State Machine
# ============================================================================


class CheckoutStep(str, Enum):
    """Client-side checkout steps.

    State diagram:
        CART_REVIEW ⇄ ADDRESS_CAPTURE ⇄ PAYMENT_SELECTION ─► SUBMITTED
    """

    CART_REVIEW = "cart_review"
    ADDRESS_CAPTURE = "address_capture"
    PAYMENT_SELECTION = "payment_selection"
    SUBMITTED = "submitted"

    def can_transition_to(self, target: "CheckoutStep") -> bool:
        return target in _CHECKOUT_STEP_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["CheckoutStep"]:
        return sorted(_CHECKOUT_STEP_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_terminal(self) -> bool:
        return len(_CHECKOUT_STEP_TRANSITIONS.get(self, set())) == 0


_CHECKOUT_STEP_TRANSITIONS: dict[CheckoutStep, set[CheckoutStep]] = {
    CheckoutStep.CART_REVIEW: {CheckoutStep.ADDRESS_CAPTURE},
    CheckoutStep.ADDRESS_CAPTURE: {CheckoutStep.CART_REVIEW, CheckoutStep.PAYMENT_SELECTION},
    CheckoutStep.PAYMENT_SELECTION: {
        CheckoutStep.ADDRESS_CAPTURE,
        CheckoutStep.PAYMENT_SELECTION,  # re-entry after a failed gateway attempt
        CheckoutStep.SUBMITTED,
    },
    CheckoutStep.SUBMITTED: set(),  # Terminal state
}


# ============================================================================
# Gateway Payment Outcome
# ============================================================================


class PaymentOutcome(str, Enum):
    """Terminal outcome carried by the gateway's redirect back to checkout."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str | None) -> Self | None:
        """Parse a query-string value, returning None for anything unknown."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    def to_order_status(self) -> OrderStatus:
        """Map the outcome to the order status it settles on."""
        return {
            PaymentOutcome.SUCCESS: OrderStatus.CONFIRMED,
            PaymentOutcome.FAILURE: OrderStatus.PAYMENT_FAILED,
            PaymentOutcome.CANCELLED: OrderStatus.PAYMENT_CANCELLED,
        }[self]


# ============================================================================
# State Machine Helpers
# ============================================================================


def validate_order_transition(
    order_id: str,
    current_status: OrderStatus,
    target_status: OrderStatus,
) -> None:
    """Validate and raise if order state transition is invalid.

    Args:
        order_id: Order identifier for error message.
        current_status: Current order status.
        target_status: Target order status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Order",
            entity_id=order_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )


def validate_checkout_step(
    session_id: str,
    current_step: CheckoutStep,
    target_step: CheckoutStep,
) -> None:
    """Validate and raise if a checkout step change is invalid.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_step.can_transition_to(target_step):
        raise InvalidStateTransitionError(
            entity_type="Checkout",
            entity_id=session_id,
            current_state=current_step.value,
            target_state=target_step.value,
            allowed_transitions=[s.value for s in current_step.allowed_transitions()],
        )
