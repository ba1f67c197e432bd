"""Tests for order and checkout step state machines."""

import pytest

from storefront.domain.exceptions import InvalidStateTransitionError
from storefront.domain.state_machines import (
    CheckoutStep,
    OrderStatus,
    PaymentOutcome,
    validate_checkout_step,
    validate_order_transition,
)


class TestOrderStatus:
    """Tests for OrderStatus transitions."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.PENDING_PAYMENT, OrderStatus.CONFIRMED),
            (OrderStatus.PENDING_PAYMENT, OrderStatus.PAYMENT_FAILED),
            (OrderStatus.PENDING_PAYMENT, OrderStatus.PAYMENT_CANCELLED),
            (OrderStatus.PAYMENT_FAILED, OrderStatus.PENDING_PAYMENT),
            (OrderStatus.PAYMENT_FAILED, OrderStatus.CONFIRMED),
            (OrderStatus.PAYMENT_CANCELLED, OrderStatus.PENDING_PAYMENT),
            (OrderStatus.CONFIRMED, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        ],
    )
    def test_allowed(self, current, target) -> None:
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.CONFIRMED, OrderStatus.PAYMENT_FAILED),
            (OrderStatus.CONFIRMED, OrderStatus.PENDING_PAYMENT),
            (OrderStatus.PENDING, OrderStatus.PAYMENT_FAILED),
            (OrderStatus.PAYMENT_FAILED, OrderStatus.PAYMENT_CANCELLED),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
        ],
    )
    def test_disallowed(self, current, target) -> None:
        assert not current.can_transition_to(target)

    def test_paid_statuses(self) -> None:
        assert OrderStatus.CONFIRMED.is_paid()
        assert not OrderStatus.PENDING.is_paid()
        assert not OrderStatus.PAYMENT_FAILED.is_paid()

    def test_terminal_statuses(self) -> None:
        assert OrderStatus.DELIVERED.is_terminal()
        assert OrderStatus.CANCELLED.is_terminal()
        assert not OrderStatus.PAYMENT_FAILED.is_terminal()

    def test_validate_raises_with_allowed_list(self) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_order_transition("o1", OrderStatus.CONFIRMED, OrderStatus.PAYMENT_FAILED)
        assert exc_info.value.details["allowed_transitions"] == ["cancelled", "shipped"]


class TestCheckoutStep:
    """Tests for client checkout steps."""

    def test_forward_path(self) -> None:
        assert CheckoutStep.CART_REVIEW.can_transition_to(CheckoutStep.ADDRESS_CAPTURE)
        assert CheckoutStep.ADDRESS_CAPTURE.can_transition_to(CheckoutStep.PAYMENT_SELECTION)
        assert CheckoutStep.PAYMENT_SELECTION.can_transition_to(CheckoutStep.SUBMITTED)

    def test_payment_selection_can_be_re_entered(self) -> None:
        assert CheckoutStep.PAYMENT_SELECTION.can_transition_to(CheckoutStep.PAYMENT_SELECTION)

    def test_cannot_skip_address(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            validate_checkout_step("s1", CheckoutStep.CART_REVIEW, CheckoutStep.PAYMENT_SELECTION)

    def test_submitted_is_terminal(self) -> None:
        assert CheckoutStep.SUBMITTED.is_terminal()


class TestPaymentOutcome:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("success", PaymentOutcome.SUCCESS),
            ("FAILURE", PaymentOutcome.FAILURE),
            (" cancelled ", PaymentOutcome.CANCELLED),
            ("paid", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse(self, value, expected) -> None:
        assert PaymentOutcome.parse(value) == expected

    def test_failure_and_cancel_stay_distinct(self) -> None:
        assert PaymentOutcome.FAILURE.to_order_status() == OrderStatus.PAYMENT_FAILED
        assert PaymentOutcome.CANCELLED.to_order_status() == OrderStatus.PAYMENT_CANCELLED
