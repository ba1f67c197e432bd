"""Domain exceptions.

All domain-level errors that represent business rule violations in
checkout pricing and payment reconciliation. Entities, calculators and
state machines raise these; application services translate them into
result objects and the API layer into HTTP errors.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted."""

    error_code = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Order", "Checkout").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Validation Errors
# ============================================================================


class CheckoutValidationError(DomainError):
    """Raised when checkout input is missing or invalid.

    Carries field-level messages so they can be rendered next to the
    offending inputs.
    """

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field_errors: dict[str, str] | None = None) -> None:
        self.field_errors = field_errors or {}
        super().__init__(message, details={"field_errors": self.field_errors})


class AddressValidationError(CheckoutValidationError):
    """Raised when a shipping address is missing required fields."""

    def __init__(self, field_errors: dict[str, str]) -> None:
        super().__init__("Shipping address is incomplete", field_errors)


class CartEmptyError(CheckoutValidationError):
    """Raised when trying to check out an empty cart."""

    error_code = "CART_EMPTY"

    def __init__(self) -> None:
        super().__init__("Cannot check out an empty cart")


class InvalidQuantityError(CheckoutValidationError):
    """Raised when an invalid quantity is provided."""

    error_code = "INVALID_QUANTITY"

    def __init__(self, quantity: int, reason: str = "Quantity must be at least 1") -> None:
        super().__init__(
            f"Invalid quantity {quantity}: {reason}",
            field_errors={"quantity": reason},
        )
        self.details["quantity"] = quantity


# ============================================================================
# Catalog Errors
# ============================================================================


class CatalogError(DomainError):
    """Base class for product lookup and stock errors."""

    pass


class ProductNotFoundError(CatalogError):
    """Raised when an ordered product does not exist."""

    error_code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str) -> None:
        super().__init__(
            f"Product {product_id} not found",
            details={"product_id": product_id},
        )


class InsufficientStockError(CatalogError):
    """Raised when a product variant cannot cover the requested quantity."""

    error_code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, size: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id} (size {size}): "
            f"requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "size": size,
                "requested": requested,
                "available": available,
            },
        )


# ============================================================================
# Eligibility Errors
# ============================================================================


class EligibilityConflictError(DomainError):
    """Raised when a COD order contains lines that require online payment.

    The offending lines are carried so the customer can remove them or
    switch to card payment instead of having the order silently blocked.
    """

    error_code = "ELIGIBILITY_CONFLICT"

    def __init__(self, non_cod_items: list[dict[str, Any]]) -> None:
        self.non_cod_items = non_cod_items
        super().__init__(
            "Some items are not eligible for cash on delivery",
            details={"non_cod_items": non_cod_items},
        )


# ============================================================================
# Promotion Errors
# ============================================================================


class PromoCodeError(DomainError):
    """Base class for promo code errors."""

    pass


class PromoCodeNotFoundError(PromoCodeError):
    """Raised when a promo code does not exist or is inactive."""

    error_code = "PROMO_CODE_NOT_FOUND"

    def __init__(self, code: str) -> None:
        super().__init__(f"Promo code '{code}' not found", details={"code": code})


class PromoCodeExpiredError(PromoCodeError):
    """Raised when a promo code is outside its validity window."""

    error_code = "PROMO_CODE_EXPIRED"

    def __init__(self, code: str) -> None:
        super().__init__(f"Promo code '{code}' has expired", details={"code": code})


class PromoCodeNotApplicableError(PromoCodeError):
    """Raised when a promo code exists but does not apply to this cart."""

    error_code = "PROMO_CODE_NOT_APPLICABLE"

    def __init__(self, code: str, reason: str) -> None:
        super().__init__(
            f"Promo code '{code}' cannot be applied: {reason}",
            details={"code": code, "reason": reason},
        )
        self.reason = reason


# ============================================================================
# Order Errors
# ============================================================================


class OrderError(DomainError):
    """Base class for order-related errors."""

    pass


class OrderNotFoundError(OrderError):
    """Raised when an order does not exist for the requesting customer."""

    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found", details={"order_id": order_id})


class PaymentAlreadyCapturedError(OrderError):
    """Raised when a failure or cancellation arrives for an order already paid."""

    error_code = "PAYMENT_ALREADY_CAPTURED"

    def __init__(self, order_id: str) -> None:
        super().__init__(
            f"Order {order_id} has already been paid",
            details={"order_id": order_id},
        )


# ============================================================================
# Client Session Errors
# ============================================================================


class SessionExpiredError(DomainError):
    """Raised when the customer's auth token is missing or rejected.

    Carries the login URL that returns the customer to checkout
    once they have signed in again.
    """

    error_code = "SESSION_EXPIRED"

    def __init__(self, login_url: str) -> None:
        super().__init__("Please sign in to continue checkout", details={"login_url": login_url})
        self.login_url = login_url


class DuplicateSubmissionError(DomainError):
    """Raised when an order submission is already outstanding."""

    error_code = "DUPLICATE_SUBMISSION"

    def __init__(self) -> None:
        super().__init__("An order submission is already in progress")


class CheckoutSubmissionError(DomainError):
    """Raised when the server definitively rejects an order or payment request."""

    def __init__(self, error_code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details=details)
        self.error_code = error_code


# ============================================================================
# Money Errors
# ============================================================================


class MoneyError(DomainError):
    """Base class for money-related errors."""

    pass


class CurrencyMismatchError(MoneyError):
    """Raised when attempting to combine money with different currencies."""

    error_code = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str) -> None:
        super().__init__(
            f"Cannot combine money with different currencies: {currency1} and {currency2}",
            details={"currency1": currency1, "currency2": currency2},
        )


class NegativeMoneyError(MoneyError):
    """Raised when attempting to create money with negative amount."""

    error_code = "NEGATIVE_MONEY"

    def __init__(self, amount: int) -> None:
        super().__init__(
            f"Money amount cannot be negative: {amount}",
            details={"amount": amount},
        )
