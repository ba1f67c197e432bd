"""Domain layer - pricing rules, eligibility, orders and their lifecycle.

This module exports the core domain building blocks:

- **Value Objects**: Money, ShippingAddress, typed IDs, size/colour selections
- **Entities**: Product, CartLine, PromoCode, Order
- **Calculators**: EligibilityResolver, FeeCalculator, PromotionEvaluator
- **State Machines**: OrderStatus, CheckoutStep, PaymentOutcome
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from storefront.domain import CartLine, EligibilityResolver, FeeCalculator

    snapshot = EligibilityResolver().resolve(lines)
    quote = FeeCalculator().quote(subtotal_of(lines), snapshot)
    print(quote.total)  # 90.00 AED
"""

from storefront.domain.eligibility import EligibilityResolver, EligibilitySnapshot
from storefront.domain.entities import (
    CartLine,
    Order,
    OrderItem,
    Product,
    ProductVariant,
    PromoCode,
    subtotal_of,
)
from storefront.domain.fees import FeeCalculator, FeeQuote
from storefront.domain.promotions import PromoApplication, PromotionEvaluator, final_total
from storefront.domain.state_machines import CheckoutStep, OrderStatus, PaymentOutcome
from storefront.domain.value_objects import (
    DEFAULT_COLOUR,
    DEFAULT_SIZE,
    Customer,
    Money,
    OrderId,
    PaymentMethod,
    ProductId,
    ShippingAddress,
    SimpleSelection,
    VariantSelection,
    make_selection,
)

__all__ = [
    "CartLine",
    "CheckoutStep",
    "Customer",
    "DEFAULT_COLOUR",
    "DEFAULT_SIZE",
    "EligibilityResolver",
    "EligibilitySnapshot",
    "FeeCalculator",
    "FeeQuote",
    "Money",
    "Order",
    "OrderId",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentOutcome",
    "Product",
    "ProductId",
    "ProductVariant",
    "PromoApplication",
    "PromoCode",
    "PromotionEvaluator",
    "ShippingAddress",
    "SimpleSelection",
    "VariantSelection",
    "final_total",
    "make_selection",
    "subtotal_of",
]
