"""Promo code application service.

Validates codes against a cart for display and lists the codes a
customer can currently use. Orders re-evaluate the code on creation,
so a validation here is advisory only.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from storefront.domain.entities import PromoCode
from storefront.domain.exceptions import PromoCodeError
from storefront.domain.promotions import PromoApplication, PromotionEvaluator
from storefront.domain.value_objects import Customer, Money
from storefront.infrastructure.config import settings
from storefront.infrastructure.repositories import (
    ProductRepository,
    PromoCodeRepository,
    get_product_repository,
    get_promo_code_repository,
)

logger = structlog.get_logger()


@dataclass
class PromoCartItem:
    """A cart item as sent for promo validation."""

    product_id: str
    quantity: int
    price: float | None = None


@dataclass
class ValidatePromoResult:
    """Result of validating a promo code."""

    application: PromoApplication | None = None
    cart_total: Money | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


class PromoService:
    """Application service for promo codes."""

    def __init__(
        self,
        promo_codes: PromoCodeRepository | None = None,
        products: ProductRepository | None = None,
        request_id: str | None = None,
    ) -> None:
        self.promo_codes = promo_codes or get_promo_code_repository()
        self.products = products or get_product_repository()
        self.request_id = request_id
        self.evaluator = PromotionEvaluator(self.promo_codes)

    def _categories(self, cart_items: list[PromoCartItem]) -> list[str | None]:
        categories: list[str | None] = []
        for item in cart_items:
            product = self.products.get(item.product_id)
            if product is not None:
                categories.append(product.category)
        return categories

    async def validate_code(
        self,
        customer: Customer,
        code: str,
        cart_items: list[PromoCartItem],
        cart_total: float,
    ) -> ValidatePromoResult:
        """Validate a promo code against the customer's cart.

        Args:
            customer: Authenticated customer.
            code: Code entered by the customer.
            cart_items: Items in the cart, used for category rules.
            cart_total: Pre-shipping cart subtotal.

        Returns:
            ValidatePromoResult with the application or the rejection.
        """
        subtotal = Money.from_float(cart_total, settings.currency)
        promo = self.promo_codes.get_by_code(code)
        usage = self.promo_codes.usage_count(promo.id, customer.id) if promo else 0

        try:
            application = self.evaluator.apply(
                code,
                subtotal,
                categories=self._categories(cart_items),
                customer_email=customer.email,
                usage_count=usage,
            )
        except PromoCodeError as e:
            logger.info(
                "Promo code rejected",
                code=code,
                customer_id=customer.id,
                error_code=e.error_code,
                request_id=self.request_id,
            )
            return ValidatePromoResult(
                success=False, error=e.message, error_code=e.error_code, details=e.details
            )

        logger.info(
            "Promo code validated",
            code=application.code,
            customer_id=customer.id,
            discount_cents=application.discount.amount_cents,
            request_id=self.request_id,
        )
        return ValidatePromoResult(application=application, cart_total=subtotal)

    async def list_available(self, customer: Customer) -> list[PromoCode]:
        """List codes the customer can currently redeem."""
        available = []
        for promo in self.promo_codes.list_available(customer.email):
            used = self.promo_codes.usage_count(promo.id, customer.id)
            if promo.max_uses_per_user is None or used < promo.max_uses_per_user:
                available.append(promo)
        return available


def get_promo_service(request_id: str | None = None) -> PromoService:
    """Get promo service instance over the shared repositories."""
    return PromoService(request_id=request_id)
