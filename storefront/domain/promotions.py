"""Promo code evaluation.

Validates a promo code against the current cart and computes the
discount. Discounts are taken off the pre-shipping subtotal, and the
payable total never drops below zero.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Protocol, Self

from storefront.domain.base import ValueObject, utc_now
from storefront.domain.entities import PromoCode
from storefront.domain.exceptions import (
    PromoCodeExpiredError,
    PromoCodeNotApplicableError,
    PromoCodeNotFoundError,
)
from storefront.domain.value_objects import Money


class PromoCodeLookup(Protocol):
    """Storage collaborator that finds promo codes."""

    def get_by_code(self, code: str) -> PromoCode | None: ...


@dataclass(frozen=True)
class PromoApplication(ValueObject):
    """A promo code applied to a cart.

    Only valid for the subtotal it was computed against; any cart change
    means it has to be evaluated again.

    Attributes:
        code: Code as entered, normalized to upper case.
        promo_id: Identifier of the promo code record.
        discount: Discount amount.
        subtotal: Subtotal the discount was computed against.
        description: Customer-facing description.
    """

    code: str
    promo_id: str
    discount: Money
    subtotal: Money
    description: str = ""

    def is_valid_for(self, subtotal: Money) -> bool:
        return self.subtotal == subtotal

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "promo_id": self.promo_id,
            "discount_cents": self.discount.amount_cents,
            "subtotal_cents": self.subtotal.amount_cents,
            "currency": self.discount.currency,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        currency = data["currency"]
        return cls(
            code=data["code"],
            promo_id=data["promo_id"],
            discount=Money(data["discount_cents"], currency),
            subtotal=Money(data["subtotal_cents"], currency),
            description=data.get("description", ""),
        )


def final_total(subtotal: Money, shipping_fee: Money, discount: Money) -> Money:
    """Amount payable: subtotal plus shipping minus discount, floored at zero."""
    return (subtotal + shipping_fee).subtract_floor_zero(discount)


class PromotionEvaluator:
    """Validates promo codes and computes their discount.

    Every call re-reads the code from storage; nothing is cached between
    applications.
    """

    def __init__(self, lookup: PromoCodeLookup) -> None:
        self._lookup = lookup

    @staticmethod
    def compute_discount(promo: PromoCode, subtotal: Money) -> Money:
        """Compute the discount a promo gives on a subtotal.

        Percentage discounts are capped by max_off when it is set.
        """
        if promo.percent_off is not None:
            raw = subtotal.to_decimal() * promo.percent_off / Decimal(100)
            discount = Money.from_decimal(
                raw.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP), subtotal.currency
            )
            if promo.max_off is not None and discount > promo.max_off:
                discount = promo.max_off
            return discount
        return promo.flat_off

    def apply(
        self,
        code: str,
        subtotal: Money,
        *,
        categories: Iterable[str | None] = (),
        customer_email: str | None = None,
        usage_count: int = 0,
        now: datetime | None = None,
    ) -> PromoApplication:
        """Apply a promo code to a cart subtotal.

        Args:
            code: Code entered by the customer.
            subtotal: Pre-shipping cart subtotal.
            categories: Categories of the products in the cart.
            customer_email: Email of the customer redeeming the code.
            usage_count: How many times this customer already used the code.
            now: Evaluation time, defaults to the current UTC time.

        Returns:
            PromoApplication for this subtotal.

        Raises:
            PromoCodeNotFoundError: Unknown or inactive code.
            PromoCodeExpiredError: Outside the validity window.
            PromoCodeNotApplicableError: Cart or customer does not qualify.
        """
        normalized = code.strip().upper()
        promo = self._lookup.get_by_code(normalized) if normalized else None
        if promo is None or not promo.is_active:
            raise PromoCodeNotFoundError(normalized)

        now = now or utc_now()
        if not promo.has_started(now) or promo.has_expired(now):
            raise PromoCodeExpiredError(normalized)

        if not promo.is_available_to(customer_email):
            raise PromoCodeNotApplicableError(normalized, "not available for this account")

        if promo.min_purchase is not None and subtotal < promo.min_purchase:
            raise PromoCodeNotApplicableError(
                normalized, f"minimum purchase of {promo.min_purchase} required"
            )

        if promo.eligible_categories:
            in_cart = {c.lower() for c in categories if c}
            allowed = {c.lower() for c in promo.eligible_categories}
            if not in_cart & allowed:
                raise PromoCodeNotApplicableError(
                    normalized, "no items in eligible categories"
                )

        if promo.max_uses_per_user is not None and usage_count >= promo.max_uses_per_user:
            raise PromoCodeNotApplicableError(normalized, "usage limit reached")

        return PromoApplication(
            code=promo.code,
            promo_id=promo.id,
            discount=self.compute_discount(promo, subtotal),
            subtotal=subtotal,
            description=promo.description,
        )
