"""Shipping fee tiers.

Two tiers, selected by the cart's COD composition:

- Not every line COD eligible: flat fee up to and including
  MIXED_CART_FREE_SHIPPING_ABOVE, free above it.
- Every line COD eligible: a percentage of the subtotal clamped to
  [COD_FEE_MIN, COD_FEE_MAX] below COD_FREE_SHIPPING_THRESHOLD, free
  from it upwards.

The server quotes with this calculator and the client falls back to the
same class when the server is unreachable, so both always agree.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Self

from storefront.domain.base import ValueObject
from storefront.domain.eligibility import EligibilitySnapshot
from storefront.domain.value_objects import Money

# Policy constants, in major currency units
MIXED_CART_FLAT_FEE = Decimal("10")
MIXED_CART_FREE_SHIPPING_ABOVE = Decimal("100")
COD_FREE_SHIPPING_THRESHOLD = Decimal("150")
COD_FEE_RATE = Decimal("0.10")
COD_FEE_MIN = Decimal("10")
COD_FEE_MAX = Decimal("15")

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class FeeQuote(ValueObject):
    """Shipping quote for a cart.

    Attributes:
        subtotal: Cart subtotal before shipping.
        fee: Shipping fee.
        all_cod_eligible: Whether the COD tier was used.
        message: Customer-facing explanation of the fee.
        source: "server" for the authoritative quote, "local" for the
            client-side fallback.
    """

    subtotal: Money
    fee: Money
    all_cod_eligible: bool
    message: str
    source: str = "server"

    @property
    def total(self) -> Money:
        return self.subtotal + self.fee

    def to_dict(self) -> dict[str, Any]:
        return {
            "subtotal_cents": self.subtotal.amount_cents,
            "fee_cents": self.fee.amount_cents,
            "total_cents": self.total.amount_cents,
            "currency": self.subtotal.currency,
            "all_cod_eligible": self.all_cod_eligible,
            "message": self.message,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        currency = data["currency"]
        return cls(
            subtotal=Money(data["subtotal_cents"], currency),
            fee=Money(data["fee_cents"], currency),
            all_cod_eligible=data["all_cod_eligible"],
            message=data["message"],
            source=data.get("source", "server"),
        )


class FeeCalculator:
    """Computes the shipping fee for a subtotal and COD composition.

    Deterministic: identical inputs always yield an identical quote.
    """

    def __init__(self, source: str = "server") -> None:
        self.source = source

    def shipping_fee(self, subtotal: Money, all_cod_eligible: bool) -> Money:
        """Compute the shipping fee alone.

        Args:
            subtotal: Cart subtotal.
            all_cod_eligible: Whether every line is COD eligible.

        Returns:
            Fee in the subtotal's currency.
        """
        amount = subtotal.to_decimal()
        if not all_cod_eligible:
            if amount <= MIXED_CART_FREE_SHIPPING_ABOVE:
                return Money.from_decimal(MIXED_CART_FLAT_FEE, subtotal.currency)
            return Money.zero(subtotal.currency)

        if amount >= COD_FREE_SHIPPING_THRESHOLD:
            return Money.zero(subtotal.currency)
        fee = min(max(amount * COD_FEE_RATE, COD_FEE_MIN), COD_FEE_MAX)
        return Money.from_decimal(fee.quantize(_CENTS, rounding=ROUND_HALF_UP), subtotal.currency)

    def message_for(self, subtotal: Money, all_cod_eligible: bool) -> str:
        amount = subtotal.to_decimal()
        currency = subtotal.currency
        if all_cod_eligible:
            if amount >= COD_FREE_SHIPPING_THRESHOLD:
                return f"Free shipping on cash on delivery orders of {COD_FREE_SHIPPING_THRESHOLD} {currency} or more"
            return (
                f"Shipping is {COD_FEE_RATE * 100:.0f}% of the order "
                f"(min {COD_FEE_MIN}, max {COD_FEE_MAX} {currency}) "
                f"below {COD_FREE_SHIPPING_THRESHOLD} {currency}"
            )
        if amount <= MIXED_CART_FREE_SHIPPING_ABOVE:
            return f"Flat shipping fee of {MIXED_CART_FLAT_FEE} {currency} on orders up to {MIXED_CART_FREE_SHIPPING_ABOVE} {currency}"
        return f"Free shipping on orders over {MIXED_CART_FREE_SHIPPING_ABOVE} {currency}"

    def quote(self, subtotal: Money, eligibility: EligibilitySnapshot) -> FeeQuote:
        """Quote shipping for a cart.

        Args:
            subtotal: Cart subtotal before shipping and discounts.
            eligibility: COD eligibility of the same cart.

        Returns:
            FeeQuote with total = subtotal + fee.
        """
        return self.quote_for(subtotal, eligibility.overall)

    def quote_for(self, subtotal: Money, all_cod_eligible: bool) -> FeeQuote:
        return FeeQuote(
            subtotal=subtotal,
            fee=self.shipping_fee(subtotal, all_cod_eligible),
            all_cod_eligible=all_cod_eligible,
            message=self.message_for(subtotal, all_cod_eligible),
            source=self.source,
        )
