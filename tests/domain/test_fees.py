"""Tests for tiered shipping fees."""

import pytest

from storefront.domain.eligibility import EligibilitySnapshot
from storefront.domain.fees import FeeCalculator, FeeQuote
from storefront.domain.value_objects import Money


def fee(subtotal: str, all_cod_eligible: bool) -> float:
    return FeeCalculator().shipping_fee(Money.from_float(float(subtotal)), all_cod_eligible).to_float()


class TestCodTier:
    """All lines COD eligible: 10% of subtotal, clamped to [10, 15], free from 150."""

    @pytest.mark.parametrize(
        "subtotal,expected",
        [
            ("25.00", 10.0),
            ("80.00", 10.0),
            ("100.00", 10.0),
            ("100.01", 10.0),
            ("120.00", 12.0),
            ("125.55", 12.56),
            ("149.99", 15.0),
            ("150.00", 0.0),
            ("480.00", 0.0),
        ],
    )
    def test_fee(self, subtotal: str, expected: float) -> None:
        assert fee(subtotal, True) == expected

    def test_fee_within_bounds_below_threshold(self) -> None:
        for cents in range(100, 15000, 997):
            amount = FeeCalculator().shipping_fee(Money(cents), True).amount_cents
            assert 1000 <= amount <= 1500


class TestMixedTier:
    """Any ineligible line: flat 10 up to and including 100, free above."""

    @pytest.mark.parametrize(
        "subtotal,expected",
        [
            ("25.00", 10.0),
            ("100.00", 10.0),
            ("100.01", 0.0),
            ("149.99", 0.0),
            ("150.00", 0.0),
            ("200.00", 0.0),
        ],
    )
    def test_fee(self, subtotal: str, expected: float) -> None:
        assert fee(subtotal, False) == expected


class TestFeeQuote:
    def test_quote_is_deterministic(self) -> None:
        calculator = FeeCalculator()
        subtotal = Money.from_float(80.0)
        assert calculator.quote_for(subtotal, True) == calculator.quote_for(subtotal, True)

    def test_quote_total(self) -> None:
        quote = FeeCalculator().quote(Money.from_float(80.0), EligibilitySnapshot())
        assert quote.fee == Money.from_float(10.0)
        assert quote.total == Money.from_float(90.0)
        assert quote.all_cod_eligible is True

    def test_source_is_recorded(self) -> None:
        quote = FeeCalculator(source="local").quote_for(Money.from_float(80.0), True)
        assert quote.source == "local"

    def test_dict_round_trip(self) -> None:
        quote = FeeCalculator().quote_for(Money.from_float(149.99), True)
        assert FeeQuote.from_dict(quote.to_dict()) == quote

    def test_messages_describe_tier(self) -> None:
        calculator = FeeCalculator()
        assert "Free shipping" in calculator.message_for(Money.from_float(150.0), True)
        assert "Flat shipping" in calculator.message_for(Money.from_float(100.0), False)
        assert "Free shipping" in calculator.message_for(Money.from_float(100.01), False)
