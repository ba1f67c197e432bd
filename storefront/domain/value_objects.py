"""Value objects for the storefront domain.

Money, typed identifiers, shipping addresses, payment methods and the
tagged size/colour selection of a cart line.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Self
from uuid import UUID, uuid4

from storefront.domain.base import ValueObject
from storefront.domain.exceptions import (
    AddressValidationError,
    CurrencyMismatchError,
    NegativeMoneyError,
)

DEFAULT_CURRENCY = "AED"

# Sentinels used when a product has no size or colour choice
DEFAULT_SIZE = "One Size"
DEFAULT_COLOUR = "Default"


# ============================================================================
# Typed Identifiers
# ============================================================================


@dataclass(frozen=True)
class OrderId(ValueObject):
    """Strongly-typed order identifier."""

    value: UUID

    @classmethod
    def generate(cls) -> Self:
        """Generate a new order ID."""
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Create OrderId from string representation.

        Raises:
            ValueError: If value is not a UUID.
        """
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ProductId(ValueObject):
    """Strongly-typed product identifier.

    Product IDs are string-based and come from the catalog.
    """

    value: str

    def __post_init__(self) -> None:
        if not self.value or not self.value.strip():
            raise ValueError("Product ID cannot be empty")

    def __str__(self) -> str:
        return self.value


# ============================================================================
# Money Value Object
# ============================================================================


@dataclass(frozen=True)
class Money(ValueObject):
    """Monetary value with currency.

    Stored in the smallest currency unit (fils for AED) so totals never
    accumulate floating-point error. Conversions to and from major units
    go through Decimal with half-up rounding.

    Attributes:
        amount_cents: Amount in smallest currency unit.
        currency: ISO 4217 currency code.
    """

    amount_cents: int
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        if self.amount_cents < 0:
            raise NegativeMoneyError(self.amount_cents)
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> Self:
        """Create zero amount money."""
        return cls(amount_cents=0, currency=currency)

    @classmethod
    def from_decimal(cls, amount: Decimal, currency: str = DEFAULT_CURRENCY) -> Self:
        """Create money from a decimal amount in major units.

        Args:
            amount: Decimal amount (e.g., Decimal("149.99")).
            currency: Currency code.

        Returns:
            Money instance rounded half-up to the minor unit.
        """
        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return cls(amount_cents=cents, currency=currency)

    @classmethod
    def from_float(cls, amount: float, currency: str = DEFAULT_CURRENCY) -> Self:
        """Create money from a float amount in major units.

        Prefer from_decimal; floats are routed through str() so that
        values such as 149.99 keep their intended digits.
        """
        return cls.from_decimal(Decimal(str(amount)), currency)

    def to_decimal(self) -> Decimal:
        """Convert to a decimal amount in major units."""
        return Decimal(self.amount_cents) / 100

    def to_float(self) -> float:
        """Convert to a float in major units, for JSON payloads."""
        return float(self.to_decimal())

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount_cents + other.amount_cents, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        """Subtract money amounts.

        Raises:
            CurrencyMismatchError: If currencies don't match.
            NegativeMoneyError: If result would be negative.
        """
        self._check_currency(other)
        return Money(self.amount_cents - other.amount_cents, self.currency)

    def subtract_floor_zero(self, other: "Money") -> "Money":
        """Subtract, clamping the result at zero instead of raising."""
        self._check_currency(other)
        return Money(max(0, self.amount_cents - other.amount_cents), self.currency)

    def __mul__(self, quantity: int) -> "Money":
        return Money(self.amount_cents * quantity, self.currency)

    def __rmul__(self, quantity: int) -> "Money":
        return self.__mul__(quantity)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount_cents < other.amount_cents

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount_cents <= other.amount_cents

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount_cents > other.amount_cents

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount_cents >= other.amount_cents

    def __str__(self) -> str:
        return f"{self.to_decimal():.2f} {self.currency}"

    def is_zero(self) -> bool:
        return self.amount_cents == 0


# ============================================================================
# Payment Method
# ============================================================================


class PaymentMethod(str, Enum):
    """How the customer settles the order."""

    COD = "cod"
    CARD = "card"

    def is_online(self) -> bool:
        """Check whether the method goes through the external gateway."""
        return self is PaymentMethod.CARD


# ============================================================================
# Cart Line Selection
# ============================================================================


@dataclass(frozen=True)
class VariantSelection(ValueObject):
    """A concrete size and colour chosen for a product with variants."""

    size: str
    colour: str = DEFAULT_COLOUR

    kind = "variant"


@dataclass(frozen=True)
class SimpleSelection(ValueObject):
    """Selection for a product without size or colour choices."""

    kind = "simple"

    @property
    def size(self) -> str:
        return DEFAULT_SIZE

    @property
    def colour(self) -> str:
        return DEFAULT_COLOUR


Selection = VariantSelection | SimpleSelection


def make_selection(size: str | None = None, colour: str | None = None) -> Selection:
    """Resolve raw size/colour inputs into a tagged selection.

    Blank values and the sentinels collapse to ``SimpleSelection`` when
    neither a size nor a colour was really chosen.

    Args:
        size: Selected size, possibly empty or the default sentinel.
        colour: Selected colour, possibly empty or the default sentinel.

    Returns:
        VariantSelection or SimpleSelection.
    """
    size = (size or "").strip()
    colour = (colour or "").strip()
    has_size = bool(size) and size != DEFAULT_SIZE
    has_colour = bool(colour) and colour != DEFAULT_COLOUR
    if not has_size and not has_colour:
        return SimpleSelection()
    return VariantSelection(size=size or DEFAULT_SIZE, colour=colour or DEFAULT_COLOUR)


# ============================================================================
# Shipping Address
# ============================================================================


REQUIRED_ADDRESS_FIELDS: dict[str, str] = {
    "full_name": "Full name",
    "address_line1": "Address",
    "city": "City",
    "state": "State",
    "postal_code": "Postal code",
    "phone": "Phone number",
}


@dataclass(frozen=True)
class ShippingAddress(ValueObject):
    """Delivery address captured at checkout.

    Orders keep a copy of this value, and the client persists it across
    the gateway redirect; to_dict/from_dict round-trip every field
    unchanged.

    Raises:
        AddressValidationError: If any required field is blank.
    """

    full_name: str
    address_line1: str
    city: str
    state: str
    postal_code: str
    phone: str
    address_line2: str | None = None
    country: str = "AE"

    def __post_init__(self) -> None:
        errors = {
            name: f"{label} is required"
            for name, label in REQUIRED_ADDRESS_FIELDS.items()
            if not (getattr(self, name) or "").strip()
        }
        if errors:
            raise AddressValidationError(errors)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build an address from a loosely-typed mapping.

        Missing required keys become blanks so that validation reports
        every absent field at once.
        """
        values = {name: str(data.get(name) or "") for name in REQUIRED_ADDRESS_FIELDS}
        return cls(
            **values,
            address_line2=data.get("address_line2") or None,
            country=data.get("country") or "AE",
        )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "full_name": self.full_name,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "phone": self.phone,
            "country": self.country,
        }

    def format_single_line(self) -> str:
        parts = [self.full_name, self.address_line1]
        if self.address_line2:
            parts.append(self.address_line2)
        parts.extend([self.city, self.state, self.postal_code, self.country])
        return ", ".join(parts)


# ============================================================================
# Customer
# ============================================================================


@dataclass(frozen=True)
class Customer(ValueObject):
    """Authenticated customer placing orders.

    Attributes:
        id: Customer identifier issued by the auth collaborator.
        email: Customer email, used for promo whitelists.
        name: Display name.
    """

    id: str
    email: str
    name: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Customer ID cannot be empty")
        if not self.email or "@" not in self.email:
            raise ValueError("Invalid email address")
