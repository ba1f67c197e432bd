"""Domain entities and aggregates.

Contains the catalog product view checkout needs, immutable cart lines,
promo codes and the Order aggregate root whose status transitions make
up the server half of payment reconciliation.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Self

from storefront.domain.base import AggregateRoot, Entity, ValueObject
from storefront.domain.events import (
    OrderCreated,
    OrderPaymentConfirmed,
    OrderPaymentRetried,
    OrderPaymentUnsuccessful,
)
from storefront.domain.exceptions import (
    CartEmptyError,
    InsufficientStockError,
    InvalidQuantityError,
    PaymentAlreadyCapturedError,
)
from storefront.domain.state_machines import OrderStatus, validate_order_transition
from storefront.domain.value_objects import (
    DEFAULT_CURRENCY,
    Money,
    OrderId,
    PaymentMethod,
    ProductId,
    Selection,
    ShippingAddress,
    SimpleSelection,
    VariantSelection,
)


# ============================================================================
# Catalog Product
# ============================================================================


@dataclass
class ProductVariant:
    """A purchasable size (optionally size and colour) of a product.

    Attributes:
        size: Size label as shown to customers.
        colour: Colour label, or None when the size applies to every colour.
        stock: Units available.
        cod_eligible: Explicit COD flag for this size, None when unset.
    """

    size: str
    colour: str | None = None
    stock: int = 0
    cod_eligible: bool | None = None


@dataclass(eq=False)
class Product(Entity[ProductId]):
    """Catalog product as seen by checkout.

    Only the attributes pricing and eligibility depend on are modelled;
    the catalog itself is owned by a collaborator.
    """

    name: str
    price: Money
    category: str | None = None
    cod_eligible: bool | None = None
    stock: int = 0
    variants: list[ProductVariant] = field(default_factory=list)

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    def find_variant(self, selection: Selection) -> ProductVariant | None:
        """Find the variant matching a selection.

        An exact (size, colour) match wins over a size-only variant
        that carries no colour.

        Args:
            selection: Selected size and colour.

        Returns:
            Matching variant or None.
        """
        same_size = [v for v in self.variants if v.size == selection.size]
        for variant in same_size:
            if variant.colour == selection.colour:
                return variant
        for variant in same_size:
            if variant.colour is None:
                return variant
        return None

    def cod_flag_for(self, selection: Selection) -> bool | None:
        """Resolve the COD flag for a selection.

        The size-level flag applies when the matching variant sets one;
        otherwise the product-level flag does. None means nothing is
        configured.
        """
        variant = self.find_variant(selection) if self.has_variants else None
        if variant is not None and variant.cod_eligible is not None:
            return variant.cod_eligible
        return self.cod_eligible

    def available_stock(self, selection: Selection) -> int:
        if not self.has_variants:
            return self.stock
        variant = self.find_variant(selection)
        return variant.stock if variant else 0

    def reserve_stock(self, selection: Selection, quantity: int) -> None:
        """Take units out of stock for an order.

        Raises:
            InsufficientStockError: If fewer units are available.
        """
        available = self.available_stock(selection)
        if quantity > available:
            raise InsufficientStockError(str(self.id), selection.size, quantity, available)
        if self.has_variants:
            variant = self.find_variant(selection)
            variant.stock -= quantity
        else:
            self.stock -= quantity


# ============================================================================
# Cart Line
# ============================================================================


@dataclass(frozen=True)
class CartLine(ValueObject):
    """One line of the customer's cart.

    Lines are immutable: changing the quantity produces a new line. The
    selection and COD flag are resolved once, when the line is built.

    Attributes:
        product_id: Catalog product.
        product_name: Name shown to the customer.
        unit_price: Price per unit.
        quantity: Units, at least 1.
        selection: Tagged size/colour selection.
        cod_eligible: Resolved COD flag, None when unconfigured.
        category: Product category, used by promo code rules.
    """

    product_id: ProductId
    product_name: str
    unit_price: Money
    quantity: int = 1
    selection: Selection = field(default_factory=SimpleSelection)
    cod_eligible: bool | None = None
    category: str | None = None

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise InvalidQuantityError(self.quantity)

    @classmethod
    def from_product(cls, product: Product, quantity: int, selection: Selection) -> Self:
        """Build a line from a catalog product, resolving its COD flag."""
        return cls(
            product_id=product.id,
            product_name=product.name,
            unit_price=product.price,
            quantity=quantity,
            selection=selection,
            cod_eligible=product.cod_flag_for(selection),
            category=product.category,
        )

    @property
    def size(self) -> str:
        return self.selection.size

    @property
    def colour(self) -> str:
        return self.selection.colour

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of the line inside a cart."""
        return (str(self.product_id), self.size, self.colour)

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity

    def with_quantity(self, quantity: int) -> "CartLine":
        return replace(self, quantity=quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price.amount_cents,
            "currency": self.unit_price.currency,
            "quantity": self.quantity,
            "selection": self.selection.kind,
            "size": self.size,
            "colour": self.colour,
            "cod_eligible": self.cod_eligible,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        if data.get("selection") == VariantSelection.kind:
            selection: Selection = VariantSelection(size=data["size"], colour=data["colour"])
        else:
            selection = SimpleSelection()
        return cls(
            product_id=ProductId(data["product_id"]),
            product_name=data["product_name"],
            unit_price=Money(data["unit_price_cents"], data.get("currency", DEFAULT_CURRENCY)),
            quantity=data["quantity"],
            selection=selection,
            cod_eligible=data.get("cod_eligible"),
            category=data.get("category"),
        )


def subtotal_of(lines: Iterable[CartLine], currency: str = DEFAULT_CURRENCY) -> Money:
    """Sum the line totals of a cart."""
    total = Money.zero(currency)
    for line in lines:
        total = total + line.line_total
    return total


# ============================================================================
# Promo Code
# ============================================================================


@dataclass(eq=False)
class PromoCode(Entity[str]):
    """A promotional code a customer can redeem at checkout.

    Exactly one of percent_off or flat_off describes the discount;
    max_off caps a percentage discount.
    """

    code: str
    description: str = ""
    percent_off: Decimal | None = None
    flat_off: Money | None = None
    max_off: Money | None = None
    min_purchase: Money | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    eligible_emails: frozenset[str] = frozenset()
    eligible_categories: frozenset[str] = frozenset()
    max_uses_per_user: int | None = None
    is_active: bool = True

    def __post_init__(self) -> None:
        if (self.percent_off is None) == (self.flat_off is None):
            raise ValueError("Promo code needs exactly one of percent_off or flat_off")
        self.code = self.code.strip().upper()

    def has_started(self, now: datetime) -> bool:
        return self.starts_at is None or now >= self.starts_at

    def has_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def is_available_to(self, email: str | None) -> bool:
        if not self.eligible_emails:
            return True
        return email is not None and email.lower() in {e.lower() for e in self.eligible_emails}


# ============================================================================
# Order Aggregate Root
# ============================================================================


@dataclass(frozen=True)
class OrderItem:
    """Snapshot of a cart line at the time the order was placed.

    Prices and stock may change later; the order keeps what was bought.
    """

    product_id: str
    product_name: str
    quantity: int
    size: str
    colour: str
    unit_price: Money

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity

    @classmethod
    def from_cart_line(cls, line: CartLine) -> "OrderItem":
        return cls(
            product_id=str(line.product_id),
            product_name=line.product_name,
            quantity=line.quantity,
            size=line.size,
            colour=line.colour,
            unit_price=line.unit_price,
        )


@dataclass(kw_only=True, eq=False)
class Order(AggregateRoot[OrderId]):
    """Order aggregate root.

    Created once at checkout submission and never deleted; cancellation
    is a status. COD orders start as PENDING, gateway orders as
    PENDING_PAYMENT until the gateway outcome is reconciled.

    Attributes:
        id: Unique order identifier.
        customer_id: Customer who placed the order.
        items: Item snapshots.
        shipping_address: Address snapshot.
        payment_method: COD or card.
        subtotal: Sum of item totals.
        shipping_fee: Fee from the shipping tier.
        discount: Promo discount applied.
        total: Amount payable.
        status: Current lifecycle status.
        promo_code_id: Redeemed promo code, if any.
        payment_intent_id: Latest gateway payment intent.
    """

    id: OrderId
    customer_id: str
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    subtotal: Money
    shipping_fee: Money
    discount: Money
    total: Money
    status: OrderStatus = OrderStatus.PENDING
    items: list[OrderItem] = field(default_factory=list)
    promo_code_id: str | None = None
    payment_intent_id: str | None = None
    payment_failure_reason: str | None = None
    paid_at: datetime | None = None
    status_history: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def place(
        cls,
        *,
        customer_id: str,
        lines: list[CartLine],
        shipping_address: ShippingAddress,
        payment_method: PaymentMethod,
        shipping_fee: Money,
        discount: Money,
        promo_code_id: str | None = None,
    ) -> "Order":
        """Place an order from priced cart lines.

        Args:
            customer_id: Customer placing the order.
            lines: Cart lines to snapshot.
            shipping_address: Delivery address.
            payment_method: Chosen payment method.
            shipping_fee: Quoted shipping fee.
            discount: Promo discount, zero when none.
            promo_code_id: Promo code redeemed.

        Returns:
            New Order in PENDING (COD) or PENDING_PAYMENT (card).

        Raises:
            CartEmptyError: If there are no lines.
        """
        if not lines:
            raise CartEmptyError()

        subtotal = subtotal_of(lines, shipping_fee.currency)
        total = (subtotal + shipping_fee).subtract_floor_zero(discount)
        initial = OrderStatus.PENDING_PAYMENT if payment_method.is_online() else OrderStatus.PENDING

        order = cls(
            id=OrderId.generate(),
            customer_id=customer_id,
            shipping_address=shipping_address,
            payment_method=payment_method,
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            discount=discount,
            total=total,
            status=initial,
            items=[OrderItem.from_cart_line(line) for line in lines],
            promo_code_id=promo_code_id,
        )
        order.status_history.append(
            {"from_status": None, "to_status": initial.value, "reason": "placed", "at": order.created_at}
        )
        order._record_event(
            OrderCreated(
                aggregate_id=str(order.id),
                aggregate_type="Order",
                order_id=str(order.id),
                customer_id=customer_id,
                payment_method=payment_method.value,
                status=initial.value,
                total_cents=total.amount_cents,
                currency=total.currency,
                item_count=order.item_count,
            )
        )
        return order

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    # -------------------------------------------------------------------------
    # State Transitions
    # -------------------------------------------------------------------------

    def _transition(self, target: OrderStatus, reason: str | None = None) -> OrderStatus:
        validate_order_transition(str(self.id), self.status, target)
        previous = self.status
        self.status = target
        self._touch()
        self.status_history.append(
            {
                "from_status": previous.value,
                "to_status": target.value,
                "reason": reason,
                "at": self.updated_at,
            }
        )
        return previous

    def confirm_payment(self, payment_intent_id: str | None = None, source: str = "gateway") -> bool:
        """Confirm the order as paid.

        Confirming an already-confirmed order is a no-op, so replays
        of the same success signal are harmless.

        Args:
            payment_intent_id: Gateway intent that settled the payment.
            source: What reported the success (verification, webhook, seller).

        Returns:
            True if the status changed.

        Raises:
            InvalidStateTransitionError: If the order cannot be confirmed.
        """
        if self.status.is_paid():
            return False
        self._transition(OrderStatus.CONFIRMED, reason=f"payment confirmed by {source}")
        self.paid_at = self.updated_at
        if payment_intent_id:
            self.payment_intent_id = payment_intent_id
        self._record_event(
            OrderPaymentConfirmed(
                aggregate_id=str(self.id),
                aggregate_type="Order",
                order_id=str(self.id),
                payment_intent_id=self.payment_intent_id,
                source=source,
            )
        )
        return True

    def record_payment_outcome(self, status: OrderStatus, reason: str | None = None) -> bool:
        """Persist a failed or cancelled gateway attempt.

        Args:
            status: PAYMENT_FAILED or PAYMENT_CANCELLED.
            reason: Optional gateway reason.

        Returns:
            True if the status changed, False if it was already recorded.

        Raises:
            ValueError: If status is not a failure status.
            PaymentAlreadyCapturedError: If the order was already paid.
            InvalidStateTransitionError: If the order is past payment.
        """
        if status not in {OrderStatus.PAYMENT_FAILED, OrderStatus.PAYMENT_CANCELLED}:
            raise ValueError(f"Not a payment failure status: {status.value}")
        if self.status == status:
            return False
        if self.status.is_paid():
            raise PaymentAlreadyCapturedError(str(self.id))
        self._transition(status, reason=reason)
        self.payment_failure_reason = reason
        self._record_event(
            OrderPaymentUnsuccessful(
                aggregate_id=str(self.id),
                aggregate_type="Order",
                order_id=str(self.id),
                status=status.value,
                reason=reason,
            )
        )
        return True

    def restart_payment(self, payment_intent_id: str) -> None:
        """Attach a new gateway attempt, reopening a failed payment.

        Raises:
            InvalidStateTransitionError: If the order is not awaiting payment.
        """
        if self.status != OrderStatus.PENDING_PAYMENT:
            previous = self._transition(OrderStatus.PENDING_PAYMENT, reason="payment retried")
            self._record_event(
                OrderPaymentRetried(
                    aggregate_id=str(self.id),
                    aggregate_type="Order",
                    order_id=str(self.id),
                    previous_status=previous.value,
                    payment_intent_id=payment_intent_id,
                )
            )
        self.payment_intent_id = payment_intent_id
        self.payment_failure_reason = None


__all__ = [
    "CartLine",
    "Order",
    "OrderItem",
    "Product",
    "ProductVariant",
    "PromoCode",
    "subtotal_of",
]
