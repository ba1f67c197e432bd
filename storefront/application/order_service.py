"""Order application service.

Prices carts and places orders:
- Resolving cart line summaries against the catalog
- COD eligibility and shipping quotes for a cart
- Creating orders (COD synchronously, card orders as pending_payment)
- Reading a customer's orders
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

import structlog

from storefront.domain.eligibility import EligibilityResolver, EligibilitySnapshot
from storefront.domain.entities import CartLine, Order, Product, subtotal_of
from storefront.domain.exceptions import (
    CartEmptyError,
    CatalogError,
    CheckoutValidationError,
    DomainError,
    EligibilityConflictError,
    InsufficientStockError,
    ProductNotFoundError,
    PromoCodeError,
    PromoCodeNotFoundError,
)
from storefront.domain.fees import FeeCalculator, FeeQuote
from storefront.domain.promotions import PromoApplication, PromotionEvaluator
from storefront.domain.value_objects import (
    Customer,
    Money,
    PaymentMethod,
    Selection,
    ShippingAddress,
    make_selection,
)
from storefront.infrastructure.config import settings
from storefront.infrastructure.repositories import (
    OrderRepository,
    ProductRepository,
    PromoCodeRepository,
    get_order_repository,
    get_product_repository,
    get_promo_code_repository,
)

logger = structlog.get_logger()


# ============================================================================
# Request and Result Types
# ============================================================================


@dataclass
class OrderLineRequest:
    """A cart line summary as sent by the client."""

    product_id: str
    quantity: int
    size: str | None = None
    colour: str | None = None

    @property
    def selection(self) -> Selection:
        return make_selection(self.size, self.colour)


@dataclass
class PricedCart:
    """Cart lines resolved against the catalog, with eligibility and fee."""

    lines: list[CartLine]
    eligibility: EligibilitySnapshot
    quote: FeeQuote

    @property
    def subtotal(self) -> Money:
        return self.quote.subtotal


@dataclass
class PriceCartResult:
    """Result of pricing a cart."""

    cart: PricedCart | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class CreateOrderResult:
    """Result of creating an order."""

    order: Order | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class GetOrderResult:
    """Result of getting an order."""

    order: Order | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None


def _failure(result_type: type, exc: DomainError) -> Any:
    return result_type(
        success=False,
        error=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


def publish_events(order: Order) -> None:
    """Emit the order's recorded domain events to the log."""
    for event in order.collect_events():
        logger.info("Domain event", **event.to_dict())


# ============================================================================
# Order Service
# ============================================================================


class OrderService:
    """Application service for pricing carts and placing orders."""

    def __init__(
        self,
        products: ProductRepository | None = None,
        orders: OrderRepository | None = None,
        promo_codes: PromoCodeRepository | None = None,
        request_id: str | None = None,
    ) -> None:
        self.products = products or get_product_repository()
        self.orders = orders or get_order_repository()
        self.promo_codes = promo_codes or get_promo_code_repository()
        self.request_id = request_id
        self.eligibility = EligibilityResolver()
        self.fees = FeeCalculator()
        self.promotions = PromotionEvaluator(self.promo_codes)

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------

    def _load_products(self, requests: list[OrderLineRequest]) -> dict[str, Product]:
        products: dict[str, Product] = {}
        for request in requests:
            product = self.products.get(request.product_id)
            if product is None:
                raise ProductNotFoundError(request.product_id)
            products[request.product_id] = product
        return products

    def _build_lines(
        self, requests: list[OrderLineRequest], products: dict[str, Product]
    ) -> list[CartLine]:
        if not requests:
            raise CartEmptyError()
        return [
            CartLine.from_product(products[r.product_id], r.quantity, r.selection)
            for r in requests
        ]

    def _price(self, lines: list[CartLine]) -> PricedCart:
        eligibility = self.eligibility.resolve(lines)
        subtotal = subtotal_of(lines, settings.currency)
        return PricedCart(
            lines=lines,
            eligibility=eligibility,
            quote=self.fees.quote(subtotal, eligibility),
        )

    async def price_cart(self, requests: list[OrderLineRequest]) -> PriceCartResult:
        """Resolve eligibility and the shipping quote for cart summaries.

        Args:
            requests: Cart line summaries.

        Returns:
            PriceCartResult with the priced cart or an error.
        """
        try:
            products = self._load_products(requests)
            priced = self._price(self._build_lines(requests, products))
        except (CheckoutValidationError, CatalogError) as e:
            return _failure(PriceCartResult, e)

        logger.debug(
            "Cart priced",
            subtotal_cents=priced.subtotal.amount_cents,
            fee_cents=priced.quote.fee.amount_cents,
            all_cod_eligible=priced.eligibility.overall,
            request_id=self.request_id,
        )
        return PriceCartResult(cart=priced)

    # -------------------------------------------------------------------------
    # Order Creation
    # -------------------------------------------------------------------------

    def _check_stock(self, requests: list[OrderLineRequest], products: dict[str, Product]) -> None:
        needed: dict[tuple[str, Selection], int] = defaultdict(int)
        for r in requests:
            needed[(r.product_id, r.selection)] += r.quantity
        for (product_id, selection), quantity in needed.items():
            available = products[product_id].available_stock(selection)
            if quantity > available:
                raise InsufficientStockError(product_id, selection.size, quantity, available)

    def _evaluate_promo(
        self,
        customer: Customer,
        promo_code_id: str,
        priced: PricedCart,
    ) -> PromoApplication:
        promo = self.promo_codes.get(promo_code_id)
        if promo is None:
            raise PromoCodeNotFoundError(promo_code_id)
        return self.promotions.apply(
            promo.code,
            priced.subtotal,
            categories=[line.category for line in priced.lines],
            customer_email=customer.email,
            usage_count=self.promo_codes.usage_count(promo.id, customer.id),
        )

    async def create_order(
        self,
        customer: Customer,
        requests: list[OrderLineRequest],
        shipping_address: dict[str, Any],
        payment_method: PaymentMethod,
        promo_code_id: str | None = None,
        promo_discount_amount: float | None = None,
    ) -> CreateOrderResult:
        """Create an order from cart summaries.

        COD orders require every line to be COD eligible and are created
        as pending. Card orders are created as pending_payment before the
        customer is handed to the gateway.

        Args:
            customer: Authenticated customer.
            requests: Cart line summaries.
            shipping_address: Address fields as submitted.
            payment_method: COD or card.
            promo_code_id: Promo code to redeem, re-evaluated here.
            promo_discount_amount: Discount the client displayed.

        Returns:
            CreateOrderResult with the new order or an error.
        """
        try:
            address = ShippingAddress.from_dict(shipping_address)
            products = self._load_products(requests)
            priced = self._price(self._build_lines(requests, products))
            self._check_stock(requests, products)

            if payment_method == PaymentMethod.COD and not priced.eligibility.overall:
                raise EligibilityConflictError(priced.eligibility.non_cod_items())

            discount = Money.zero(settings.currency)
            if promo_code_id:
                application = self._evaluate_promo(customer, promo_code_id, priced)
                discount = application.discount
                if (
                    promo_discount_amount is not None
                    and Money.from_float(promo_discount_amount, settings.currency) != discount
                ):
                    logger.warning(
                        "Client promo discount differs from server evaluation",
                        promo_code_id=promo_code_id,
                        client_discount=promo_discount_amount,
                        server_discount_cents=discount.amount_cents,
                    )

            order = Order.place(
                customer_id=customer.id,
                lines=priced.lines,
                shipping_address=address,
                payment_method=payment_method,
                shipping_fee=priced.quote.fee,
                discount=discount,
                promo_code_id=promo_code_id,
            )
        except EligibilityConflictError as e:
            logger.info(
                "COD order rejected for ineligible items",
                customer_id=customer.id,
                non_cod_items=len(e.non_cod_items),
                request_id=self.request_id,
            )
            return _failure(CreateOrderResult, e)
        except (CheckoutValidationError, CatalogError, PromoCodeError) as e:
            logger.info(
                "Order rejected",
                customer_id=customer.id,
                error_code=e.error_code,
                request_id=self.request_id,
            )
            return _failure(CreateOrderResult, e)

        for r in requests:
            products[r.product_id].reserve_stock(r.selection, r.quantity)
        if promo_code_id:
            self.promo_codes.record_usage(promo_code_id, customer.id)

        self.orders.save(order)
        publish_events(order)

        logger.info(
            "Order created",
            order_id=str(order.id),
            customer_id=customer.id,
            payment_method=payment_method.value,
            status=order.status.value,
            total_cents=order.total.amount_cents,
            request_id=self.request_id,
        )
        return CreateOrderResult(order=order)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_order(self, customer_id: str, order_id: str) -> GetOrderResult:
        """Get one of the customer's orders.

        Orders belonging to other customers are reported as not found.
        """
        order = self.orders.get(order_id)
        if order is None or order.customer_id != customer_id:
            return GetOrderResult(
                success=False,
                error=f"Order {order_id} not found",
                error_code="ORDER_NOT_FOUND",
            )
        return GetOrderResult(order=order)

    async def list_orders(self, customer_id: str) -> list[Order]:
        return self.orders.list_for_customer(customer_id)


def get_order_service(request_id: str | None = None) -> OrderService:
    """Get order service instance over the shared repositories."""
    return OrderService(request_id=request_id)
