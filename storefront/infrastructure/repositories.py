"""In-memory repositories.

Stand-ins for the storefront database: products (with stock),
orders and promo codes. Each repository is a process-wide singleton
with a reset hook for tests.
"""

from datetime import datetime

import structlog

from storefront.domain.base import utc_now
from storefront.domain.entities import Order, Product, PromoCode

logger = structlog.get_logger()


# ============================================================================
# Product Repository
# ============================================================================


class ProductRepository:
    """In-memory catalog view used by checkout.

    In production, this reads the products and product_sizes tables.
    """

    def __init__(self) -> None:
        self._products: dict[str, Product] = {}

    def add(self, product: Product) -> None:
        self._products[str(product.id)] = product

    def get(self, product_id: str) -> Product | None:
        return self._products.get(product_id)

    def list(self) -> list[Product]:
        return list(self._products.values())


# ============================================================================
# Order Repository
# ============================================================================


class OrderRepository:
    """In-memory repository for orders.

    Orders are never deleted; cancellation is a status change.
    """

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._by_payment_intent: dict[str, str] = {}

    def save(self, order: Order) -> None:
        """Save an order and index its payment intent."""
        order_id = str(order.id)
        self._orders[order_id] = order
        if order.payment_intent_id:
            self._by_payment_intent[order.payment_intent_id] = order_id

    def get(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    def get_by_payment_intent(self, payment_intent_id: str) -> Order | None:
        order_id = self._by_payment_intent.get(payment_intent_id)
        if order_id:
            return self._orders.get(order_id)
        return None

    def list_for_customer(self, customer_id: str) -> list[Order]:
        """List a customer's orders, newest first."""
        orders = [o for o in self._orders.values() if o.customer_id == customer_id]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)


# ============================================================================
# Promo Code Repository
# ============================================================================


class PromoCodeRepository:
    """In-memory promo code storage with per-customer usage counts."""

    def __init__(self) -> None:
        self._promos: dict[str, PromoCode] = {}
        self._usage: dict[tuple[str, str], int] = {}

    def add(self, promo: PromoCode) -> None:
        self._promos[promo.id] = promo

    def get(self, promo_id: str) -> PromoCode | None:
        return self._promos.get(promo_id)

    def get_by_code(self, code: str) -> PromoCode | None:
        """Find a promo by code, case-insensitively."""
        normalized = code.strip().upper()
        for promo in self._promos.values():
            if promo.code == normalized:
                return promo
        return None

    def list_available(self, customer_email: str | None, now: datetime | None = None) -> list[PromoCode]:
        """List active, in-window codes the customer may use."""
        now = now or utc_now()
        return [
            promo
            for promo in self._promos.values()
            if promo.is_active
            and promo.has_started(now)
            and not promo.has_expired(now)
            and promo.is_available_to(customer_email)
        ]

    def usage_count(self, promo_id: str, customer_id: str) -> int:
        return self._usage.get((promo_id, customer_id), 0)

    def record_usage(self, promo_id: str, customer_id: str) -> int:
        key = (promo_id, customer_id)
        self._usage[key] = self._usage.get(key, 0) + 1
        logger.debug("Promo usage recorded", promo_id=promo_id, customer_id=customer_id, count=self._usage[key])
        return self._usage[key]


# ============================================================================
# Singletons
# ============================================================================


_product_repository: ProductRepository | None = None
_order_repository: OrderRepository | None = None
_promo_code_repository: PromoCodeRepository | None = None


def get_product_repository() -> ProductRepository:
    global _product_repository
    if _product_repository is None:
        _product_repository = ProductRepository()
    return _product_repository


def get_order_repository() -> OrderRepository:
    global _order_repository
    if _order_repository is None:
        _order_repository = OrderRepository()
    return _order_repository


def get_promo_code_repository() -> PromoCodeRepository:
    global _promo_code_repository
    if _promo_code_repository is None:
        _promo_code_repository = PromoCodeRepository()
    return _promo_code_repository


def reset_repositories() -> None:
    """Drop all stored data (for testing)."""
    global _product_repository, _order_repository, _promo_code_repository
    _product_repository = None
    _order_repository = None
    _promo_code_repository = None
