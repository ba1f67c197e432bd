"""Shared fixtures: catalog seeding, customer sessions and state resets."""

from datetime import timedelta
from decimal import Decimal

import pytest

from storefront.application.idempotency_service import reset_idempotency_service
from storefront.application.webhook_service import reset_webhook_service
from storefront.domain.base import utc_now
from storefront.domain.entities import Product, ProductVariant, PromoCode
from storefront.domain.value_objects import Customer, Money, ProductId
from storefront.infrastructure.auth import get_session_registry, reset_session_registry
from storefront.infrastructure.config import settings
from storefront.infrastructure.repositories import (
    get_product_repository,
    get_promo_code_repository,
    reset_repositories,
)


def _reset() -> None:
    reset_repositories()
    reset_session_registry()
    reset_idempotency_service()
    reset_webhook_service()


@pytest.fixture(autouse=True)
def reset_state():
    """Start every test with empty repositories and registries."""
    _reset()
    yield
    _reset()


class Catalog:
    """Helper for putting products and promo codes into the repositories."""

    def add_product(
        self,
        product_id: str,
        price: str,
        cod_eligible: bool | None = True,
        category: str | None = None,
        stock: int = 50,
        variants: list[ProductVariant] | None = None,
    ) -> Product:
        product = Product(
            id=ProductId(product_id),
            name=product_id.replace("-", " ").title(),
            price=Money.from_decimal(Decimal(price)),
            category=category,
            cod_eligible=cod_eligible,
            stock=stock,
            variants=variants or [],
        )
        get_product_repository().add(product)
        return product

    def add_promo(self, promo_id: str, code: str, **kwargs) -> PromoCode:
        promo = PromoCode(id=promo_id, code=code, **kwargs)
        get_promo_code_repository().add(promo)
        return promo


@pytest.fixture
def catalog(reset_state) -> Catalog:
    """Catalog seeded with the products and codes most tests use.

    - abaya-classic: 80.00, COD eligible
    - abaya-evening: 120.00, COD eligible
    - perfume-oud: 120.00, not COD eligible
    - scarf-plain: 25.00, COD flag never configured
    - kaftan-silk: 45.00, size S COD eligible, size M not
    """
    c = Catalog()
    c.add_product("abaya-classic", "80.00", cod_eligible=True, category="abayas")
    c.add_product("abaya-evening", "120.00", cod_eligible=True, category="abayas")
    c.add_product("perfume-oud", "120.00", cod_eligible=False, category="fragrance", stock=10)
    c.add_product("scarf-plain", "25.00", cod_eligible=None, category="accessories")
    c.add_product(
        "kaftan-silk",
        "45.00",
        cod_eligible=None,
        category="kaftans",
        variants=[
            ProductVariant(size="S", stock=5, cod_eligible=True),
            ProductVariant(size="M", stock=2, cod_eligible=False),
        ],
    )
    c.add_promo("promo-welcome", "WELCOME15", description="15 AED off", flat_off=Money(1500))
    c.add_promo(
        "promo-save10",
        "SAVE10",
        description="10% off orders over 50 AED",
        percent_off=Decimal("10"),
        max_off=Money(2000),
        min_purchase=Money(5000),
    )
    c.add_promo(
        "promo-abaya",
        "ABAYA20",
        description="20% off abayas",
        percent_off=Decimal("20"),
        eligible_categories=frozenset({"abayas"}),
    )
    c.add_promo("promo-once", "ONCE5", flat_off=Money(500), max_uses_per_user=1)
    c.add_promo(
        "promo-expired",
        "SUMMER",
        flat_off=Money(1000),
        expires_at=utc_now() - timedelta(days=1),
    )
    return c


@pytest.fixture
def customer_token() -> str:
    """Token of the dev customer seeded into the session registry."""
    get_session_registry()
    return settings.dev_customer_token


@pytest.fixture
def other_customer_token() -> str:
    token = "token-other-customer"
    get_session_registry().register(token, Customer(id="customer-other", email="other@example.com"))
    return token


@pytest.fixture
def auth_headers(customer_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {customer_token}"}


@pytest.fixture
def valid_address() -> dict[str, str]:
    return {
        "full_name": "Mariam Al Hashimi",
        "address_line1": "Villa 12, Street 4",
        "address_line2": "Al Barsha 2",
        "city": "Dubai",
        "state": "Dubai",
        "postal_code": "00000",
        "phone": "+971500000000",
        "country": "AE",
    }
