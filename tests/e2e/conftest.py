"""Shared fixtures for E2E tests.

The checkout client talks to the real application in-process through
httpx's ASGI transport; only the payment gateway is replaced.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from storefront.api.dependencies import get_gateway
from storefront.client.api_client import StorefrontAPIClient
from storefront.client.cart import CartStore
from storefront.client.context import CheckoutContext
from storefront.client.orchestrator import CheckoutOrchestrator
from storefront.client.reconciliation import PaymentReconciler
from storefront.client.storage import SessionStorage
from storefront.domain.entities import CartLine
from storefront.domain.value_objects import make_selection
from storefront.infrastructure.payment_gateway import GatewayClient, PaymentIntent
from storefront.infrastructure.repositories import get_product_repository
from storefront.main import app


@pytest.fixture
def gateway() -> AsyncMock:
    mock = AsyncMock(spec=GatewayClient)
    mock.create_payment_intent.return_value = PaymentIntent(
        id="pi_e2e_001",
        status="requires_payment_instrument",
        amount_cents=0,
        currency="AED",
        redirect_url="https://pay.example.com/intent/pi_e2e_001",
    )
    mock.get_payment_intent.return_value = PaymentIntent(
        id="pi_e2e_001", status="completed", amount_cents=0, currency="AED"
    )
    return mock


@pytest.fixture
async def api(gateway, customer_token):
    app.dependency_overrides[get_gateway] = lambda: gateway
    client = StorefrontAPIClient(
        base_url="http://testserver",
        token=customer_token,
        transport=httpx.ASGITransport(app=app),
    )
    yield client
    await client.close()
    app.dependency_overrides.clear()


@pytest.fixture
def storage(tmp_path) -> SessionStorage:
    return SessionStorage(tmp_path, "e2e-session")


@pytest.fixture
def cart(storage) -> CartStore:
    return CartStore(storage)


@pytest.fixture
def context(storage) -> CheckoutContext:
    return CheckoutContext(storage=storage)


@pytest.fixture
def orchestrator(api, cart, context) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(api, cart, context)


@pytest.fixture
def reconciler(api, cart, context) -> PaymentReconciler:
    return PaymentReconciler(api, cart, context)


@pytest.fixture
def add_to_cart(cart, catalog):
    """Put a catalog product into the cart, as the product page does."""

    def _add(product_id: str, quantity: int = 1, size: str | None = None) -> CartLine:
        product = get_product_repository().get(product_id)
        line = CartLine.from_product(product, quantity, make_selection(size))
        cart.add(line)
        return line

    return _add


@pytest.fixture
def address_fields(valid_address) -> dict[str, str]:
    return dict(valid_address)

