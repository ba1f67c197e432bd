"""Fixtures for checkout client tests."""

from unittest.mock import AsyncMock

import pytest

from client_helpers import make_line, ok, shipping_data
from storefront.client.api_client import StorefrontAPIClient
from storefront.client.cart import CartStore
from storefront.client.context import CheckoutContext
from storefront.client.orchestrator import CheckoutOrchestrator
from storefront.client.reconciliation import PaymentReconciler
from storefront.client.storage import SessionStorage


@pytest.fixture
def storage(tmp_path) -> SessionStorage:
    return SessionStorage(tmp_path / "session", "session-1")


@pytest.fixture
def cart(storage) -> CartStore:
    return CartStore(storage)


@pytest.fixture
def context(storage) -> CheckoutContext:
    return CheckoutContext(storage=storage)


@pytest.fixture
def api() -> AsyncMock:
    """API client double answering as the server does for one 80 AED abaya."""
    mock = AsyncMock(spec=StorefrontAPIClient)
    mock.token = "token"
    mock.cod_check.return_value = ok({"codEligible": True, "codFee": 10.0, "nonCodItems": []})
    mock.shipping_check.return_value = ok(shipping_data(80.0, 10.0, True))
    return mock


@pytest.fixture
def orchestrator(api, cart, context) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(api, cart, context)


@pytest.fixture
def reconciler(api, cart, context) -> PaymentReconciler:
    return PaymentReconciler(api, cart, context)


@pytest.fixture
def address_fields() -> dict[str, str]:
    return {
        "full_name": "Mariam Al Hashimi",
        "address_line1": "Villa 12, Street 4",
        "city": "Dubai",
        "state": "Dubai",
        "postal_code": "00000",
        "phone": "+971500000000",
    }


@pytest.fixture
async def at_payment(orchestrator, cart, address_fields) -> CheckoutOrchestrator:
    """Orchestrator in payment selection with one abaya in the cart."""
    cart.add(make_line())
    await orchestrator.proceed()
    orchestrator.capture_address(address_fields)
    await orchestrator.proceed()
    return orchestrator
