"""Shared fixtures for API tests."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from storefront.api.dependencies import get_gateway
from storefront.infrastructure.payment_gateway import GatewayClient, PaymentIntent
from storefront.main import app


@pytest.fixture
def gateway() -> AsyncMock:
    """Gateway client double; intents are created and then reported completed."""
    mock = AsyncMock(spec=GatewayClient)
    mock.create_payment_intent.return_value = PaymentIntent(
        id="pi_test_001",
        status="requires_payment_instrument",
        amount_cents=0,
        currency="AED",
        redirect_url="https://pay.example.com/intent/pi_test_001",
    )
    mock.get_payment_intent.return_value = PaymentIntent(
        id="pi_test_001", status="completed", amount_cents=0, currency="AED"
    )
    return mock


@pytest.fixture
def client(gateway) -> TestClient:
    """Create test client without authentication."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(gateway, auth_headers) -> TestClient:
    """Create test client with the dev customer's session."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app, headers=auth_headers)
    app.dependency_overrides.clear()


@pytest.fixture
def cod_order_body(valid_address) -> dict:
    return {
        "items": [{"product_id": "abaya-classic", "quantity": 1}],
        "shipping_address": valid_address,
        "payment_method": "cod",
    }


@pytest.fixture
def card_order_body(valid_address) -> dict:
    return {
        "items": [
            {"product_id": "abaya-classic", "quantity": 1},
            {"product_id": "perfume-oud", "quantity": 1},
        ],
        "shipping_address": valid_address,
        "payment_method": "card",
    }
