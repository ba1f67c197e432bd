"""Checkout client.

Session-side checkout flow: the persisted cart, the step orchestrator
and the handling of gateway redirects back to checkout.
"""

from storefront.client.api_client import APIError, APIResponse, StorefrontAPIClient
from storefront.client.cart import CartStore
from storefront.client.config import ClientSettings
from storefront.client.context import CheckoutContext, Notice
from storefront.client.orchestrator import CheckoutOrchestrator, login_url
from storefront.client.reconciliation import PaymentReconciler, ReconciliationResult
from storefront.client.storage import SessionStorage

__all__ = [
    "APIError",
    "APIResponse",
    "StorefrontAPIClient",
    "CartStore",
    "ClientSettings",
    "CheckoutContext",
    "Notice",
    "CheckoutOrchestrator",
    "login_url",
    "PaymentReconciler",
    "ReconciliationResult",
    "SessionStorage",
]
