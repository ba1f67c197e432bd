"""API layer module.

Contains FastAPI routers, middleware and request/response schemas.
"""

from storefront.api.health import router as health_router
from storefront.api.orders import router as orders_router
from storefront.api.payments import router as payments_router
from storefront.api.promo_codes import router as promo_codes_router
from storefront.api.webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "orders_router",
    "payments_router",
    "promo_codes_router",
    "webhooks_router",
]
