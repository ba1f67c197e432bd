"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from storefront.application.idempotency_service import (
    IdempotencyService,
    get_idempotency_service,
)
from storefront.application.order_service import (
    OrderService,
    get_order_service,
)
from storefront.application.payment_service import (
    PaymentService,
    get_payment_service,
)
from storefront.application.promo_service import (
    PromoService,
    get_promo_service,
)
from storefront.application.webhook_service import (
    WebhookService,
    get_webhook_service,
)

__all__ = [
    "IdempotencyService",
    "get_idempotency_service",
    "OrderService",
    "get_order_service",
    "PaymentService",
    "get_payment_service",
    "PromoService",
    "get_promo_service",
    "WebhookService",
    "get_webhook_service",
]
