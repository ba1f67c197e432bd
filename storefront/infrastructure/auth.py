"""Customer session lookup.

Session issuance belongs to the auth service; checkout only needs to
turn a bearer token into the customer it was issued to.
"""

import structlog

from storefront.domain.value_objects import Customer
from storefront.infrastructure.config import settings

logger = structlog.get_logger()


class CustomerSessionRegistry:
    """Maps bearer tokens to customers."""

    def __init__(self) -> None:
        self._sessions: dict[str, Customer] = {}

    def register(self, token: str, customer: Customer) -> None:
        self._sessions[token] = customer

    def revoke(self, token: str) -> None:
        self._sessions.pop(token, None)

    def resolve(self, token: str) -> Customer | None:
        return self._sessions.get(token)


_session_registry: CustomerSessionRegistry | None = None


def get_session_registry() -> CustomerSessionRegistry:
    """Get or create the registry, seeded with the configured dev customer."""
    global _session_registry
    if _session_registry is None:
        _session_registry = CustomerSessionRegistry()
        if settings.dev_customer_token:
            _session_registry.register(
                settings.dev_customer_token,
                Customer(
                    id=settings.dev_customer_id,
                    email=settings.dev_customer_email,
                    name=settings.dev_customer_name,
                ),
            )
            logger.info("Registered dev customer session", customer_id=settings.dev_customer_id)
    return _session_registry


def reset_session_registry() -> None:
    global _session_registry
    _session_registry = None
