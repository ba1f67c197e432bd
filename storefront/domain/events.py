"""Domain events for the storefront order lifecycle.

Events are recorded by the Order aggregate and emitted to the
structured log by the application services once the order is saved.
"""

from dataclasses import dataclass
from typing import Any, ClassVar

from storefront.domain.base import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Event raised when an order is placed."""

    event_type: ClassVar[str] = "order.created"

    order_id: str = ""
    customer_id: str = ""
    payment_method: str = ""
    status: str = ""
    total_cents: int = 0
    currency: str = "AED"
    item_count: int = 0

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "payment_method": self.payment_method,
            "status": self.status,
            "total_cents": self.total_cents,
            "currency": self.currency,
            "item_count": self.item_count,
        }


@dataclass(frozen=True)
class OrderPaymentConfirmed(DomainEvent):
    """Event raised when an order's payment is confirmed."""

    event_type: ClassVar[str] = "order.payment_confirmed"

    order_id: str = ""
    payment_intent_id: str | None = None
    source: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "payment_intent_id": self.payment_intent_id,
            "source": self.source,
        }


@dataclass(frozen=True)
class OrderPaymentUnsuccessful(DomainEvent):
    """Event raised when a gateway attempt fails or is cancelled."""

    event_type: ClassVar[str] = "order.payment_unsuccessful"

    order_id: str = ""
    status: str = ""
    reason: str | None = None

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "status": self.status,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class OrderPaymentRetried(DomainEvent):
    """Event raised when a new gateway attempt starts for an order."""

    event_type: ClassVar[str] = "order.payment_retried"

    order_id: str = ""
    previous_status: str = ""
    payment_intent_id: str | None = None

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "previous_status": self.previous_status,
            "payment_intent_id": self.payment_intent_id,
        }

