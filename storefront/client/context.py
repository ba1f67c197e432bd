"""Session-scoped checkout state.

CheckoutContext holds everything one customer's checkout needs between
calls: the current step, the captured address, the latest quote, the
applied promo and the in-flight markers. The parts that must survive
the gateway redirect are written to session storage.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from storefront.client.storage import (
    COD_DETAILS_KEY,
    PAYMENT_INTENT_KEY,
    PENDING_ORDER_KEY,
    PROCESSED_CALLBACKS_KEY,
    SHIPPING_ADDRESS_KEY,
    SessionStorage,
)
from storefront.domain.fees import FeeQuote
from storefront.domain.promotions import PromoApplication
from storefront.domain.state_machines import CheckoutStep
from storefront.domain.value_objects import PaymentMethod, ShippingAddress

logger = structlog.get_logger()


@dataclass
class Notice:
    """A message shown to the customer."""

    level: str
    message: str


@dataclass
class CheckoutContext:
    """State of one checkout session.

    Attributes:
        storage: Session storage backing the persisted parts.
        step: Current checkout step.
        address: Validated shipping address.
        address_data: Address fields exactly as captured.
        payment_method: Selected payment method.
        quote: Latest shipping quote.
        non_cod_items: Lines reported as not COD eligible.
        promo: Applied promo code.
        generation: Counter of quote requests; only the newest may land.
        submitting: True while an order submission is outstanding.
        submission_key: Idempotency key of the outstanding submission.
        notices: Messages for the customer, oldest first.
        confirmation: Details of the completed order.
    """

    storage: SessionStorage
    step: CheckoutStep = CheckoutStep.CART_REVIEW
    address: ShippingAddress | None = None
    address_data: dict[str, Any] | None = None
    payment_method: PaymentMethod | None = None
    quote: FeeQuote | None = None
    non_cod_items: list[dict[str, Any]] = field(default_factory=list)
    promo: PromoApplication | None = None
    generation: int = 0
    submitting: bool = False
    submission_key: str | None = None
    notices: list[Notice] = field(default_factory=list)
    confirmation: dict[str, Any] | None = None

    @property
    def session_id(self) -> str:
        return self.storage.session_id

    @property
    def cod_eligible(self) -> bool:
        return self.quote is not None and self.quote.all_cod_eligible

    # -------------------------------------------------------------------------
    # Request generations
    # -------------------------------------------------------------------------

    def next_generation(self) -> int:
        self.generation += 1
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def notify(self, level: str, message: str) -> None:
        self.notices.append(Notice(level=level, message=message))

    # -------------------------------------------------------------------------
    # Recovery snapshot
    # -------------------------------------------------------------------------

    def save_recovery_snapshot(self) -> None:
        """Persist the address and fee snapshot before leaving for the gateway."""
        self.storage.set(SHIPPING_ADDRESS_KEY, self.address_data)
        self.storage.set(
            COD_DETAILS_KEY,
            {
                "quote": self.quote.to_dict() if self.quote else None,
                "non_cod_items": self.non_cod_items,
                "payment_method": self.payment_method.value if self.payment_method else None,
                "promo": self.promo.to_dict() if self.promo else None,
            },
        )

    def restore_recovery_snapshot(self) -> bool:
        """Load the persisted snapshot back into the context.

        Returns:
            True if a snapshot was found.
        """
        address_data = self.storage.get(SHIPPING_ADDRESS_KEY)
        details = self.storage.get(COD_DETAILS_KEY)
        if address_data is None and details is None:
            return False

        if address_data is not None:
            self.address_data = address_data
            self.address = ShippingAddress.from_dict(address_data)
        if details:
            self.quote = FeeQuote.from_dict(details["quote"]) if details.get("quote") else None
            self.non_cod_items = details.get("non_cod_items") or []
            method = details.get("payment_method")
            self.payment_method = PaymentMethod(method) if method else None
            self.promo = PromoApplication.from_dict(details["promo"]) if details.get("promo") else None
        logger.info("Checkout snapshot restored", session_id=self.session_id)
        return True

    def discard_recovery_snapshot(self) -> None:
        self.storage.remove(SHIPPING_ADDRESS_KEY, COD_DETAILS_KEY, PENDING_ORDER_KEY, PAYMENT_INTENT_KEY)

    # -------------------------------------------------------------------------
    # Pending gateway order
    # -------------------------------------------------------------------------

    def save_pending_order(self, payload: dict[str, Any]) -> None:
        self.storage.set(PENDING_ORDER_KEY, payload)

    def pending_order(self) -> dict[str, Any] | None:
        return self.storage.get(PENDING_ORDER_KEY)

    def discard_pending_order(self) -> None:
        self.storage.remove(PENDING_ORDER_KEY, PAYMENT_INTENT_KEY)

    def save_payment_intent(self, payment_intent_id: str) -> None:
        self.storage.set(PAYMENT_INTENT_KEY, payment_intent_id)

    def payment_intent_id(self) -> str | None:
        return self.storage.get(PAYMENT_INTENT_KEY)

    # -------------------------------------------------------------------------
    # Callback dedup markers
    # -------------------------------------------------------------------------

    def is_callback_processed(self, key: str) -> bool:
        return key in self.storage.get(PROCESSED_CALLBACKS_KEY, [])

    def mark_callback_processed(self, key: str) -> None:
        processed = self.storage.get(PROCESSED_CALLBACKS_KEY, [])
        if key not in processed:
            processed.append(key)
            self.storage.set(PROCESSED_CALLBACKS_KEY, processed)
