"""Client-side checkout orchestration.

Drives one customer's checkout: step navigation with its guards, fresh
eligibility and shipping quotes on every entry into payment selection,
promo application, and the two ways of submitting (cash on delivery
directly, card through the gateway).
"""

import asyncio
from typing import Any
from uuid import uuid4

import structlog

from storefront.client.api_client import APIError, APIResponse, StorefrontAPIClient
from storefront.client.cart import CartStore
from storefront.client.context import CheckoutContext
from storefront.domain.eligibility import EligibilityResolver
from storefront.domain.exceptions import (
    AddressValidationError,
    CartEmptyError,
    CheckoutSubmissionError,
    DuplicateSubmissionError,
    EligibilityConflictError,
    PromoCodeExpiredError,
    PromoCodeNotApplicableError,
    PromoCodeNotFoundError,
    SessionExpiredError,
)
from storefront.domain.fees import FeeCalculator, FeeQuote
from storefront.domain.promotions import PromoApplication, final_total
from storefront.domain.state_machines import CheckoutStep, validate_checkout_step
from storefront.domain.value_objects import Money, PaymentMethod, ShippingAddress

logger = structlog.get_logger()


def login_url(return_to: str = "/checkout") -> str:
    """Login page that sends the customer back to checkout afterwards."""
    return f"/login?from=checkout&returnTo={return_to}"


def raise_for_api_error(error: APIError) -> None:
    """Raise the client-side error for a definitive API failure."""
    if error.status_code == 401:
        raise SessionExpiredError(login_url())
    if error.error_code == "ELIGIBILITY_CONFLICT":
        raise EligibilityConflictError(error.details.get("non_cod_items", []))
    raise CheckoutSubmissionError(error.error_code, error.message, error.details)


class CheckoutOrchestrator:
    """Coordinates the checkout steps for one session.

    The server quote is authoritative. When it cannot be reached the
    same FeeCalculator runs locally and the quote is marked
    source="local".
    """

    def __init__(
        self,
        api: StorefrontAPIClient,
        cart: CartStore,
        context: CheckoutContext,
    ) -> None:
        self.api = api
        self.cart = cart
        self.context = context
        self.local_fees = FeeCalculator(source="local")
        self.eligibility = EligibilityResolver()

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    @property
    def step(self) -> CheckoutStep:
        return self.context.step

    def capture_address(self, fields: dict[str, Any]) -> ShippingAddress:
        """Validate and keep the customer's address.

        Raises:
            AddressValidationError: With a message per missing field.
        """
        address = ShippingAddress.from_dict(fields)
        self.context.address = address
        self.context.address_data = dict(fields)
        return address

    async def go_to(self, target: CheckoutStep) -> None:
        """Move to another step, enforcing the step guards.

        Raises:
            InvalidStateTransitionError: If the step change is not allowed.
            CartEmptyError: When leaving cart review with an empty cart.
            AddressValidationError: When leaving address capture without
                a valid address.
        """
        if target == CheckoutStep.SUBMITTED:
            raise CheckoutSubmissionError(
                "SUBMIT_REQUIRED", "Checkout is completed by submitting the order"
            )
        current = self.context.step
        validate_checkout_step(self.context.session_id, current, target)

        if current == CheckoutStep.CART_REVIEW and self.cart.is_empty():
            raise CartEmptyError()
        if current == CheckoutStep.ADDRESS_CAPTURE and target == CheckoutStep.PAYMENT_SELECTION:
            if self.context.address is None:
                self.capture_address(self.context.address_data or {})

        self.context.step = target
        logger.debug("Checkout step changed", from_step=current.value, to_step=target.value)
        if target == CheckoutStep.PAYMENT_SELECTION:
            await self.refresh_quote()

    async def proceed(self) -> None:
        following = {
            CheckoutStep.CART_REVIEW: CheckoutStep.ADDRESS_CAPTURE,
            CheckoutStep.ADDRESS_CAPTURE: CheckoutStep.PAYMENT_SELECTION,
        }
        target = following.get(self.context.step)
        if target is not None:
            await self.go_to(target)

    async def back(self) -> None:
        previous = {
            CheckoutStep.ADDRESS_CAPTURE: CheckoutStep.CART_REVIEW,
            CheckoutStep.PAYMENT_SELECTION: CheckoutStep.ADDRESS_CAPTURE,
        }
        target = previous.get(self.context.step)
        if target is not None:
            await self.go_to(target)

    def select_payment_method(self, method: PaymentMethod) -> None:
        self.context.payment_method = method

    # -------------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------------

    def _local_quote(self) -> tuple[FeeQuote, list[dict[str, Any]]]:
        lines = self.cart.lines
        eligibility = self.eligibility.resolve(lines)
        return self.local_fees.quote(self.cart.subtotal, eligibility), eligibility.non_cod_items()

    def _server_quote(self, shipping: dict[str, Any]) -> FeeQuote:
        currency = self.cart.currency
        return FeeQuote(
            subtotal=Money.from_float(shipping["subtotal"], currency),
            fee=Money.from_float(shipping["shippingFee"], currency),
            all_cod_eligible=bool(shipping["allCODEligible"]),
            message=shipping["message"],
            source="server",
        )

    async def refresh_quote(self) -> FeeQuote | None:
        """Fetch eligibility and the shipping quote for the current cart.

        Only the newest request may update the context; a response that
        arrives after a later request was started is discarded.

        Returns:
            The quote now held by the context.

        Raises:
            SessionExpiredError: If the server rejects the session.
        """
        lines = self.cart.lines
        if not lines:
            self.context.quote = None
            self.context.non_cod_items = []
            return None

        generation = self.context.next_generation()
        cod, shipping = await asyncio.gather(self.api.cod_check(lines), self.api.shipping_check(lines))
        if not self.context.is_current(generation):
            logger.debug("Discarding stale quote", generation=generation, current=self.context.generation)
            return self.context.quote

        for response in (cod, shipping):
            if not response.success and response.error.status_code == 401:
                raise SessionExpiredError(login_url())

        if cod.success and shipping.success:
            quote = self._server_quote(shipping.data)
            non_cod_items = cod.data.get("nonCodItems", [])
        else:
            error = cod.error or shipping.error
            if error.status_code < 500 and not error.is_network_error:
                raise_for_api_error(error)
            logger.warning("Quote unavailable, using local fallback", error_code=error.error_code)
            quote, non_cod_items = self._local_quote()
            self.context.notify("warning", "Shipping estimated locally; it will be confirmed at checkout")

        self.context.quote = quote
        self.context.non_cod_items = non_cod_items
        if self.context.payment_method == PaymentMethod.COD and not quote.all_cod_eligible:
            self.context.payment_method = None
            self.context.notify("warning", "Cash on delivery is not available for some items in your cart")
        return quote

    # -------------------------------------------------------------------------
    # Promotions
    # -------------------------------------------------------------------------

    async def apply_promo(self, code: str) -> PromoApplication:
        """Validate a promo code against the current cart and apply it.

        Raises:
            PromoCodeNotFoundError, PromoCodeExpiredError,
            PromoCodeNotApplicableError: If the server rejects the code.
        """
        subtotal = self.cart.subtotal
        response = await self.api.validate_promo(code, self.cart.lines, subtotal.to_float())
        if not response.success:
            error = response.error
            normalized = code.strip().upper()
            if error.error_code == "PROMO_CODE_NOT_FOUND":
                raise PromoCodeNotFoundError(normalized)
            if error.error_code == "PROMO_CODE_EXPIRED":
                raise PromoCodeExpiredError(normalized)
            if error.error_code == "PROMO_CODE_NOT_APPLICABLE":
                raise PromoCodeNotApplicableError(normalized, error.details.get("reason", error.message))
            raise_for_api_error(error)

        data = response.data["promo_code"]
        application = PromoApplication(
            code=data["code"],
            promo_id=data["id"],
            discount=Money.from_float(data["discount_amount"], subtotal.currency),
            subtotal=subtotal,
            description=data.get("description", ""),
        )
        self.context.promo = application
        return application

    def remove_promo(self) -> None:
        self.context.promo = None

    async def on_cart_changed(self) -> None:
        """Re-quote and re-validate the promo after the cart changed."""
        await self.refresh_quote()
        promo = self.context.promo
        if promo is None or promo.is_valid_for(self.cart.subtotal):
            return
        try:
            await self.apply_promo(promo.code)
        except (PromoCodeNotFoundError, PromoCodeExpiredError, PromoCodeNotApplicableError) as e:
            self.remove_promo()
            self.context.notify("warning", e.message)

    @property
    def payable_total(self) -> Money:
        """Subtotal plus shipping minus any valid promo discount."""
        quote = self.context.quote or self._local_quote()[0]
        promo = self.context.promo
        discount = Money.zero(quote.subtotal.currency)
        if promo is not None and promo.is_valid_for(quote.subtotal):
            discount = promo.discount
        return final_total(quote.subtotal, quote.fee, discount)

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def _begin_submission(self) -> None:
        if self.context.submitting or self.context.step == CheckoutStep.SUBMITTED:
            raise DuplicateSubmissionError()
        if self.context.step != CheckoutStep.PAYMENT_SELECTION:
            raise CheckoutSubmissionError(
                "INVALID_STEP", f"Cannot submit from step '{self.context.step.value}'"
            )
        if self.cart.is_empty():
            raise CartEmptyError()
        if self.context.address is None:
            raise AddressValidationError({"address": "Shipping address is required"})
        if not self.api.token:
            raise SessionExpiredError(login_url())
        self.context.submitting = True
        if self.context.submission_key is None:
            self.context.submission_key = str(uuid4())

    def _end_submission(self, response: APIResponse) -> None:
        self.context.submitting = False
        if response.success:
            self.context.submission_key = None
            return
        # A lost response may still have created the order; keep the key so
        # the retry replays it instead of placing a second order.
        if not (response.error.is_network_error or response.error.status_code >= 500):
            self.context.submission_key = None

    async def _create_order(self, method: PaymentMethod) -> APIResponse:
        promo = self.context.promo
        if promo is not None and not promo.is_valid_for(self.cart.subtotal):
            promo = None
        return await self.api.create_order(
            lines=self.cart.lines,
            shipping_address=self.context.address.to_dict(),
            payment_method=method.value,
            promo_code_id=promo.promo_id if promo else None,
            promo_discount_amount=promo.discount.to_float() if promo else None,
            idempotency_key=self.context.submission_key,
        )

    async def submit_cod_order(self) -> dict[str, Any]:
        """Place a cash-on-delivery order.

        At most one submission is outstanding at a time.

        Returns:
            The created order.

        Raises:
            DuplicateSubmissionError: While a submission is outstanding.
            EligibilityConflictError: If some lines require online payment.
            SessionExpiredError: If the session is missing or rejected.
            CheckoutSubmissionError: For any other rejection.
        """
        self._begin_submission()
        self.context.payment_method = PaymentMethod.COD
        response = await self._create_order(PaymentMethod.COD)
        self._end_submission(response)

        if not response.success:
            if response.error.error_code == "ELIGIBILITY_CONFLICT":
                self.context.non_cod_items = response.error.details.get("non_cod_items", [])
            logger.info("COD order rejected", error_code=response.error.error_code)
            raise_for_api_error(response.error)

        order = response.data
        self.cart.clear()
        self.context.discard_recovery_snapshot()
        self.remove_promo()
        self.context.step = CheckoutStep.SUBMITTED
        self.context.confirmation = order
        logger.info("COD order placed", order_id=order["id"], session_id=self.context.session_id)
        return order

    async def start_gateway_payment(self) -> str:
        """Hand the customer off to the card-payment gateway.

        The recovery snapshot is saved before anything else so a failed or
        cancelled payment can restore the checkout exactly. A retry reuses
        the order created by the first attempt as long as the cart is
        unchanged; an edited cart gets a new order.

        Returns:
            The gateway redirect URL.
        """
        self._begin_submission()
        try:
            return await self._hand_off()
        finally:
            self.context.submitting = False

    async def _hand_off(self) -> str:
        self.context.payment_method = PaymentMethod.CARD
        self.context.save_recovery_snapshot()

        signature = self.cart.signature()
        pending = self.context.pending_order()
        if pending is not None and pending.get("cart") != signature:
            await self._abandon_pending_order(pending["order_id"])
            pending = None

        if pending is None:
            response = await self._create_order(PaymentMethod.CARD)
            if not response.success:
                self._end_submission(response)
                raise_for_api_error(response.error)
            order = response.data
            pending = {
                "order_id": order["id"],
                "items": [line.to_dict() for line in self.cart.lines],
                "amount": order["total"],
                "address": self.context.address_data,
                "cart": signature,
            }
            self.context.save_pending_order(pending)

        response = await self.api.create_payment_intent(pending["order_id"], idempotency_key=str(uuid4()))
        self._end_submission(response)
        if not response.success:
            raise_for_api_error(response.error)

        self.context.save_payment_intent(response.data["payment_intent_id"])
        logger.info(
            "Handing off to payment gateway",
            order_id=pending["order_id"],
            payment_intent_id=response.data["payment_intent_id"],
        )
        return response.data["redirect_url"]

    async def _abandon_pending_order(self, order_id: str) -> None:
        """Drop a pending order whose cart has since been edited."""
        self.context.discard_pending_order()
        response = await self.api.update_payment_status(order_id, "cancelled", reason="cart changed")
        if not response.success:
            logger.warning(
                "Could not cancel superseded order",
                order_id=order_id,
                error_code=response.error.error_code,
            )
        logger.info("Cart changed since last payment attempt", order_id=order_id)
