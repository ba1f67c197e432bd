"""E2E checkout scenarios.

The checkout client drives the real API in-process:
A. COD order for an all-COD cart under the free-shipping threshold
B. Mixed cart over 100 AED: free shipping, COD refused, card accepted
C. Promo discount taken off subtotal plus shipping
D. Gateway failure keeps the cart and restores the checkout
"""

import httpx
import pytest

from storefront.client.api_client import StorefrontAPIClient
from storefront.client.orchestrator import CheckoutOrchestrator
from storefront.domain.exceptions import EligibilityConflictError, SessionExpiredError
from storefront.domain.state_machines import CheckoutStep
from storefront.domain.value_objects import Money, PaymentMethod
from storefront.main import app


async def reach_payment(orchestrator: CheckoutOrchestrator, address: dict[str, str]) -> None:
    await orchestrator.proceed()
    orchestrator.capture_address(address)
    await orchestrator.proceed()


# ============================================================================
# Scenario A: Cash on Delivery
# ============================================================================


class TestScenarioACashOnDelivery:
    @pytest.mark.asyncio
    async def test_cod_order_for_all_cod_cart(self, orchestrator, add_to_cart, cart, context, address_fields):
        add_to_cart("abaya-classic")
        await reach_payment(orchestrator, address_fields)

        assert context.quote.source == "server"
        assert context.quote.fee == Money(1000)
        assert context.cod_eligible is True
        assert orchestrator.payable_total == Money(9000)

        orchestrator.select_payment_method(PaymentMethod.COD)
        order = await orchestrator.submit_cod_order()

        assert order["status"] == "pending"
        assert order["payment_method"] == "cod"
        assert order["total"] == {"amount": 9000, "currency": "AED"}
        assert cart.is_empty()
        assert context.step == CheckoutStep.SUBMITTED

    @pytest.mark.asyncio
    async def test_order_visible_to_customer(self, orchestrator, api, add_to_cart, address_fields):
        add_to_cart("abaya-classic")
        await reach_payment(orchestrator, address_fields)
        order = await orchestrator.submit_cod_order()

        response = await api.get_order(order["id"])
        assert response.success is True
        assert response.data["shipping_address"] == address_fields


# ============================================================================
# Scenario B: Mixed Cart
# ============================================================================


class TestScenarioBMixedCart:
    @pytest.mark.asyncio
    async def test_cod_refused_card_accepted(self, orchestrator, api, add_to_cart, cart, context, address_fields):
        add_to_cart("abaya-classic")
        add_to_cart("perfume-oud")
        await reach_payment(orchestrator, address_fields)

        assert context.quote.subtotal == Money(20000)
        assert context.quote.fee == Money(0)
        assert context.cod_eligible is False
        assert [i["product_id"] for i in context.non_cod_items] == ["perfume-oud"]

        with pytest.raises(EligibilityConflictError) as exc_info:
            await orchestrator.submit_cod_order()
        assert [i["product_id"] for i in exc_info.value.non_cod_items] == ["perfume-oud"]
        assert not cart.is_empty()

        redirect = await orchestrator.start_gateway_payment()

        assert redirect == "https://pay.example.com/intent/pi_e2e_001"
        order = (await api.get_order(context.pending_order()["order_id"])).data
        assert order["status"] == "pending_payment"
        assert order["total"]["amount"] == 20000

    @pytest.mark.asyncio
    async def test_variant_flag_decides_eligibility(self, orchestrator, add_to_cart, context, address_fields):
        add_to_cart("kaftan-silk", size="M")
        await reach_payment(orchestrator, address_fields)
        assert context.cod_eligible is False
        assert context.non_cod_items[0]["size"] == "M"


# ============================================================================
# Scenario C: Promo Code
# ============================================================================


class TestScenarioCPromoCode:
    @pytest.mark.asyncio
    async def test_discount_after_shipping(self, orchestrator, api, add_to_cart, catalog, context, address_fields):
        catalog.add_product("leather-belt", "20.00", cod_eligible=False)
        add_to_cart("abaya-classic")
        add_to_cart("leather-belt")
        await reach_payment(orchestrator, address_fields)
        assert context.quote.fee == Money(1000)

        await orchestrator.apply_promo("welcome15")
        # 100 + 10 - 15
        assert orchestrator.payable_total == Money(9500)

        await orchestrator.start_gateway_payment()
        order = (await api.get_order(context.pending_order()["order_id"])).data
        assert order["discount"]["amount"] == 1500
        assert order["total"]["amount"] == 9500

    @pytest.mark.asyncio
    async def test_discount_never_makes_total_negative(self, orchestrator, add_to_cart, catalog, address_fields):
        catalog.add_promo("promo-big", "BIG200", flat_off=Money(20000))
        add_to_cart("scarf-plain")
        await reach_payment(orchestrator, address_fields)

        await orchestrator.apply_promo("BIG200")

        assert orchestrator.payable_total == Money(0)


# ============================================================================
# Scenario D: Gateway Failure
# ============================================================================


class TestScenarioDGatewayFailure:
    @pytest.mark.asyncio
    async def test_failure_keeps_cart_and_address(
        self, orchestrator, reconciler, api, add_to_cart, cart, context, address_fields
    ):
        add_to_cart("perfume-oud")
        await reach_payment(orchestrator, address_fields)
        await orchestrator.start_gateway_payment()
        order_id = context.pending_order()["order_id"]

        result = await reconciler.handle_return(f"/checkout?payment_status=failure&orderId={order_id}")

        assert result.handled is True
        assert (await api.get_order(order_id)).data["status"] == "payment_failed"
        assert not cart.is_empty()
        assert context.step == CheckoutStep.PAYMENT_SELECTION

        await orchestrator.back()
        await orchestrator.proceed()
        assert context.address_data == address_fields

    @pytest.mark.asyncio
    async def test_retry_then_success(self, orchestrator, reconciler, api, add_to_cart, cart, context, address_fields):
        add_to_cart("perfume-oud")
        await reach_payment(orchestrator, address_fields)
        await orchestrator.start_gateway_payment()
        order_id = context.pending_order()["order_id"]
        await reconciler.handle_return(f"/checkout?payment_status=failure&orderId={order_id}")

        await orchestrator.start_gateway_payment()
        assert (await api.get_order(order_id)).data["status"] == "pending_payment"

        result = await reconciler.handle_return(f"/checkout?payment_status=success&orderId={order_id}")

        assert result.verified is True
        assert result.order["status"] == "confirmed"
        assert cart.is_empty()
        assert context.step == CheckoutStep.SUBMITTED

    @pytest.mark.asyncio
    async def test_cancelled_is_recorded_separately(self, orchestrator, reconciler, api, add_to_cart, context, address_fields):
        add_to_cart("perfume-oud")
        await reach_payment(orchestrator, address_fields)
        await orchestrator.start_gateway_payment()
        order_id = context.pending_order()["order_id"]

        await reconciler.handle_return(f"/checkout?payment_status=cancelled&orderId={order_id}")

        assert (await api.get_order(order_id)).data["status"] == "payment_cancelled"

    @pytest.mark.asyncio
    async def test_retry_after_cart_change_charges_current_cart(
        self, orchestrator, reconciler, api, gateway, add_to_cart, cart, context, address_fields
    ):
        add_to_cart("perfume-oud")
        await reach_payment(orchestrator, address_fields)
        await orchestrator.start_gateway_payment()
        first_order_id = context.pending_order()["order_id"]
        await reconciler.handle_return(f"/checkout?payment_status=failure&orderId={first_order_id}")

        add_to_cart("abaya-evening")
        await orchestrator.on_cart_changed()
        assert orchestrator.payable_total == Money(24000)
        await orchestrator.start_gateway_payment()

        order_id = context.pending_order()["order_id"]
        assert order_id != first_order_id
        assert gateway.create_payment_intent.call_args.kwargs["amount_cents"] == 24000
        order = (await api.get_order(order_id)).data
        assert sorted(item["product_id"] for item in order["items"]) == ["abaya-evening", "perfume-oud"]

        await reconciler.handle_return(f"/checkout?payment_status=success&orderId={order_id}")

        assert (await api.get_order(order_id)).data["status"] == "confirmed"
        assert (await api.get_order(first_order_id)).data["status"] == "payment_failed"
        assert cart.is_empty()

    @pytest.mark.asyncio
    async def test_cod_after_cancelled_card_releases_snapshot(
        self, orchestrator, reconciler, add_to_cart, context, address_fields
    ):
        add_to_cart("abaya-classic")
        await reach_payment(orchestrator, address_fields)
        await orchestrator.start_gateway_payment()
        order_id = context.pending_order()["order_id"]
        await reconciler.handle_return(f"/checkout?payment_status=cancelled&orderId={order_id}")

        orchestrator.select_payment_method(PaymentMethod.COD)
        order = await orchestrator.submit_cod_order()

        assert order["id"] != order_id
        assert context.pending_order() is None
        assert context.payment_intent_id() is None
        assert context.restore_recovery_snapshot() is False


# ============================================================================
# Shipping Tier Boundaries
# ============================================================================


class TestShippingBoundaries:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "price,cod_eligible,expected_fee",
        [
            ("100.00", False, Money(1000)),
            ("100.01", False, Money(0)),
            ("149.99", True, Money(1500)),
            ("150.00", True, Money(0)),
            ("99.99", True, Money(1000)),
        ],
    )
    async def test_fee_at_boundary(self, orchestrator, add_to_cart, catalog, price, cod_eligible, expected_fee):
        catalog.add_product("boundary-item", price, cod_eligible=cod_eligible)
        add_to_cart("boundary-item")

        quote = await orchestrator.refresh_quote()

        assert quote.source == "server"
        assert quote.fee == expected_fee
        assert quote.all_cod_eligible is cod_eligible


class TestSessionExpiry:
    @pytest.mark.asyncio
    async def test_stale_token_sends_customer_to_login(self, cart, context, add_to_cart):
        api = StorefrontAPIClient(
            base_url="http://testserver", token="stale-token", transport=httpx.ASGITransport(app=app)
        )
        orchestrator = CheckoutOrchestrator(api, cart, context)
        add_to_cart("abaya-classic")

        with pytest.raises(SessionExpiredError) as exc_info:
            await orchestrator.refresh_quote()

        assert exc_info.value.login_url == "/login?from=checkout&returnTo=/checkout"
        await api.close()
