"""Tests for Order API endpoints."""

import pytest
from fastapi import status

from storefront.infrastructure.repositories import get_product_repository, get_promo_code_repository


class TestCodCheck:
    """Tests for POST /orders/cod-check."""

    def test_all_eligible(self, auth_client, catalog):
        response = auth_client.post(
            "/orders/cod-check", json={"items": [{"product_id": "abaya-classic", "quantity": 1}]}
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data == {"codEligible": True, "codFee": 10.0, "nonCodItems": []}

    def test_ineligible_line_listed(self, auth_client, catalog):
        response = auth_client.post(
            "/orders/cod-check",
            json={
                "items": [
                    {"product_id": "abaya-classic", "quantity": 1},
                    {"product_id": "kaftan-silk", "quantity": 1, "size": "M"},
                ]
            },
        )
        data = response.json()
        assert data["codEligible"] is False
        assert data["codFee"] == 0.0
        assert data["nonCodItems"][0]["product_id"] == "kaftan-silk"
        assert data["nonCodItems"][0]["size"] == "M"

    def test_size_flag_overrides_product(self, auth_client, catalog):
        response = auth_client.post(
            "/orders/cod-check",
            json={"items": [{"product_id": "kaftan-silk", "quantity": 1, "size": "S"}]},
        )
        assert response.json()["codEligible"] is True

    def test_unconfigured_product_is_ineligible(self, auth_client, catalog):
        response = auth_client.post(
            "/orders/cod-check", json={"items": [{"product_id": "scarf-plain", "quantity": 1}]}
        )
        assert response.json()["codEligible"] is False

    def test_unknown_product(self, auth_client, catalog):
        response = auth_client.post(
            "/orders/cod-check", json={"items": [{"product_id": "nope", "quantity": 1}]}
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "PRODUCT_NOT_FOUND"

    def test_empty_cart(self, auth_client, catalog):
        response = auth_client.post("/orders/cod-check", json={"items": []})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "CART_EMPTY"

    def test_zero_quantity_rejected(self, auth_client, catalog):
        response = auth_client.post(
            "/orders/cod-check", json={"items": [{"product_id": "abaya-classic", "quantity": 0}]}
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"


class TestShippingCheck:
    """Tests for POST /orders/shipping-check."""

    def test_cod_tier(self, auth_client, catalog):
        response = auth_client.post(
            "/orders/shipping-check",
            json={"items": [{"product_id": "abaya-evening", "quantity": 1}]},
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["subtotal"] == 120.0
        assert data["shippingFee"] == 12.0
        assert data["total"] == 132.0
        assert data["allCODEligible"] is True
        assert data["message"]

    def test_mixed_tier_over_100_is_free(self, auth_client, catalog):
        response = auth_client.post(
            "/orders/shipping-check",
            json={
                "items": [
                    {"product_id": "abaya-classic", "quantity": 1},
                    {"product_id": "perfume-oud", "quantity": 1},
                ]
            },
        )
        data = response.json()
        assert data["subtotal"] == 200.0
        assert data["shippingFee"] == 0.0
        assert data["allCODEligible"] is False

    def test_requires_session(self, client, catalog):
        response = client.post("/orders/shipping-check", json={"items": []})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestCreateOrder:
    """Tests for POST /orders."""

    def test_cod_order_created_pending(self, auth_client, catalog, cod_order_body):
        response = auth_client.post("/orders", json=cod_order_body)
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["status"] == "pending"
        assert data["payment_method"] == "cod"
        assert data["subtotal"] == {"amount": 8000, "currency": "AED"}
        assert data["shipping_fee"]["amount"] == 1000
        assert data["total"]["amount"] == 9000
        assert data["shipping_address"]["city"] == "Dubai"

    def test_card_order_created_pending_payment(self, auth_client, catalog, card_order_body):
        response = auth_client.post("/orders", json=card_order_body)
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["status"] == "pending_payment"

    def test_cod_with_ineligible_line_conflicts(self, auth_client, catalog, card_order_body):
        body = {**card_order_body, "payment_method": "cod"}
        response = auth_client.post("/orders", json=body)
        assert response.status_code == status.HTTP_409_CONFLICT
        data = response.json()
        assert data["error_code"] == "ELIGIBILITY_CONFLICT"
        assert [i["product_id"] for i in data["details"]["non_cod_items"]] == ["perfume-oud"]

    def test_missing_address_fields(self, auth_client, catalog, cod_order_body):
        body = {**cod_order_body, "shipping_address": {"full_name": "Mariam"}}
        response = auth_client.post("/orders", json=body)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert "phone" in data["details"]["field_errors"]

    def test_insufficient_stock(self, auth_client, catalog, valid_address):
        body = {
            "items": [{"product_id": "kaftan-silk", "quantity": 3, "size": "M"}],
            "shipping_address": valid_address,
            "payment_method": "card",
        }
        response = auth_client.post("/orders", json=body)
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error_code"] == "INSUFFICIENT_STOCK"

    def test_stock_is_reserved(self, auth_client, catalog, cod_order_body):
        before = get_product_repository().get("abaya-classic").stock
        auth_client.post("/orders", json=cod_order_body)
        assert get_product_repository().get("abaya-classic").stock == before - 1

    def test_promo_is_re_evaluated(self, auth_client, catalog, valid_address):
        body = {
            "items": [{"product_id": "abaya-evening", "quantity": 1}],
            "shipping_address": valid_address,
            "payment_method": "cod",
            "promo_code_id": "promo-welcome",
            "promo_discount_amount": 40.0,
        }
        response = auth_client.post("/orders", json=body)
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["discount"]["amount"] == 1500
        # 120 + 12 shipping - 15
        assert data["total"]["amount"] == 11700
        assert data["promo_code_id"] == "promo-welcome"

    def test_promo_usage_is_recorded(self, auth_client, catalog, cod_order_body):
        body = {**cod_order_body, "promo_code_id": "promo-once"}
        assert auth_client.post("/orders", json=body).status_code == status.HTTP_201_CREATED
        assert get_promo_code_repository().usage_count("promo-once", "customer-dev") == 1

        second = auth_client.post("/orders", json=body)
        assert second.status_code == status.HTTP_400_BAD_REQUEST
        assert second.json()["error_code"] == "PROMO_CODE_NOT_APPLICABLE"

    def test_invalid_payment_method(self, auth_client, catalog, cod_order_body):
        response = auth_client.post("/orders", json={**cod_order_body, "payment_method": "cash"})
        assert response.status_code == 422


class TestGetOrders:
    """Tests for GET /orders and GET /orders/{id}."""

    def test_list_empty(self, auth_client):
        response = auth_client.get("/orders")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"items": [], "total": 0}

    def test_get_own_order(self, auth_client, catalog, cod_order_body):
        order_id = auth_client.post("/orders", json=cod_order_body).json()["id"]
        response = auth_client.get(f"/orders/{order_id}")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == order_id
        assert auth_client.get("/orders").json()["total"] == 1

    def test_other_customers_order_is_not_found(
        self, auth_client, catalog, cod_order_body, other_customer_token
    ):
        order_id = auth_client.post("/orders", json=cod_order_body).json()["id"]
        response = auth_client.get(
            f"/orders/{order_id}", headers={"Authorization": f"Bearer {other_customer_token}"}
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "ORDER_NOT_FOUND"

    @pytest.mark.parametrize("order_id", ["missing", "00000000-0000-0000-0000-000000000000"])
    def test_unknown_order(self, auth_client, order_id):
        assert auth_client.get(f"/orders/{order_id}").status_code == status.HTTP_404_NOT_FOUND
