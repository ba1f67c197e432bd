"""Tests for API middleware."""

from fastapi.testclient import TestClient

from storefront.api.middleware import LOGIN_URL
from storefront.infrastructure.auth import get_session_registry


class TestRequestIdMiddleware:
    """Tests for request ID correlation middleware."""

    def test_generates_request_id_if_not_provided(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        # UUID format
        assert len(response.headers["X-Request-ID"]) == 36

    def test_uses_provided_request_id(self, client: TestClient) -> None:
        response = client.get("/health", headers={"X-Request-ID": "custom-request-id-12345"})
        assert response.headers["X-Request-ID"] == "custom-request-id-12345"

    def test_error_body_carries_request_id(self, client: TestClient, auth_headers) -> None:
        response = client.get(
            "/orders/missing", headers={**auth_headers, "X-Request-ID": "req-404"}
        )
        assert response.status_code == 404
        assert response.json()["request_id"] == "req-404"


class TestCustomerAuthMiddleware:
    """Tests for customer session authentication."""

    def test_public_endpoints_dont_require_auth(self, client: TestClient) -> None:
        assert client.get("/health").status_code == 200
        assert client.get("/ready").status_code == 200

    def test_missing_header(self, client: TestClient) -> None:
        response = client.get("/orders")
        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "UNAUTHORIZED"
        assert data["details"]["login_url"] == LOGIN_URL
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_auth_format_rejected(self, client: TestClient) -> None:
        response = client.get("/orders", headers={"Authorization": "InvalidFormat"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    def test_unknown_token_means_session_expired(self, client: TestClient) -> None:
        response = client.get("/orders", headers={"Authorization": "Bearer stale-token"})
        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "SESSION_EXPIRED"
        assert data["details"]["login_url"] == "/login?from=checkout&returnTo=/checkout"

    def test_revoked_session(self, client: TestClient, customer_token, auth_headers) -> None:
        assert client.get("/orders", headers=auth_headers).status_code == 200
        get_session_registry().revoke(customer_token)
        response = client.get("/orders", headers=auth_headers)
        assert response.json()["error_code"] == "SESSION_EXPIRED"

    def test_valid_session_accepted(self, client: TestClient, auth_headers) -> None:
        assert client.get("/orders", headers=auth_headers).status_code == 200


class TestValidationErrors:
    """Request validation errors use the standard error body."""

    def test_field_errors(self, auth_client: TestClient) -> None:
        response = auth_client.post("/orders/cod-check", json={"items": [{"quantity": 1}]})
        assert response.status_code == 422
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert "items.0.product_id" in data["details"]["field_errors"]
