"""Storefront API client.

Thin HTTP client the checkout flow uses to talk to the storefront API.
It never raises on HTTP or network errors; callers inspect APIResponse.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from storefront.client.config import ClientSettings
from storefront.domain.entities import CartLine

logger = structlog.get_logger()


@dataclass
class APIError:
    """Represents an API error response."""

    error_code: str
    message: str
    status_code: int
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_network_error(self) -> bool:
        return self.error_code in {"TIMEOUT", "REQUEST_ERROR"}


@dataclass
class APIResponse:
    """Represents an API response."""

    success: bool
    data: dict[str, Any] | list[Any] | None = None
    error: APIError | None = None


def line_summary(line: CartLine) -> dict[str, Any]:
    """Cart line as the order endpoints expect it."""
    return {
        "product_id": str(line.product_id),
        "quantity": line.quantity,
        "size": line.size,
        "colour": line.colour,
    }


class StorefrontAPIClient:
    """HTTP client for the storefront checkout API."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the API client.

        Args:
            base_url: Storefront API base URL.
            token: Customer session token.
            timeout: Request timeout in seconds.
            transport: Optional transport (e.g. an ASGI app in tests).
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "StorefrontAPIClient":
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            timeout=settings.request_timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json", "Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self.transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> APIResponse:
        """Make an API request.

        Returns:
            APIResponse with success status and data or error.
        """
        client = await self._get_client()

        headers = {}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await client.request(
                method=method,
                url=path,
                json=json,
                params=params,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.error("API request timeout", path=path, error=str(e))
            return APIResponse(
                success=False,
                error=APIError(error_code="TIMEOUT", message=f"Request timed out: {path}", status_code=504),
            )
        except httpx.RequestError as e:
            logger.error("API request failed", path=path, error=str(e))
            return APIResponse(
                success=False,
                error=APIError(error_code="REQUEST_ERROR", message=f"Request failed: {str(e)}", status_code=503),
            )

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            if not isinstance(error_data, dict):
                error_data = {}
            return APIResponse(
                success=False,
                error=APIError(
                    error_code=error_data.get("error_code", "UNKNOWN_ERROR"),
                    message=error_data.get("message", f"HTTP {response.status_code}"),
                    status_code=response.status_code,
                    details=error_data.get("details") or {},
                ),
            )

        if response.status_code == 204:
            return APIResponse(success=True, data=None)
        return APIResponse(success=True, data=response.json())

    # =========================================================================
    # Cart Checks
    # =========================================================================

    async def cod_check(self, lines: list[CartLine]) -> APIResponse:
        return await self._request(
            "POST", "/orders/cod-check", json={"items": [line_summary(line) for line in lines]}
        )

    async def shipping_check(self, lines: list[CartLine]) -> APIResponse:
        return await self._request(
            "POST", "/orders/shipping-check", json={"items": [line_summary(line) for line in lines]}
        )

    # =========================================================================
    # Orders
    # =========================================================================

    async def create_order(
        self,
        lines: list[CartLine],
        shipping_address: dict[str, Any],
        payment_method: str,
        promo_code_id: str | None = None,
        promo_discount_amount: float | None = None,
        idempotency_key: str | None = None,
    ) -> APIResponse:
        """Place an order.

        Args:
            lines: Cart lines.
            shipping_address: Address fields.
            payment_method: "cod" or "card".
            promo_code_id: Applied promo code, if any.
            promo_discount_amount: Discount shown to the customer.
            idempotency_key: Key stable for this submission attempt.

        Returns:
            APIResponse with the created order.
        """
        body: dict[str, Any] = {
            "items": [line_summary(line) for line in lines],
            "shipping_address": shipping_address,
            "payment_method": payment_method,
        }
        if promo_code_id:
            body["promo_code_id"] = promo_code_id
            body["promo_discount_amount"] = promo_discount_amount
        return await self._request("POST", "/orders", json=body, idempotency_key=idempotency_key)

    async def get_order(self, order_id: str) -> APIResponse:
        return await self._request("GET", f"/orders/{order_id}")

    async def update_payment_status(
        self, order_id: str, payment_status: str, reason: str | None = None
    ) -> APIResponse:
        body: dict[str, Any] = {"paymentStatus": payment_status}
        if reason:
            body["reason"] = reason
        return await self._request("POST", f"/payment-status/{order_id}", json=body)

    # =========================================================================
    # Payments
    # =========================================================================

    async def create_payment_intent(self, order_id: str, idempotency_key: str | None = None) -> APIResponse:
        return await self._request(
            "POST", "/payments/intents", json={"order_id": order_id}, idempotency_key=idempotency_key
        )

    async def verify_payment(self, payment_intent_id: str, order_id: str | None = None) -> APIResponse:
        return await self._request(
            "GET", f"/payments/intents/{payment_intent_id}", params={"order_id": order_id}
        )

    # =========================================================================
    # Promo Codes
    # =========================================================================

    async def validate_promo(self, code: str, lines: list[CartLine], cart_total: float) -> APIResponse:
        return await self._request(
            "POST",
            "/promo-codes/validate",
            json={
                "code": code,
                "cart_items": [
                    {
                        "product_id": str(line.product_id),
                        "quantity": line.quantity,
                        "price": line.unit_price.to_float(),
                    }
                    for line in lines
                ],
                "cart_total": cart_total,
            },
        )

    async def available_promos(self) -> APIResponse:
        return await self._request("GET", "/promo-codes/available")
