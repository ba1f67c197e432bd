"""HTTP client for the external card-payment gateway.

The gateway is opaque: we create payment intents with return URLs,
redirect the customer to it, and later read an intent's status back.
Amounts travel in minor units (fils).
"""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from storefront.infrastructure.config import settings

logger = structlog.get_logger()

# Intent statuses the gateway reports for a captured payment
SUCCESSFUL_INTENT_STATUSES = frozenset({"completed", "succeeded"})


class GatewayClientError(Exception):
    """Error from a payment gateway call."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(f"[gateway] {message}")


@dataclass
class PaymentIntent:
    """A gateway payment intent.

    Attributes:
        id: Gateway intent identifier (the correlation token).
        status: Gateway status string.
        amount_cents: Amount in minor units.
        currency: Currency code.
        redirect_url: Hosted payment page, present on creation.
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    redirect_url: str | None = None

    @property
    def is_successful(self) -> bool:
        return self.status in SUCCESSFUL_INTENT_STATUSES

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "PaymentIntent":
        return cls(
            id=data["id"],
            status=str(data.get("status", "")).lower(),
            amount_cents=int(data.get("amount", 0)),
            currency=data.get("currency_code", settings.currency),
            redirect_url=data.get("redirect_url"),
        )


class GatewayClient:
    """Client for the payment gateway's payment intent API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        test_mode: bool | None = None,
    ) -> None:
        self.base_url = (base_url or settings.gateway_base_url).rstrip("/")
        self.api_key = api_key or settings.gateway_api_key
        self.timeout = timeout if timeout is not None else settings.gateway_timeout
        self.test_mode = settings.gateway_test_mode if test_mode is None else test_mode
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        message: str,
        success_url: str,
        cancel_url: str,
        failure_url: str,
    ) -> PaymentIntent:
        """Create a payment intent.

        Args:
            amount_cents: Amount in minor units.
            currency: Currency code.
            message: Description shown on the payment page.
            success_url: Return URL after a successful payment.
            cancel_url: Return URL when the customer cancels.
            failure_url: Return URL when the payment fails.

        Returns:
            Created payment intent with its redirect URL.

        Raises:
            GatewayClientError: On API error.
        """
        payload = {
            "amount": amount_cents,
            "currency_code": currency,
            "message": message,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "failure_url": failure_url,
            "test": self.test_mode,
            "allow_tips": False,
        }
        try:
            client = await self._get_client()
            response = await client.post("/payment_intent", json=payload)
        except httpx.RequestError as e:
            logger.error("Gateway intent request failed", error=str(e))
            raise GatewayClientError(f"Payment intent request failed: {str(e)}") from e

        if response.status_code not in (200, 201):
            raise GatewayClientError(
                f"Failed to create payment intent: {response.text}",
                response.status_code,
            )

        intent = PaymentIntent.from_api_response(response.json())
        logger.info(
            "Gateway payment intent created",
            payment_intent_id=intent.id,
            status=intent.status,
            has_redirect_url=bool(intent.redirect_url),
        )
        return intent

    async def get_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        """Fetch a payment intent's current status.

        Raises:
            GatewayClientError: On API error or unknown intent.
        """
        try:
            client = await self._get_client()
            response = await client.get(f"/payment_intent/{payment_intent_id}")
        except httpx.RequestError as e:
            logger.error(
                "Gateway status request failed",
                payment_intent_id=payment_intent_id,
                error=str(e),
            )
            raise GatewayClientError(f"Payment status request failed: {str(e)}") from e

        if response.status_code != 200:
            raise GatewayClientError(
                f"Failed to get payment intent: {response.text}",
                response.status_code,
            )
        return PaymentIntent.from_api_response(response.json())


_gateway_client: GatewayClient | None = None


def get_gateway_client() -> GatewayClient:
    """Get or create the shared gateway client."""
    global _gateway_client
    if _gateway_client is None:
        _gateway_client = GatewayClient()
    return _gateway_client


async def close_gateway_client() -> None:
    global _gateway_client
    if _gateway_client is not None:
        await _gateway_client.close()
        _gateway_client = None
