"""Tests for the gateway webhook receiver.

Tests:
- HMAC signature verification
- Event deduplication
- Outcome application
- Error handling
"""

import json

import pytest
from fastapi import status

from storefront.application.payment_service import PaymentService
from storefront.application.webhook_service import (
    EventStatus,
    InMemoryEventLog,
    WebhookEvent,
    WebhookEventType,
    WebhookService,
    WebhookSignatureVerifier,
    parse_event,
)
from storefront.domain.state_machines import PaymentOutcome


# ============================================================================
# Helpers
# ============================================================================


def create_webhook_payload(
    event_id: str = "evt-001",
    event: str = "payment_intent.completed",
    payment_intent_id: str = "pi_test_001",
    data: dict | None = None,
) -> dict:
    return {
        "id": event_id,
        "event": event,
        "data": {"id": payment_intent_id, "status": event.split(".")[-1], **(data or {})},
    }


def post_webhook(client, payload: dict, signature: str | None = None):
    raw = json.dumps(payload)
    signature = signature if signature is not None else WebhookSignatureVerifier().sign(raw)
    return client.post(
        "/webhooks/gateway",
        content=raw,
        headers={"Content-Type": "application/json", "X-Gateway-Signature": signature},
    )


@pytest.fixture
def paying_order(auth_client, catalog, card_order_body) -> str:
    """A card order with an attached gateway intent (pi_test_001)."""
    order_id = auth_client.post("/orders", json=card_order_body).json()["id"]
    assert auth_client.post("/payments/intents", json={"order_id": order_id}).status_code == 201
    return order_id


# ============================================================================
# Signature Verification Tests
# ============================================================================


class TestWebhookSignatureVerifier:
    """Tests for WebhookSignatureVerifier."""

    def test_verify_valid_signature(self):
        verifier = WebhookSignatureVerifier(secret="test-secret")
        payload = '{"id": "evt-1"}'
        assert verifier.verify(payload, verifier.sign(payload)) is True

    def test_reject_tampered_payload(self):
        verifier = WebhookSignatureVerifier(secret="test-secret")
        signature = verifier.sign('{"id": "evt-1"}')
        assert verifier.verify('{"id": "evt-2"}', signature) is False

    @pytest.mark.parametrize("signature", [None, "", "abc", "md5=abc"])
    def test_reject_malformed_signature(self, signature):
        assert WebhookSignatureVerifier(secret="s").verify("{}", signature) is False

    def test_reject_other_secret(self):
        payload = "{}"
        signature = WebhookSignatureVerifier(secret="one").sign(payload)
        assert WebhookSignatureVerifier(secret="two").verify(payload, signature) is False


# ============================================================================
# Event Parsing Tests
# ============================================================================


class TestParseEvent:
    def test_known_event(self):
        event = parse_event(create_webhook_payload(event="payment_intent.failed", data={"reason": "declined"}))
        assert event.event_type == WebhookEventType.PAYMENT_FAILED
        assert event.event_type.outcome == PaymentOutcome.FAILURE
        assert event.reason == "declined"

    def test_unknown_event_is_ignored(self):
        assert parse_event(create_webhook_payload(event="refund.created")) is None

    def test_missing_intent_id(self):
        with pytest.raises(KeyError):
            parse_event({"id": "evt", "event": "payment_intent.completed", "data": {}})

    @pytest.mark.parametrize(
        "event,outcome",
        [
            ("payment_intent.completed", PaymentOutcome.SUCCESS),
            ("payment_intent.succeeded", PaymentOutcome.SUCCESS),
            ("payment_intent.cancelled", PaymentOutcome.CANCELLED),
        ],
    )
    def test_outcomes(self, event, outcome):
        assert parse_event(create_webhook_payload(event=event)).event_type.outcome == outcome


# ============================================================================
# Endpoint Tests
# ============================================================================


class TestWebhookEndpoint:
    """Tests for POST /webhooks/gateway."""

    def test_invalid_signature(self, client):
        response = post_webhook(client, create_webhook_payload(), signature="sha256=deadbeef")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error_code"] == "INVALID_SIGNATURE"

    def test_missing_signature(self, client):
        response = client.post("/webhooks/gateway", content=json.dumps(create_webhook_payload()))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_malformed_payload(self, client):
        raw = "not json"
        response = client.post(
            "/webhooks/gateway",
            content=raw,
            headers={"X-Gateway-Signature": WebhookSignatureVerifier().sign(raw)},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "INVALID_PAYLOAD"

    def test_unknown_event_acknowledged(self, client):
        response = post_webhook(client, create_webhook_payload(event="refund.created"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "ignored"

    def test_completed_confirms_order(self, client, auth_client, paying_order):
        response = post_webhook(client, create_webhook_payload())
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "processed"
        assert auth_client.get(f"/orders/{paying_order}").json()["status"] == "confirmed"

    def test_failed_marks_payment_failed(self, client, auth_client, paying_order):
        post_webhook(client, create_webhook_payload(event="payment_intent.failed", data={"reason": "declined"}))
        order = auth_client.get(f"/orders/{paying_order}").json()
        assert order["status"] == "payment_failed"
        assert order["payment_failure_reason"] == "declined"

    def test_cancelled_marks_payment_cancelled(self, client, auth_client, paying_order):
        post_webhook(client, create_webhook_payload(event="payment_intent.cancelled"))
        assert auth_client.get(f"/orders/{paying_order}").json()["status"] == "payment_cancelled"

    def test_duplicate_event(self, client, auth_client, paying_order):
        first = post_webhook(client, create_webhook_payload())
        second = post_webhook(client, create_webhook_payload())
        assert first.json()["status"] == "processed"
        assert second.json()["status"] == "duplicate"
        history = auth_client.get(f"/orders/{paying_order}").json()["status_history"]
        assert [h["to_status"] for h in history].count("confirmed") == 1

    def test_late_failure_does_not_downgrade(self, client, auth_client, paying_order):
        post_webhook(client, create_webhook_payload(event_id="evt-1"))
        response = post_webhook(client, create_webhook_payload(event_id="evt-2", event="payment_intent.failed"))
        assert response.status_code == status.HTTP_200_OK
        assert auth_client.get(f"/orders/{paying_order}").json()["status"] == "confirmed"

    def test_unknown_intent_is_retryable(self, client, auth_client, paying_order):
        payload = create_webhook_payload(payment_intent_id="pi_unknown")
        first = post_webhook(client, payload)
        assert first.status_code == status.HTTP_404_NOT_FOUND
        assert first.json()["error_code"] == "ORDER_NOT_FOUND"
        # The failed event is not remembered, so the retry is processed again
        second = post_webhook(client, payload)
        assert second.status_code == status.HTTP_404_NOT_FOUND

    def test_event_status_lookup(self, client, auth_client, paying_order):
        post_webhook(client, create_webhook_payload(event_id="evt-lookup"))
        response = auth_client.get("/webhooks/events/evt-lookup")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "processed"
        assert data["payment_intent_id"] == "pi_test_001"

    def test_event_status_requires_session(self, client):
        assert client.get("/webhooks/events/evt-1").status_code == status.HTTP_401_UNAUTHORIZED

    def test_unknown_event_status(self, auth_client):
        assert auth_client.get("/webhooks/events/nope").status_code == status.HTTP_404_NOT_FOUND


# ============================================================================
# Service Tests
# ============================================================================


class TestWebhookService:
    """Tests for WebhookService with an isolated event log."""

    @pytest.mark.asyncio
    async def test_failed_event_is_forgotten(self, gateway):
        log = InMemoryEventLog()
        service = WebhookService(event_log=log)
        event = WebhookEvent(
            event_id="evt-x",
            event_type=WebhookEventType.PAYMENT_COMPLETED,
            payment_intent_id="pi_none",
            data={"id": "pi_none"},
        )
        result = await service.process_event(event, PaymentService(gateway=gateway))
        assert result.success is False
        assert result.status == EventStatus.FAILED
        assert await log.exists("evt-x") is False
