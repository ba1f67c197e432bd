"""Idempotency service for safe order and payment retries.

A client that loses the response to POST /orders or POST /payments/intents
can resend the same Idempotency-Key and receive the original response
instead of creating a second order or intent.
"""

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import structlog

from storefront.domain.base import utc_now
from storefront.infrastructure.config import settings

logger = structlog.get_logger()


@dataclass
class CachedResponse:
    """A response stored under an idempotency key.

    Attributes:
        scope: Caller scope the key belongs to.
        idempotency_key: The idempotency key.
        endpoint: API endpoint.
        method: HTTP method.
        response_status: HTTP status code.
        response_body: Response body as dict.
        created_at: When the response was cached.
        expires_at: When the cached response expires.
        request_hash: Hash of the original request body.
    """

    scope: str
    idempotency_key: str
    endpoint: str
    method: str
    response_status: int
    response_body: dict[str, Any]
    created_at: datetime
    expires_at: datetime
    request_hash: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class IdempotencyResult:
    """Result of an idempotency check."""

    is_cached: bool
    cached_response: CachedResponse | None = None
    is_conflict: bool = False
    conflict_message: str | None = None


class InMemoryIdempotencyStore:
    """In-memory store for idempotent responses.

    Expired entries are pruned whenever a new response is stored.
    """

    def __init__(self, ttl_hours: int | None = None) -> None:
        self._responses: dict[tuple[str, str, str, str], CachedResponse] = {}
        self.ttl_hours = ttl_hours if ttl_hours is not None else settings.idempotency_ttl_hours

    async def get(
        self, scope: str, idempotency_key: str, endpoint: str, method: str
    ) -> CachedResponse | None:
        """Get a cached response, dropping it if it has expired."""
        key = (scope, idempotency_key, method, endpoint)
        cached = self._responses.get(key)
        if cached is None:
            return None
        if cached.is_expired(utc_now()):
            del self._responses[key]
            return None
        return cached

    async def store(
        self,
        scope: str,
        idempotency_key: str,
        endpoint: str,
        method: str,
        response_status: int,
        response_body: dict[str, Any],
        request_hash: str | None = None,
    ) -> CachedResponse:
        now = utc_now()
        self._prune_expired(now)
        cached = CachedResponse(
            scope=scope,
            idempotency_key=idempotency_key,
            endpoint=endpoint,
            method=method,
            response_status=response_status,
            response_body=response_body,
            created_at=now,
            expires_at=now + timedelta(hours=self.ttl_hours),
            request_hash=request_hash,
        )
        self._responses[(scope, idempotency_key, method, endpoint)] = cached
        logger.debug(
            "Stored idempotent response",
            idempotency_key=idempotency_key,
            endpoint=endpoint,
            status=response_status,
        )
        return cached

    def _prune_expired(self, now: datetime) -> int:
        expired = [key for key, cached in self._responses.items() if cached.is_expired(now)]
        for key in expired:
            del self._responses[key]
        if expired:
            logger.debug("Pruned expired idempotent responses", count=len(expired))
        return len(expired)


class IdempotencyService:
    """Replays stored responses and detects key reuse with a different body."""

    def __init__(self, storage: InMemoryIdempotencyStore | None = None) -> None:
        self._storage = storage or InMemoryIdempotencyStore()

    @staticmethod
    def compute_request_hash(body: dict[str, Any] | None) -> str | None:
        if body is None:
            return None
        payload = json.dumps(body, sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()

    @staticmethod
    def compute_scope(authorization: str | None) -> str:
        """Scope keys to the caller so two customers never share a response."""
        if not authorization:
            return "anonymous"
        return hashlib.sha256(authorization.encode()).hexdigest()[:16]

    async def check(
        self,
        scope: str,
        idempotency_key: str,
        endpoint: str,
        method: str,
        request_body: dict[str, Any] | None = None,
    ) -> IdempotencyResult:
        """Check whether a request was already processed.

        Args:
            scope: Caller scope from compute_scope.
            idempotency_key: The idempotency key from the header.
            endpoint: API endpoint path.
            method: HTTP method.
            request_body: Current request body for conflict detection.

        Returns:
            IdempotencyResult with the cached response if found.
        """
        cached = await self._storage.get(scope, idempotency_key, endpoint, method)
        if cached is None:
            return IdempotencyResult(is_cached=False)

        if cached.request_hash and request_body is not None:
            if self.compute_request_hash(request_body) != cached.request_hash:
                logger.warning(
                    "Idempotency key reused with different request body",
                    idempotency_key=idempotency_key,
                    endpoint=endpoint,
                )
                return IdempotencyResult(
                    is_cached=False,
                    is_conflict=True,
                    conflict_message="Idempotency key already used with different request body",
                )

        logger.info(
            "Returning cached idempotent response",
            idempotency_key=idempotency_key,
            endpoint=endpoint,
            original_status=cached.response_status,
        )
        return IdempotencyResult(is_cached=True, cached_response=cached)

    async def store(
        self,
        scope: str,
        idempotency_key: str,
        endpoint: str,
        method: str,
        response_status: int,
        response_body: dict[str, Any],
        request_body: dict[str, Any] | None = None,
    ) -> CachedResponse:
        return await self._storage.store(
            scope=scope,
            idempotency_key=idempotency_key,
            endpoint=endpoint,
            method=method,
            response_status=response_status,
            response_body=response_body,
            request_hash=self.compute_request_hash(request_body),
        )


_idempotency_service: IdempotencyService | None = None


def get_idempotency_service() -> IdempotencyService:
    """Get or create the idempotency service instance."""
    global _idempotency_service
    if _idempotency_service is None:
        _idempotency_service = IdempotencyService()
    return _idempotency_service


def reset_idempotency_service() -> None:
    global _idempotency_service
    _idempotency_service = None
