"""Idempotency middleware for order and payment creation.

Provides:
- Idempotency-Key header handling
- Response replay for retried requests
- Request body conflict detection
"""

import json
from typing import Callable

import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.application.idempotency_service import (
    IdempotencyService,
    get_idempotency_service,
)

logger = structlog.get_logger()


# Endpoints that honour idempotency keys
IDEMPOTENT_ENDPOINTS = {
    "/orders": ["POST"],
    "/payments/intents": ["POST"],
}


def _matches_pattern(path: str, pattern: str) -> bool:
    """Check if path matches a pattern with path parameters.

    Args:
        path: Actual request path (e.g., /orders/abc123)
        pattern: Pattern with placeholders (e.g., /orders/{order_id})

    Returns:
        True if path matches pattern.
    """
    path_parts = path.rstrip("/").split("/")
    pattern_parts = pattern.rstrip("/").split("/")
    if len(path_parts) != len(pattern_parts):
        return False
    for path_part, pattern_part in zip(path_parts, pattern_parts):
        if pattern_part.startswith("{") and pattern_part.endswith("}"):
            continue
        if path_part != pattern_part:
            return False
    return True


def _requires_idempotency(path: str, method: str) -> bool:
    return any(
        method in methods and _matches_pattern(path, pattern)
        for pattern, methods in IDEMPOTENT_ENDPOINTS.items()
    )


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Middleware for idempotency key handling.

    Keys are scoped to the caller's Authorization header. Successful and
    client-error responses are stored; 401 and 5xx responses are not, so
    the retry of a request that never reached the handler still runs.
    """

    HEADER_NAME = "Idempotency-Key"

    def __init__(self, app, service: IdempotencyService | None = None) -> None:
        super().__init__(app)
        self._service = service

    @property
    def service(self) -> IdempotencyService:
        if self._service is None:
            return get_idempotency_service()
        return self._service

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path.rstrip("/")
        method = request.method

        if not _requires_idempotency(path, method):
            return await call_next(request)

        idempotency_key = request.headers.get(self.HEADER_NAME)
        if not idempotency_key:
            logger.debug("Request without idempotency key", path=path, method=method)
            return await call_next(request)

        request_body = None
        try:
            body = await request.body()
            if body:
                request_body = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            request_body = None

        scope = self.service.compute_scope(request.headers.get("Authorization"))
        result = await self.service.check(
            scope=scope,
            idempotency_key=idempotency_key,
            endpoint=path,
            method=method,
            request_body=request_body,
        )

        if result.is_conflict:
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={
                    "error_code": "IDEMPOTENCY_CONFLICT",
                    "message": result.conflict_message
                    or "Idempotency key already used with different request",
                    "details": {"idempotency_key": idempotency_key},
                },
            )

        if result.is_cached and result.cached_response:
            cached = result.cached_response
            response = JSONResponse(status_code=cached.response_status, content=cached.response_body)
            response.headers["X-Idempotent-Replayed"] = "true"
            return response

        response = await call_next(request)

        if response.status_code >= 500 or response.status_code == status.HTTP_401_UNAUTHORIZED:
            return response

        response_body = b""
        async for chunk in response.body_iterator:
            response_body += chunk
        try:
            response_dict = json.loads(response_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            response_dict = {}

        await self.service.store(
            scope=scope,
            idempotency_key=idempotency_key,
            endpoint=path,
            method=method,
            response_status=response.status_code,
            response_body=response_dict,
            request_body=request_body,
        )

        new_response = JSONResponse(status_code=response.status_code, content=response_dict)
        for key, value in response.headers.items():
            if key.lower() not in ("content-length", "content-type"):
                new_response.headers[key] = value
        return new_response


def setup_idempotency_middleware(app) -> None:
    """Add idempotency middleware to the application."""
    app.add_middleware(IdempotencyMiddleware)
