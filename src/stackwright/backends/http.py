"""JSON/HTTP provisioning backend.

Speaks a small REST contract::

    POST   /resources            {"kind", "name", "config"} -> {"id", "outputs"}
    PUT    /resources/{id}       {"kind", "config"}         -> {"outputs"}
    DELETE /resources/{id}?kind=                            -> {}
    GET    /health

Transient failures (timeouts, connection errors, 408/429/5xx) are retried
with bounded exponential backoff; a circuit breaker stops hammering a
backend that keeps failing. Everything that escapes is a BackendError.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from circuitbreaker import CircuitBreaker, CircuitBreakerError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stackwright.backends.base import BackendHealth, CreateResult
from stackwright.backends.registry import register_backend
from stackwright.core.errors import BackendError

logger = structlog.get_logger()

DEFAULT_USER_AGENT = "stackwright-backend-http/0.1.0"


class RetryableHTTPError(Exception):
    """HTTP errors that should be retried."""


class PermanentHTTPError(Exception):
    """HTTP errors that should not be retried."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


class HttpBackend:
    """Backend client with retry logic and circuit breaker."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        circuit_failure_threshold: int = 5,
        circuit_recovery_timeout: int = 60,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor
        self._user_agent = user_agent
        self._transport = transport
        self._breaker = CircuitBreaker(
            failure_threshold=circuit_failure_threshold,
            recovery_timeout=circuit_recovery_timeout,
            expected_exception=RetryableHTTPError,
            name=f"stackwright-http-{self._base_url}",
        )
        self._guarded_send = self._breaker(self._send_with_retry)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": self._user_agent}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _send_once(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        req_headers = self._headers()
        if headers:
            req_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, url, params=params, json=json, headers=req_headers)

                if is_retryable_status(response.status_code):
                    logger.warning(
                        "http_retryable_error",
                        status=response.status_code,
                        method=method,
                        url=url,
                    )
                    raise RetryableHTTPError(f"HTTP {response.status_code}: {response.text}")

                response.raise_for_status()
                return response.json() if response.content else {}

        except httpx.HTTPStatusError as exc:
            logger.error(
                "http_permanent_error",
                status=exc.response.status_code,
                method=method,
                url=url,
                error=str(exc),
            )
            raise PermanentHTTPError(str(exc), exc.response.status_code) from exc
        except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise RetryableHTTPError(str(exc)) from exc

    async def _send_with_retry(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RetryableHTTPError),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._backoff_factor, max=30),
            reraise=True,
        )
        return await retrying(self._send_once, method, path, **kwargs)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Execute a request, translating transport failures into BackendError."""
        try:
            return await self._guarded_send(method, path, **kwargs)
        except RetryableHTTPError as exc:
            raise BackendError(
                f"{method} {path} failed after {self._max_retries} attempts: {exc}",
                transient=True,
                details={"method": method, "path": path},
            ) from exc
        except PermanentHTTPError as exc:
            raise BackendError(
                f"{method} {path} rejected: {exc}",
                transient=False,
                details={"method": method, "path": path, "status": exc.status_code},
            ) from exc
        except CircuitBreakerError as exc:
            raise BackendError(
                f"Backend circuit open for {self._base_url}",
                transient=True,
                details={"method": method, "path": path},
            ) from exc

    @staticmethod
    def _idempotency(key: str | None) -> dict[str, str] | None:
        return {"Idempotency-Key": key} if key else None

    async def create_resource(
        self,
        kind: str,
        config: dict[str, Any],
        *,
        name: str,
        idempotency_key: str | None = None,
    ) -> CreateResult:
        body = await self._request(
            "POST",
            "/resources",
            json={"kind": kind, "name": name, "config": config},
            headers=self._idempotency(idempotency_key),
        )
        physical_id = body.get("id")
        if not physical_id:
            raise BackendError(
                "Backend response missing resource id",
                details={"kind": kind, "resource": name},
            )
        return CreateResult(physical_id=str(physical_id), outputs=dict(body.get("outputs") or {}))

    async def update_resource(
        self,
        physical_id: str,
        config: dict[str, Any],
        *,
        kind: str,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        body = await self._request(
            "PUT",
            f"/resources/{physical_id}",
            json={"kind": kind, "config": config},
            headers=self._idempotency(idempotency_key),
        )
        return dict(body.get("outputs") or {})

    async def delete_resource(
        self,
        physical_id: str,
        *,
        kind: str,
        idempotency_key: str | None = None,
    ) -> None:
        try:
            await self._request(
                "DELETE",
                f"/resources/{physical_id}",
                params={"kind": kind},
                headers=self._idempotency(idempotency_key),
            )
        except BackendError as exc:
            # already gone: a retried delete must still succeed
            if exc.details.get("status") == 404:
                logger.info("resource_already_deleted", physical_id=physical_id, kind=kind)
                return
            raise

    async def health_check(self) -> BackendHealth:
        try:
            await self._request("GET", "/health")
            return BackendHealth(status="healthy")
        except BackendError as exc:
            return BackendHealth(status="unreachable", details=str(exc))


def _http_factory(**kwargs: Any) -> HttpBackend:
    base_url = kwargs.get("base_url")
    if not base_url:
        raise ValueError("The http backend requires a base_url")
    return HttpBackend(
        base_url,
        kwargs.get("token"),
        timeout=kwargs.get("timeout", 30.0),
        max_retries=kwargs.get("max_retries", 3),
        backoff_factor=kwargs.get("backoff_factor", 2.0),
    )


register_backend("http", _http_factory, description="JSON/HTTP provisioning API")
