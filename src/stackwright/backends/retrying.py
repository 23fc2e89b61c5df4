"""Bounded retry wrapper for any provisioning backend."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from stackwright.backends.base import BackendHealth, CreateResult, ProvisioningBackend
from stackwright.core.errors import BackendError

logger = structlog.get_logger()

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, BackendError) and exc.transient


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "backend_retry",
        operation=getattr(state.fn, "__name__", "call"),
        attempt=state.attempt_number,
        error=str(exc),
    )


class RetryingBackend:
    """Retries transient BackendErrors with exponential backoff.

    Permanent errors and the final transient error propagate unchanged.
    The same idempotency key is passed on every attempt.
    """

    def __init__(
        self,
        inner: ProvisioningBackend,
        *,
        max_attempts: int = 3,
        backoff: float = 2.0,
        max_wait: float = 30.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.inner = inner
        self.name = f"retrying:{inner.name}"
        self._max_attempts = max_attempts
        self._backoff = backoff
        self._max_wait = max_wait

    async def _call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_transient),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff, max=self._max_wait),
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(fn, *args, **kwargs)

    async def create_resource(
        self,
        kind: str,
        config: dict[str, Any],
        *,
        name: str,
        idempotency_key: str | None = None,
    ) -> CreateResult:
        return await self._call(
            self.inner.create_resource, kind, config, name=name, idempotency_key=idempotency_key
        )

    async def update_resource(
        self,
        physical_id: str,
        config: dict[str, Any],
        *,
        kind: str,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        return await self._call(
            self.inner.update_resource, physical_id, config, kind=kind, idempotency_key=idempotency_key
        )

    async def delete_resource(
        self,
        physical_id: str,
        *,
        kind: str,
        idempotency_key: str | None = None,
    ) -> None:
        await self._call(self.inner.delete_resource, physical_id, kind=kind, idempotency_key=idempotency_key)

    async def health_check(self) -> BackendHealth:
        return await self.inner.health_check()
