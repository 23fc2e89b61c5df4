from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, runtime_checkable


@dataclass(frozen=True)
class CreateResult:
    """Identity and outputs of a newly created resource."""

    physical_id: str
    outputs: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BackendHealth:
    status: Literal["healthy", "degraded", "unreachable"]
    details: str | None = None


@runtime_checkable
class ProvisioningBackend(Protocol):
    """Contract for systems that realise resources.

    Every operation must be safe to retry: callers deliver at-least-once and
    pass the same ``idempotency_key`` on each attempt of one step.
    """

    name: str

    async def create_resource(
        self,
        kind: str,
        config: dict[str, Any],
        *,
        name: str,
        idempotency_key: str | None = None,
    ) -> CreateResult:
        ...

    async def update_resource(
        self,
        physical_id: str,
        config: dict[str, Any],
        *,
        kind: str,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        ...

    async def delete_resource(
        self,
        physical_id: str,
        *,
        kind: str,
        idempotency_key: str | None = None,
    ) -> None:
        ...

    async def health_check(self) -> BackendHealth:
        ...
