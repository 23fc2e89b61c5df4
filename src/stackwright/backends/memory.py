"""Simulated provisioning backend.

Keeps every object in process memory and fabricates outputs from the kind
schema. Used by the CLI demo mode and throughout the test suite; failures
can be injected per resource name to exercise partial-failure handling.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import structlog

from stackwright.backends.base import BackendHealth, CreateResult
from stackwright.backends.registry import register_backend
from stackwright.core.errors import BackendError
from stackwright.model.kinds import KindRegistry, default_registry

logger = structlog.get_logger()

# Output values that look like what a real cloud would hand back
_OUTPUT_FORMATS: Dict[str, str] = {
    "endpoint_address": "{name}.{id}.db.internal",
    "port": "3306",
    "bucket_name": "{name}-{id}",
    "bucket_arn": "arn:sim:storage:::{name}-{id}",
    "regional_domain_name": "{name}-{id}.storage.sim.internal",
    "domain_name": "{id}.cdn.sim.net",
    "load_balancer_dns": "{name}-{id}.lb.sim.internal",
    "fqdn": "{name}.sim.example.com",
    "zone_name": "sim.example.com",
    "cidr_block": "10.0.0.0/16",
    "revision": "1",
}


@dataclass
class InjectedFailure:
    message: str
    transient: bool = False
    remaining: int | None = None  # None = fail forever


@dataclass
class SimulatedObject:
    physical_id: str
    kind: str
    name: str
    config: Dict[str, Any]
    outputs: Dict[str, Any] = field(default_factory=dict)


class InMemoryBackend:
    name = "memory"

    def __init__(
        self,
        *,
        kinds: KindRegistry | None = None,
        latency: float = 0.0,
    ) -> None:
        self._kinds = kinds or default_registry()
        self._latency = latency
        self._ids = itertools.count(1)
        self._by_key: Dict[str, CreateResult] = {}
        self._failures: Dict[Tuple[str, str], InjectedFailure] = {}
        self.objects: Dict[str, SimulatedObject] = {}
        self.calls: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def fail(
        self,
        name: str,
        *,
        operation: str = "create",
        transient: bool = False,
        times: int | None = None,
        message: str | None = None,
    ) -> None:
        """Make ``operation`` on resource ``name`` fail."""
        self._failures[(operation, name)] = InjectedFailure(
            message=message or f"simulated {operation} failure for {name}",
            transient=transient,
            remaining=times,
        )

    def _maybe_fail(self, operation: str, name: str) -> None:
        failure = self._failures.get((operation, name))
        if failure is None:
            return
        if failure.remaining is not None:
            if failure.remaining <= 0:
                return
            failure.remaining -= 1
        raise BackendError(failure.message, transient=failure.transient, details={"resource": name})

    async def _io(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._latency)
        finally:
            self.in_flight -= 1

    def _outputs(self, kind: str, name: str, physical_id: str) -> Dict[str, Any]:
        outputs: Dict[str, Any] = {}
        for attr in sorted(self._kinds.get(kind).outputs):
            if attr == "id":
                outputs[attr] = physical_id
                continue
            template = _OUTPUT_FORMATS.get(attr, "arn:sim:{kind}:{id}:" + attr)
            outputs[attr] = template.format(name=name, id=physical_id, kind=kind)
        return outputs

    async def create_resource(
        self,
        kind: str,
        config: dict[str, Any],
        *,
        name: str,
        idempotency_key: str | None = None,
    ) -> CreateResult:
        self.calls.append(("create", name))
        await self._io()
        if idempotency_key and idempotency_key in self._by_key:
            return self._by_key[idempotency_key]
        self._maybe_fail("create", name)

        physical_id = f"{kind}-{next(self._ids):04d}"
        outputs = self._outputs(kind, name, physical_id)
        self.objects[physical_id] = SimulatedObject(physical_id, kind, name, dict(config), outputs)
        result = CreateResult(physical_id=physical_id, outputs=dict(outputs))
        if idempotency_key:
            self._by_key[idempotency_key] = result
        logger.debug("simulated_create", kind=kind, resource=name, physical_id=physical_id)
        return result

    async def update_resource(
        self,
        physical_id: str,
        config: dict[str, Any],
        *,
        kind: str,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        obj = self.objects.get(physical_id)
        name = obj.name if obj else physical_id
        self.calls.append(("update", name))
        await self._io()
        self._maybe_fail("update", name)
        if obj is None:
            # objects created by an earlier process are adopted
            obj = SimulatedObject(physical_id, kind, name, {}, self._outputs(kind, name, physical_id))
            self.objects[physical_id] = obj
        obj.config = dict(config)
        return dict(obj.outputs)

    async def delete_resource(
        self,
        physical_id: str,
        *,
        kind: str,
        idempotency_key: str | None = None,
    ) -> None:
        obj = self.objects.get(physical_id)
        name = obj.name if obj else physical_id
        self.calls.append(("delete", name))
        await self._io()
        self._maybe_fail("delete", name)
        # deleting an absent object is acknowledged so retries are safe
        self.objects.pop(physical_id, None)

    async def health_check(self) -> BackendHealth:
        return BackendHealth(status="healthy", details=f"{len(self.objects)} objects")

    def calls_for(self, operation: str) -> List[str]:
        return [name for op, name in self.calls if op == operation]


register_backend(
    "memory",
    lambda **kwargs: InMemoryBackend(
        kinds=kwargs.get("kinds"),
        latency=kwargs.get("latency", 0.0),
    ),
    description="Simulated in-process backend",
)
