"""Stack: an explicit, named collection of declared resources."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping

import structlog

from stackwright.core.errors import DuplicateNameError
from stackwright.model.kinds import KindRegistry, KindSchema, default_registry
from stackwright.model.references import Deferred, ImportedValue, Reference
from stackwright.model.resource import RemovalPolicy, Resource, ResourceState

logger = structlog.get_logger()


class StackStatus(Enum):
    """Outcome of the most recent run against the stack."""

    DECLARED = "declared"
    APPLYING = "applying"
    APPLIED = "applied"
    FAILED = "failed"
    CANCELLED = "cancelled"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"


@dataclass(frozen=True)
class Export:
    """A named stack output backed by a deferred value."""

    name: str
    value: Deferred
    description: str | None = None


class Stack:
    """Named collection of resources provisioned and destroyed together.

    Every builder call takes the stack explicitly; there is no ambient
    global stack, so independent stacks can coexist in one process.
    """

    def __init__(
        self,
        name: str,
        *,
        kinds: KindRegistry | None = None,
        tags: Mapping[str, str] | None = None,
    ) -> None:
        if not name or not name.strip():
            raise ValueError("Stack name must be a non-empty string")
        self.name = name
        self.kinds = kinds or default_registry()
        self.tags: Dict[str, str] = dict(tags or {})
        self.status = StackStatus.DECLARED
        self._resources: Dict[str, Resource] = {}
        self._exports: Dict[str, Export] = {}

    def declare(
        self,
        kind: str,
        name: str,
        config: Mapping[str, Any] | None = None,
        *,
        depends_on: Iterable[Resource | str] = (),
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
        replace_on: Iterable[str] = (),
    ) -> Resource:
        """Register a resource in this stack and return its handle."""
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Resource name must be a non-empty string")
        if name in self._resources:
            raise DuplicateNameError(name, stack=self.name)
        self.kinds.get(kind)

        resource = Resource(
            name=name,
            kind=kind,
            config=dict(config or {}),
            index=len(self._resources),
            depends_on=[d.name if isinstance(d, Resource) else d for d in depends_on],
            removal_policy=removal_policy,
            replace_on=frozenset(replace_on),
            stack_name=self.name,
        )
        self._resources[name] = resource
        logger.debug("resource_declared", stack=self.name, resource=name, kind=kind)
        return resource

    def reference(self, resource: Resource | str, attribute: str) -> Reference:
        """Deferred value for ``attribute`` of ``resource``.

        A name may refer to a resource declared later; the reference is
        looked up in this stack when it resolves. Unknown targets are not
        rejected here; graph construction reports them as
        UnknownReferenceError before anything is provisioned.
        """
        if isinstance(resource, Resource):
            return resource.ref(attribute)
        return Reference(
            target=resource,
            attribute=attribute,
            owner=self._resources.get(resource),
            scope=self,
        )

    def import_value(self, source: "Stack", export: str) -> ImportedValue:
        """Consume an export of another stack."""
        return ImportedValue(source, export)

    def export(self, name: str, value: Deferred, description: str | None = None) -> Export:
        if name in self._exports:
            raise DuplicateNameError(name, what="export", stack=self.name)
        item = Export(name=name, value=value, description=description)
        self._exports[name] = item
        return item

    def register_kind(self, schema: KindSchema) -> None:
        self.kinds.register(schema)

    def get(self, name: str) -> Resource | None:
        return self._resources.get(name)

    def __getitem__(self, name: str) -> Resource:
        return self._resources[name]

    def __contains__(self, name: object) -> bool:
        return name in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __len__(self) -> int:
        return len(self._resources)

    @property
    def resources(self) -> List[Resource]:
        """Resources in declaration order."""
        return list(self._resources.values())

    @property
    def exports(self) -> List[Export]:
        return list(self._exports.values())

    def reset_runtime_state(self) -> None:
        for resource in self._resources.values():
            resource.state = ResourceState.PLANNED
            resource.physical_id = None
            resource.outputs = {}
        self.status = StackStatus.DECLARED

    def __repr__(self) -> str:
        return f"Stack(name={self.name!r}, resources={len(self._resources)}, status={self.status.value})"
