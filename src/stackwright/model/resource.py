"""Resource declarations and their lifecycle state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List

if TYPE_CHECKING:
    from stackwright.model.references import Reference


class ResourceState(Enum):
    """Provisioning lifecycle of a single resource."""

    PLANNED = "planned"
    CREATING = "creating"
    CREATED = "created"
    FAILED = "failed"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"


class RemovalPolicy(Enum):
    """What happens to the real object when the resource is deleted."""

    DESTROY = "destroy"
    RETAIN = "retain"


@dataclass(eq=False)
class Resource:
    """A single declared infrastructure object.

    Configuration is fixed at declaration time. ``state``, ``physical_id``
    and ``outputs`` are runtime fields owned by the execution engine.
    """

    name: str
    kind: str
    config: Dict[str, Any]
    index: int
    depends_on: List[str] = field(default_factory=list)
    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY
    replace_on: FrozenSet[str] = field(default_factory=frozenset)
    stack_name: str | None = None

    state: ResourceState = ResourceState.PLANNED
    physical_id: str | None = None
    outputs: Dict[str, Any] = field(default_factory=dict)

    def ref(self, attribute: str) -> "Reference":
        """Deferred handle on one of this resource's output attributes."""
        from stackwright.model.references import Reference

        return Reference(target=self.name, attribute=attribute, owner=self)

    def __getitem__(self, attribute: str) -> "Reference":
        return self.ref(attribute)

    @property
    def is_created(self) -> bool:
        return self.state is ResourceState.CREATED

    def __repr__(self) -> str:
        return f"Resource(name={self.name!r}, kind={self.kind!r}, state={self.state.value})"


ResourceHandle = Resource
