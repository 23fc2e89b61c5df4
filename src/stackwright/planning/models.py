"""Plan data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Tuple


class Action(Enum):
    """What a plan step does to its resource."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NOOP = "noop"


class PlanMode(Enum):
    APPLY = "apply"
    DESTROY = "destroy"


RETIRE_SUFFIX = "~retire"
ORPHAN_MARK = "~orphan:"


@dataclass(frozen=True)
class PlanStep:
    """One (resource, action) pair in a plan.

    ``key`` is unique within the plan. It is the resource name, except for
    the step that deletes the previous instance of a replaced resource,
    which is keyed ``<name>~retire``, and the cleanup of an instance left
    behind by an earlier failed retirement, keyed ``<name>~orphan:<id>``.
    """

    key: str
    name: str
    kind: str
    action: Action
    requires: FrozenSet[str] = frozenset()
    changed: Tuple[str, ...] = ()
    physical_id: str | None = None
    retain: bool = False
    reason: str | None = None

    @property
    def is_retirement(self) -> bool:
        """Deletes an instance other than the declared resource's current one."""
        return self.key.endswith(RETIRE_SUFFIX) or self.is_orphan_cleanup

    @property
    def is_orphan_cleanup(self) -> bool:
        return ORPHAN_MARK in self.key

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "kind": self.kind,
            "action": self.action.value,
            "requires": sorted(self.requires),
            "changed": list(self.changed),
            "physical_id": self.physical_id,
            "retain": self.retain,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Plan:
    """Ordered, immutable set of steps reconciling a stack with its state.

    Steps are stored in a valid execution order: every step appears after
    all steps listed in its ``requires``.
    """

    stack: str
    steps: Tuple[PlanStep, ...]
    mode: PlanMode = PlanMode.APPLY
    state_serial: int = 0
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def __iter__(self):
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def get(self, key: str) -> PlanStep | None:
        for step in self.steps:
            if step.key == key:
                return step
        return None

    @property
    def order(self) -> List[str]:
        """Step keys in execution order."""
        return [s.key for s in self.steps]

    @property
    def actions(self) -> Dict[str, Action]:
        return {s.key: s.action for s in self.steps}

    @property
    def has_changes(self) -> bool:
        return any(s.action is not Action.NOOP for s in self.steps)

    def summary(self) -> Dict[str, int]:
        counts = {a.value: 0 for a in Action}
        for step in self.steps:
            counts[step.action.value] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stack": self.stack,
            "mode": self.mode.value,
            "state_serial": self.state_serial,
            "steps": [s.to_dict() for s in self.steps],
            "summary": self.summary(),
            "warnings": list(self.warnings),
        }
