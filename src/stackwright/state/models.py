"""Persisted record of what was last applied for a stack."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ResourceRecord:
    """Last-applied facts about one resource."""

    name: str
    kind: str
    physical_id: str | None
    config: Dict[str, Any]  # symbolic form, references as {"$ref": ...}
    resolved_config: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    removal_policy: str = "destroy"
    depends_on: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "physical_id": self.physical_id,
            "config": self.config,
            "resolved_config": self.resolved_config,
            "outputs": self.outputs,
            "removal_policy": self.removal_policy,
            "depends_on": list(self.depends_on),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceRecord":
        return cls(
            name=data["name"],
            kind=data["kind"],
            physical_id=data.get("physical_id"),
            config=dict(data.get("config", {})),
            resolved_config=dict(data.get("resolved_config", {})),
            outputs=dict(data.get("outputs", {})),
            removal_policy=data.get("removal_policy", "destroy"),
            depends_on=list(data.get("depends_on", [])),
        )


@dataclass
class StackState:
    """Resources and apply order recorded by the last run of a stack."""

    stack: str
    serial: int = 0
    apply_order: List[str] = field(default_factory=list)
    resources: Dict[str, ResourceRecord] = field(default_factory=dict)
    # previous instances of replaced resources whose delete did not complete
    orphaned: List[Dict[str, Any]] = field(default_factory=list)

    def get(self, name: str) -> ResourceRecord | None:
        return self.resources.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.resources

    @property
    def is_empty(self) -> bool:
        return not self.resources

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stack": self.stack,
            "serial": self.serial,
            "apply_order": list(self.apply_order),
            "resources": {name: rec.to_dict() for name, rec in self.resources.items()},
            "orphaned": [dict(o) for o in self.orphaned],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StackState":
        return cls(
            stack=data["stack"],
            serial=int(data.get("serial", 0)),
            apply_order=list(data.get("apply_order", [])),
            resources={
                name: ResourceRecord.from_dict(rec)
                for name, rec in (data.get("resources") or {}).items()
            },
            orphaned=[dict(o) for o in data.get("orphaned", [])],
        )
