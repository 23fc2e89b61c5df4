"""Resource kind catalog.

A kind schema names the output attributes a resource produces once it is
Created and the configuration attributes that cannot change in place.
Cloud-specific validation of the configuration payload is left to the
backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List

from stackwright.core.errors import DuplicateNameError, UnknownKindError


@dataclass(frozen=True)
class KindSchema:
    """Schema metadata describing a provisionable resource kind."""

    name: str
    description: str
    outputs: FrozenSet[str] = field(default_factory=frozenset)
    immutable: FrozenSet[str] = field(default_factory=frozenset)

    def has_output(self, attribute: str) -> bool:
        return attribute in self.outputs


class KindRegistry:
    """In-memory registry of resource kind schemas."""

    def __init__(self, schemas: Iterable[KindSchema] = ()) -> None:
        self._schemas: Dict[str, KindSchema] = {}
        for schema in schemas:
            self.register(schema)

    def register(self, schema: KindSchema, *, replace: bool = False) -> None:
        """Register a schema by its kind name."""
        if not schema.name:
            raise ValueError("Kind name is required")
        if schema.name in self._schemas and not replace:
            raise DuplicateNameError(schema.name, what="kind")
        self._schemas[schema.name] = schema

    def get(self, kind: str) -> KindSchema:
        schema = self._schemas.get(kind)
        if schema is None:
            raise UnknownKindError(kind, known=self.list())
        return schema

    def __contains__(self, kind: object) -> bool:
        return kind in self._schemas

    def list(self) -> List[str]:
        return list(self._schemas.keys())

    def schemas(self) -> List[KindSchema]:
        return list(self._schemas.values())


def _schema(name: str, description: str, outputs: Iterable[str], immutable: Iterable[str] = ()) -> KindSchema:
    return KindSchema(
        name=name,
        description=description,
        outputs=frozenset(outputs),
        immutable=frozenset(immutable),
    )


DEFAULT_KINDS: tuple[KindSchema, ...] = (
    _schema(
        "network",
        "Virtual network spanning one or more availability zones",
        ["id", "cidr_block", "public_subnet_ids", "private_subnet_ids"],
        ["cidr_block"],
    ),
    _schema(
        "cluster",
        "Container cluster attached to a network",
        ["id", "arn", "cluster_name"],
        ["network", "cluster_name"],
    ),
    _schema(
        "secret",
        "Generated secret value (credentials, tokens)",
        ["id", "secret_arn", "secret_name"],
        ["secret_name"],
    ),
    _schema(
        "database",
        "Managed relational database instance",
        ["id", "endpoint_address", "port", "arn"],
        ["engine", "database_name", "network", "credentials"],
    ),
    _schema(
        "bucket",
        "Object storage bucket",
        ["id", "bucket_name", "bucket_arn", "regional_domain_name"],
        ["bucket_name"],
    ),
    _schema(
        "distribution",
        "Content delivery distribution in front of an origin",
        ["id", "domain_name", "distribution_id"],
        [],
    ),
    _schema(
        "task-definition",
        "Container task definition (image, sizing, environment, role policy)",
        ["id", "arn", "family", "revision"],
        ["family"],
    ),
    _schema(
        "service",
        "Load-balanced container service",
        ["id", "service_name", "load_balancer_dns", "target_group_arn"],
        ["cluster", "public_load_balancer"],
    ),
    _schema(
        "dns-record",
        "DNS record inside a hosted zone",
        ["id", "fqdn", "zone_name"],
        ["zone", "record_name", "record_type"],
    ),
    _schema(
        "alarm",
        "Metric alarm on a monitored resource",
        ["id", "alarm_arn", "alarm_name"],
        ["alarm_name"],
    ),
)


def default_registry() -> KindRegistry:
    """Return a fresh registry holding the built-in kinds."""
    return KindRegistry(DEFAULT_KINDS)
