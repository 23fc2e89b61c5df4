"""Declarative resource model: kinds, resources, references and stacks."""

from stackwright.model.kinds import DEFAULT_KINDS, KindRegistry, KindSchema, default_registry
from stackwright.model.references import (
    Deferred,
    ImportedValue,
    Join,
    Reference,
    iter_references,
    resolve_value,
    to_symbolic,
)
from stackwright.model.resource import RemovalPolicy, Resource, ResourceHandle, ResourceState
from stackwright.model.stack import Export, Stack, StackStatus

__all__ = [
    "DEFAULT_KINDS",
    "Deferred",
    "Export",
    "ImportedValue",
    "Join",
    "KindRegistry",
    "KindSchema",
    "Reference",
    "RemovalPolicy",
    "Resource",
    "ResourceHandle",
    "ResourceState",
    "Stack",
    "StackStatus",
    "default_registry",
    "iter_references",
    "resolve_value",
    "to_symbolic",
]
