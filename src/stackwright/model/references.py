"""Deferred values embedded in resource configuration.

A :class:`Reference` stands for an output attribute of another resource that
only exists once that resource is Created. Graph construction scans every
configuration value for references and turns each one into a dependency
edge; execution replaces them with concrete values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, Tuple

from stackwright.core.errors import UnresolvedReferenceError
from stackwright.model.resource import Resource, ResourceState

if TYPE_CHECKING:
    from stackwright.model.stack import Stack

REF_KEY = "$ref"
JOIN_KEY = "$join"
IMPORT_KEY = "$import"


class Deferred:
    """Base class for configuration values that resolve during execution."""

    def resolve(self) -> Any:
        raise NotImplementedError

    def symbolic(self) -> Any:
        raise NotImplementedError

    def references(self) -> Iterator["Reference"]:
        return iter(())


@dataclass(frozen=True)
class Reference(Deferred):
    """Output attribute ``attribute`` of resource ``target``."""

    target: str
    attribute: str
    owner: Resource | None = field(default=None, compare=False, repr=False)
    # stack the target is looked up in when no handle was available
    scope: "Stack | None" = field(default=None, compare=False, repr=False)

    def bound(self) -> Resource | None:
        """The declared resource this reference reads from, if any."""
        if self.owner is not None:
            return self.owner
        if self.scope is not None:
            return self.scope.get(self.target)
        return None

    def resolve(self) -> Any:
        owner = self.bound()
        if owner is None:
            raise UnresolvedReferenceError(self.target, self.attribute, "undeclared")
        if owner.state is not ResourceState.CREATED:
            raise UnresolvedReferenceError(self.target, self.attribute, owner.state.value)
        if self.attribute not in owner.outputs:
            raise UnresolvedReferenceError(self.target, self.attribute, "missing output")
        return owner.outputs[self.attribute]

    def symbolic(self) -> Any:
        return {REF_KEY: f"{self.target}.{self.attribute}"}

    def references(self) -> Iterator["Reference"]:
        yield self

    def __str__(self) -> str:
        return "${" + f"{self.target}.{self.attribute}" + "}"


@dataclass(frozen=True)
class Join(Deferred):
    """String built from literals and references, e.g. ``arn + "/*"``."""

    parts: Tuple[Any, ...]
    separator: str = ""

    def __init__(self, *parts: Any, separator: str = "") -> None:
        object.__setattr__(self, "parts", tuple(parts))
        object.__setattr__(self, "separator", separator)

    def resolve(self) -> Any:
        return self.separator.join(str(resolve_value(p)) for p in self.parts)

    def symbolic(self) -> Any:
        return {JOIN_KEY: [to_symbolic(p) for p in self.parts], "separator": self.separator}

    def references(self) -> Iterator["Reference"]:
        for part in self.parts:
            yield from iter_references(part)


@dataclass(frozen=True)
class ImportedValue(Deferred):
    """Export of another stack, consumed through its export contract."""

    source: "Stack" = field(compare=False, repr=False)
    export: str
    source_name: str = ""

    def __init__(self, source: "Stack", export: str) -> None:
        object.__setattr__(self, "source", source)
        object.__setattr__(self, "export", export)
        object.__setattr__(self, "source_name", source.name)

    def resolve(self) -> Any:
        from stackwright.outputs.exporter import exports

        return exports(self.source)[self.export]

    def symbolic(self) -> Any:
        return {IMPORT_KEY: f"{self.source_name}.{self.export}"}


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference nested anywhere inside ``value``."""
    if isinstance(value, Deferred):
        yield from value.references()
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            yield from iter_references(item)


def iter_imports(value: Any) -> Iterator[ImportedValue]:
    if isinstance(value, ImportedValue):
        yield value
    elif isinstance(value, Join):
        for part in value.parts:
            yield from iter_imports(part)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_imports(item)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            yield from iter_imports(item)


def to_symbolic(value: Any) -> Any:
    """JSON-compatible form of a configuration value, references kept symbolic."""
    if isinstance(value, Deferred):
        return value.symbolic()
    if isinstance(value, dict):
        return {str(k): to_symbolic(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_symbolic(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((to_symbolic(v) for v in value), key=repr)
    return value


def resolve_value(value: Any) -> Any:
    """Replace every deferred value with its concrete value."""
    if isinstance(value, Deferred):
        return value.resolve()
    if isinstance(value, dict):
        return {k: resolve_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v) for v in value]
    if isinstance(value, tuple):
        return tuple(resolve_value(v) for v in value)
    if isinstance(value, (set, frozenset)):
        # resolved members may be unhashable; same ordering as to_symbolic
        return sorted((resolve_value(v) for v in value), key=repr)
    return value
