"""Dependency graph construction.

Every reference in a resource's configuration becomes an edge from the
referencing resource to the referenced one, alongside explicit
``depends_on`` hints. Broken wiring (unknown resources, unknown output
attributes, cycles) is rejected here, before any provisioning starts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Sequence, Tuple

import structlog

from stackwright.core.errors import CycleError, DuplicateNameError, UnknownReferenceError
from stackwright.model.kinds import KindRegistry, default_registry
from stackwright.model.references import iter_imports, iter_references
from stackwright.model.resource import Resource
from stackwright.model.stack import Stack

logger = structlog.get_logger()


@dataclass(frozen=True)
class Edge:
    """``source`` depends on ``target`` (through ``attribute`` when set)."""

    source: str
    target: str
    attribute: str | None = None


@dataclass(frozen=True)
class DependencyGraph:
    """Immutable DAG of resources keyed by name, in declaration order."""

    resources: Tuple[Resource, ...]
    dependencies: Mapping[str, FrozenSet[str]]
    dependents: Mapping[str, FrozenSet[str]]
    edges: Tuple[Edge, ...] = field(default_factory=tuple)

    def __contains__(self, name: object) -> bool:
        return name in self.dependencies

    def __len__(self) -> int:
        return len(self.resources)

    @property
    def names(self) -> List[str]:
        return [r.name for r in self.resources]

    def resource(self, name: str) -> Resource:
        for r in self.resources:
            if r.name == name:
                return r
        raise KeyError(name)

    def dependencies_of(self, name: str) -> FrozenSet[str]:
        return self.dependencies[name]

    def dependents_of(self, name: str) -> FrozenSet[str]:
        return self.dependents[name]

    def transitive_dependents(self, name: str) -> FrozenSet[str]:
        seen: set[str] = set()
        stack = list(self.dependents[name])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.dependents[current])
        return frozenset(seen)


def build(resources: Stack | Iterable[Resource], kinds: KindRegistry | None = None) -> DependencyGraph:
    """Assemble resources and their references into a validated DAG.

    Raises:
        DuplicateNameError: two resources share a name.
        UnknownReferenceError: a reference targets a missing resource or an
            attribute its kind does not produce.
        CycleError: the edges form a cycle; ``error.cycle`` lists it.
    """
    if isinstance(resources, Stack):
        kinds = kinds or resources.kinds
        resource_list = resources.resources
    else:
        resource_list = list(resources)
    kinds = kinds or default_registry()

    by_name: Dict[str, Resource] = {}
    for r in resource_list:
        if r.name in by_name:
            raise DuplicateNameError(r.name)
        by_name[r.name] = r

    edges: List[Edge] = []
    deps: Dict[str, List[str]] = {r.name: [] for r in resource_list}

    def add_edge(edge: Edge) -> None:
        edges.append(edge)
        if edge.target not in deps[edge.source]:
            deps[edge.source].append(edge.target)

    for r in resource_list:
        for ref in iter_references(r.config):
            target = by_name.get(ref.target)
            if target is None:
                raise UnknownReferenceError(r.name, ref.target, ref.attribute, "no such resource")
            owner = ref.bound()
            if owner is None and ref.scope is None:
                raise UnknownReferenceError(
                    r.name,
                    ref.target,
                    ref.attribute,
                    "reference is not bound; create it from a resource handle or Stack.reference()",
                )
            if owner is not target:
                raise UnknownReferenceError(
                    r.name,
                    ref.target,
                    ref.attribute,
                    "resource belongs to another stack; consume it through an export",
                )
            if not kinds.get(target.kind).has_output(ref.attribute):
                raise UnknownReferenceError(
                    r.name,
                    ref.target,
                    ref.attribute,
                    f"kind '{target.kind}' has no output '{ref.attribute}'",
                )
            if ref.target == r.name:
                raise CycleError([r.name, r.name])
            add_edge(Edge(source=r.name, target=ref.target, attribute=ref.attribute))

        for imported in iter_imports(r.config):
            if imported.export not in {e.name for e in imported.source.exports}:
                raise UnknownReferenceError(
                    r.name,
                    imported.source_name,
                    imported.export,
                    "stack has no such export",
                )

        for hint in r.depends_on:
            if hint not in by_name:
                raise UnknownReferenceError(r.name, hint, "*", "depends_on names no such resource")
            if hint == r.name:
                raise CycleError([r.name, r.name])
            add_edge(Edge(source=r.name, target=hint))

    cycle = find_cycle([r.name for r in resource_list], deps)
    if cycle:
        logger.error("dependency_cycle_detected", cycle=cycle)
        raise CycleError(cycle)

    dependents: Dict[str, List[str]] = {name: [] for name in deps}
    for source, targets in deps.items():
        for target in targets:
            dependents[target].append(source)

    graph = DependencyGraph(
        resources=tuple(resource_list),
        dependencies=MappingProxyType({k: frozenset(v) for k, v in deps.items()}),
        dependents=MappingProxyType({k: frozenset(v) for k, v in dependents.items()}),
        edges=tuple(edges),
    )
    logger.debug("dependency_graph_built", resources=len(resource_list), edges=len(edges))
    return graph


def find_cycle(order: Sequence[str], deps: Mapping[str, Sequence[str]]) -> List[str]:
    """Depth-first search with an explicit recursion stack.

    Returns the first cycle found as ``[a, b, ..., a]`` (each element
    depends on the next), or an empty list when the graph is acyclic.
    Iterative so deep graphs do not hit the interpreter recursion limit.
    """
    WHITE, GREY, BLACK = 0, 1, 2
    color: Dict[str, int] = {name: WHITE for name in order}

    for root in order:
        if color[root] != WHITE:
            continue
        path: List[str] = [root]
        iterators = [iter(deps.get(root, ()))]
        color[root] = GREY
        while path:
            advanced = False
            for nxt in iterators[-1]:
                if color.get(nxt, BLACK) == GREY:
                    start = path.index(nxt)
                    return path[start:] + [nxt]
                if color.get(nxt) == WHITE:
                    color[nxt] = GREY
                    path.append(nxt)
                    iterators.append(iter(deps.get(nxt, ())))
                    advanced = True
                    break
            if not advanced:
                color[path.pop()] = BLACK
                iterators.pop()
    return []
