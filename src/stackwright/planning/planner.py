"""Plan engine.

Derives a deterministic apply order from the dependency graph and diffs
each declared resource against its last-applied record.

Ordering rules:
    - Kahn's algorithm in waves: everything ready at once is emitted in
      declaration order before anything it unblocks, so the same
      declaration always yields the same plan
    - a replaced resource's previous instance is retired only after the
      replacement exists and every resource that references it, now or in
      the last apply, has been repointed or deleted
    - instances whose retirement failed in an earlier run are retired again
    - resources removed from the declaration are deleted last, in the
      exact reverse of the last successful apply order
    - destroy plans are the exact reverse of the recorded apply order
"""

from __future__ import annotations

import heapq
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Set, Tuple

import structlog

from stackwright.graph.builder import DependencyGraph
from stackwright.model.kinds import KindRegistry, default_registry
from stackwright.model.references import to_symbolic
from stackwright.model.resource import RemovalPolicy, Resource
from stackwright.planning.models import ORPHAN_MARK, RETIRE_SUFFIX, Action, Plan, PlanMode, PlanStep
from stackwright.state.models import ResourceRecord, StackState

logger = structlog.get_logger()

_MISSING = object()


def topological_order(graph: DependencyGraph) -> List[Resource]:
    """Dependency-first order built in waves.

    Every resource whose dependencies are all placed joins the current wave;
    each wave is emitted in declaration order before the next one starts.
    """
    position = {r.name: i for i, r in enumerate(graph.resources)}
    remaining = {name: len(graph.dependencies_of(name)) for name in position}
    wave = [n for n, c in remaining.items() if c == 0]

    order: List[Resource] = []
    while wave:
        upcoming: List[str] = []
        for name in sorted(wave, key=position.__getitem__):
            order.append(graph.resources[position[name]])
            for child in graph.dependents_of(name):
                remaining[child] -= 1
                if remaining[child] == 0:
                    upcoming.append(child)
        wave = upcoming

    if len(order) != len(position):
        # build() rejects cycles; a hand-made graph can still carry one
        raise ValueError("Dependency graph is not acyclic")
    return order


def diff_config(old: Mapping[str, Any], new: Mapping[str, Any]) -> Tuple[str, ...]:
    """Top-level configuration attributes whose symbolic values differ."""
    keys = list(new.keys()) + [k for k in old.keys() if k not in new]
    return tuple(k for k in keys if old.get(k, _MISSING) != new.get(k, _MISSING))


def plan(
    graph: DependencyGraph,
    previous_state: StackState | None = None,
    *,
    stack: str | None = None,
    kinds: KindRegistry | None = None,
) -> Plan:
    """Compute the ordered, diffed actions for an apply run."""
    kinds = kinds or default_registry()
    stack_name = stack or (previous_state.stack if previous_state else _stack_name(graph))
    previous = previous_state if previous_state is not None else StackState(stack=stack_name)

    ordered = topological_order(graph)
    orphaned = {o["name"] for o in previous.orphaned}
    actions: Dict[str, Action] = {}
    steps: List[PlanStep] = []

    for resource in ordered:
        record = previous.get(resource.name)
        action, changed, reason = _decide(resource, record, kinds)
        if action is Action.NOOP:
            stale = sorted(
                d for d in graph.dependencies_of(resource.name)
                if actions.get(d) is Action.REPLACE or d in orphaned
            )
            if stale:
                action = Action.UPDATE
                reason = "repoint to replaced " + ", ".join(stale)
        actions[resource.name] = action
        steps.append(
            PlanStep(
                key=resource.name,
                name=resource.name,
                kind=resource.kind,
                action=action,
                requires=frozenset(graph.dependencies_of(resource.name)),
                changed=changed,
                physical_id=record.physical_id if record else None,
                reason=reason,
            )
        )

    referrers = _recorded_dependents(previous)
    replaced = {name for name, action in actions.items() if action is Action.REPLACE}
    steps = _insert_retirements(steps, graph, previous, referrers)
    steps.extend(_removal_steps(graph, previous, replaced))
    steps.extend(_orphan_steps(previous, referrers, graph, {s.key for s in steps}))
    steps = _settle(steps)

    result = Plan(
        stack=stack_name,
        steps=tuple(steps),
        mode=PlanMode.APPLY,
        state_serial=previous.serial,
        warnings=_retain_warnings(steps),
    )
    logger.info("plan_computed", stack=stack_name, **result.summary())
    return result


def plan_destroy(previous_state: StackState) -> Plan:
    """Delete every recorded resource in reverse of the last apply order.

    Instances left behind by failed retirements are deleted as well, once
    everything that recorded a dependency on them is gone.
    """
    records = list(previous_state.resources.values())
    steps = _deletion_steps(records, previous_state.apply_order, extra_requires={})
    steps.extend(
        _orphan_steps(previous_state, _recorded_dependents(previous_state), None, {s.key for s in steps})
    )
    result = Plan(
        stack=previous_state.stack,
        steps=tuple(steps),
        mode=PlanMode.DESTROY,
        state_serial=previous_state.serial,
        warnings=_retain_warnings(steps),
    )
    logger.info("destroy_plan_computed", stack=previous_state.stack, **result.summary())
    return result


def _retain_warnings(steps: Sequence[PlanStep]) -> Tuple[str, ...]:
    return tuple(
        f"{s.name}: removal policy is retain, the existing object is left in place"
        for s in steps
        if s.action is Action.DELETE and s.retain
    )


def _stack_name(graph: DependencyGraph) -> str:
    for r in graph.resources:
        if r.stack_name:
            return r.stack_name
    return "default"


def _decide(
    resource: Resource,
    record: ResourceRecord | None,
    kinds: KindRegistry,
) -> Tuple[Action, Tuple[str, ...], str | None]:
    if record is None:
        return Action.CREATE, (), None
    if record.kind != resource.kind:
        return Action.REPLACE, ("kind",), f"kind changed from {record.kind}"

    changed = diff_config(record.config, to_symbolic(resource.config))
    if not changed:
        return Action.NOOP, (), None

    immutable = kinds.get(resource.kind).immutable | resource.replace_on
    forcing = [c for c in changed if c in immutable]
    if forcing:
        return Action.REPLACE, changed, "immutable attribute changed: " + ", ".join(forcing)
    return Action.UPDATE, changed, None


def _recorded_dependents(previous: StackState) -> Dict[str, Set[str]]:
    """Resources whose last-applied record depends on each name."""
    referrers: Dict[str, Set[str]] = {}
    for name, rec in previous.resources.items():
        for dep in rec.depends_on:
            referrers.setdefault(dep, set()).add(name)
    return referrers


def _insert_retirements(
    steps: List[PlanStep],
    graph: DependencyGraph,
    previous: StackState,
    referrers: Mapping[str, Set[str]],
) -> List[PlanStep]:
    """Add a delete of the old instance after each Replace.

    The old instance goes only once the replacement exists and everything
    that referenced it, now or in the last apply, has been repointed or
    deleted.
    """
    result = list(steps)
    for step in steps:
        if step.action is not Action.REPLACE:
            continue
        record = previous.get(step.name)
        holders = set(graph.dependents_of(step.name)) | referrers.get(step.name, set())
        retire = PlanStep(
            key=step.name + RETIRE_SUFFIX,
            name=step.name,
            kind=record.kind if record else step.kind,
            action=Action.DELETE,
            requires=frozenset({step.key, *holders}),
            physical_id=record.physical_id if record else None,
            retain=bool(record and record.removal_policy == RemovalPolicy.RETAIN.value),
            reason="retire replaced instance",
        )
        # removed holders are placed later by _settle
        keys = [s.key for s in result]
        after = max(keys.index(k) for k in retire.requires if k in keys)
        result.insert(after + 1, retire)
    return result


def _removal_steps(graph: DependencyGraph, previous: StackState, replaced: Set[str]) -> List[PlanStep]:
    removed = [rec for name, rec in previous.resources.items() if name not in graph]
    if not removed:
        return []
    removed_names = {r.name for r in removed}

    # a surviving resource that used to depend on a removed one must be
    # repointed, and its replaced instance retired, before the removed
    # resource goes away
    extra: Dict[str, Set[str]] = {}
    for name, rec in previous.resources.items():
        if name in removed_names:
            continue
        for dep in rec.depends_on:
            if dep in removed_names:
                extra.setdefault(dep, set()).add(name)
                if name in replaced:
                    extra[dep].add(name + RETIRE_SUFFIX)
    return _deletion_steps(removed, previous.apply_order, extra_requires=extra)


def _orphan_steps(
    previous: StackState,
    referrers: Mapping[str, Set[str]],
    graph: DependencyGraph | None,
    keys: Set[str],
) -> List[PlanStep]:
    """Deletes for instances whose retirement failed in an earlier run."""
    steps: List[PlanStep] = []
    for entry in previous.orphaned:
        name = entry["name"]
        holders = {name} | referrers.get(name, set())
        if graph is not None and name in graph:
            holders |= graph.dependents_of(name)
        steps.append(
            PlanStep(
                key=f"{name}{ORPHAN_MARK}{entry['physical_id']}",
                name=name,
                kind=entry["kind"],
                action=Action.DELETE,
                requires=frozenset(h for h in holders if h in keys),
                physical_id=entry["physical_id"],
                retain=entry.get("removal_policy") == RemovalPolicy.RETAIN.value,
                reason="retire instance left by an earlier run",
            )
        )
    return steps


def _settle(steps: Sequence[PlanStep]) -> List[PlanStep]:
    """Stable reorder so every step follows the steps it requires."""
    placed: Set[str] = set()
    pending = list(steps)
    ordered: List[PlanStep] = []
    while pending:
        for i, step in enumerate(pending):
            if step.requires <= placed:
                break
        else:
            raise ValueError("Plan steps require each other cyclically")
        chosen = pending.pop(i)
        ordered.append(chosen)
        placed.add(chosen.key)
    return ordered


def _deletion_steps(
    records: Sequence[ResourceRecord],
    apply_order: Sequence[str],
    *,
    extra_requires: Mapping[str, Iterable[str]],
) -> List[PlanStep]:
    """Reverse of the apply order restricted to ``records``.

    Kahn's algorithm prioritised by position in the recorded apply order
    reproduces that order exactly whenever it is a valid topological order,
    so reversing it yields the exact mirror of the apply.
    """
    by_name = {r.name: r for r in records}
    rank = {name: i for i, name in enumerate(apply_order)}
    fallback = len(rank)

    deps = {r.name: [d for d in r.depends_on if d in by_name] for r in records}
    dependents: Dict[str, List[str]] = {name: [] for name in by_name}
    for name, dlist in deps.items():
        for d in dlist:
            dependents[d].append(name)

    remaining = {name: len(dlist) for name, dlist in deps.items()}
    ready = [(rank.get(n, fallback), n) for n, c in remaining.items() if c == 0]
    heapq.heapify(ready)
    forward: List[str] = []
    while ready:
        _, name = heapq.heappop(ready)
        forward.append(name)
        for child in dependents[name]:
            remaining[child] -= 1
            if remaining[child] == 0:
                heapq.heappush(ready, (rank.get(child, fallback), child))
    if len(forward) != len(by_name):
        raise ValueError("Recorded dependencies in state are cyclic")

    steps: List[PlanStep] = []
    for name in reversed(forward):
        rec = by_name[name]
        steps.append(
            PlanStep(
                key=name,
                name=name,
                kind=rec.kind,
                action=Action.DELETE,
                requires=frozenset(dependents[name]) | frozenset(extra_requires.get(name, ())),
                physical_id=rec.physical_id,
                retain=rec.removal_policy == RemovalPolicy.RETAIN.value,
            )
        )
    return steps
