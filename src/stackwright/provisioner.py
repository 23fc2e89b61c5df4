"""Provisioner: plan, apply, destroy and read outputs for one stack.

Ties the pieces together: builds the graph, reads state, holds the run
lock for the duration of a run, executes the plan and records what was
applied.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from typing import Any, Dict

import structlog

from stackwright.backends.base import ProvisioningBackend
from stackwright.backends.registry import create_backend
from stackwright.backends.retrying import RetryingBackend
from stackwright.config import Settings
from stackwright.core.errors import StalePlanError
from stackwright.execution.engine import ExecutionEngine, StepCallback
from stackwright.execution.results import ExecutionResult
from stackwright.graph.builder import DependencyGraph, build
from stackwright.logging import run_context
from stackwright.model.references import to_symbolic
from stackwright.model.resource import ResourceState
from stackwright.model.stack import Stack, StackStatus
from stackwright.outputs.exporter import exports
from stackwright.planning.models import Action, Plan, PlanMode, PlanStep
from stackwright.planning.planner import plan as compute_plan
from stackwright.planning.planner import plan_destroy
from stackwright.state.models import ResourceRecord, StackState
from stackwright.state.store import FileStateStore, StateStore

logger = structlog.get_logger()


class Provisioner:
    """Facade over graph, planner, execution engine and state store."""

    def __init__(
        self,
        stack: Stack,
        backend: ProvisioningBackend,
        store: StateStore,
        *,
        concurrency: int = 4,
        on_step: StepCallback | None = None,
    ) -> None:
        self.stack = stack
        self.backend = backend
        self.store = store
        self.engine = ExecutionEngine(backend, concurrency=concurrency, on_step=on_step)

    @classmethod
    def from_settings(
        cls,
        stack: Stack,
        settings: Settings,
        *,
        on_step: StepCallback | None = None,
    ) -> "Provisioner":
        return cls(
            stack,
            backend_from_settings(settings, stack),
            FileStateStore(settings.state_dir),
            concurrency=settings.concurrency,
            on_step=on_step,
        )

    def graph(self) -> DependencyGraph:
        return build(self.stack)

    def state(self) -> StackState:
        return self.store.read(self.stack.name)

    def plan(self) -> Plan:
        """Diff the declaration against the last-applied state."""
        graph = self.graph()
        return compute_plan(graph, self.state(), stack=self.stack.name, kinds=self.stack.kinds)

    async def apply(
        self,
        plan: Plan | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> ExecutionResult:
        run_id = _new_run_id()
        with run_context(self.stack.name, run_id, "apply") as log, self.store.lock(
            self.stack.name, run_id, "apply"
        ):
            # config errors surface here, before any backend call
            graph = self.graph()
            previous = self.state()
            if plan is None:
                plan = compute_plan(graph, previous, stack=self.stack.name, kinds=self.stack.kinds)
            elif plan.state_serial != previous.serial:
                raise StalePlanError(self.stack.name, plan.state_serial, previous.serial)
            log.info("apply_started", **plan.summary())

            result = await self.engine.execute(
                plan,
                self.stack,
                previous_state=previous,
                cancel_event=cancel_event,
                run_id=run_id,
            )
            self._save(previous, _after_apply(previous, plan, result, self.stack, graph))
        return result

    async def destroy(self, *, cancel_event: asyncio.Event | None = None) -> ExecutionResult:
        run_id = _new_run_id()
        with run_context(self.stack.name, run_id, "destroy") as log, self.store.lock(
            self.stack.name, run_id, "destroy"
        ):
            previous = self.state()
            plan = plan_destroy(previous)
            log.warning("stack_destroy_started", resources=len(plan))
            result = await self.engine.execute(
                plan,
                self.stack,
                previous_state=previous,
                cancel_event=cancel_event,
                run_id=run_id,
            )
            self._save(previous, _after_destroy(previous, plan, result))
        return result

    def refresh(self) -> Plan:
        """Load recorded outputs into the declared resources.

        The stack counts as Applied only when the declaration matches the
        recorded state exactly (an all-NoOp plan).
        """
        previous = self.state()
        plan = compute_plan(self.graph(), previous, stack=self.stack.name, kinds=self.stack.kinds)
        if plan.has_changes or previous.is_empty:
            return plan
        for resource in self.stack:
            record = previous.get(resource.name)
            if record is None:
                continue
            resource.physical_id = record.physical_id
            resource.outputs = dict(record.outputs)
            resource.state = ResourceState.CREATED
        self.stack.status = StackStatus.APPLIED
        return plan

    def outputs(self) -> Dict[str, Any]:
        return exports(self.stack)

    def _save(self, previous: StackState, updated: StackState) -> None:
        if _comparable(previous) == _comparable(updated):
            logger.debug("state_unchanged", stack=self.stack.name)
            return
        self.store.write(updated)


def backend_from_settings(settings: Settings, stack: Stack | None = None) -> ProvisioningBackend:
    """Instantiate the configured backend; the in-memory one gets a retry wrapper."""
    if settings.backend == "http":
        return create_backend(
            "http",
            base_url=settings.backend_url,
            token=settings.backend_token,
            timeout=settings.backend_timeout,
            max_retries=settings.max_retries,
            backoff_factor=settings.retry_backoff,
        )
    inner = create_backend("memory", kinds=stack.kinds if stack else None)
    return RetryingBackend(inner, max_attempts=settings.max_retries, backoff=settings.retry_backoff)


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def _comparable(state: StackState) -> Dict[str, Any]:
    data = state.to_dict()
    data.pop("serial", None)
    return data


def _after_apply(
    previous: StackState,
    plan: Plan,
    result: ExecutionResult,
    stack: Stack,
    graph: DependencyGraph,
) -> StackState:
    """Merge every completed step into the previous state."""
    state = copy.deepcopy(previous)
    completed = set(result.completed)

    for step in plan.steps:
        record = result.records[step.key]
        if step.is_orphan_cleanup:
            if step.key in completed:
                _forget_orphan(state, step.physical_id)
            continue
        if step.is_retirement:
            if step.key not in completed and step.name in completed and step.physical_id:
                logger.warning(
                    "replaced_instance_not_retired",
                    stack=stack.name,
                    resource=step.name,
                    physical_id=step.physical_id,
                )
                _remember_orphan(state, step, previous.get(step.name))
            continue
        if step.key not in completed:
            continue
        if step.action is Action.DELETE:
            state.resources.pop(step.name, None)
            continue
        resource = stack[step.name]
        state.resources[step.name] = ResourceRecord(
            name=step.name,
            kind=resource.kind,
            physical_id=record.physical_id,
            config=to_symbolic(resource.config),
            resolved_config=record.resolved_config,
            outputs=dict(record.outputs),
            removal_policy=resource.removal_policy.value,
            depends_on=sorted(graph.dependencies_of(step.name)),
        )

    applied = [s.name for s in plan.steps if s.action is not Action.DELETE]
    if result.success:
        state.apply_order = applied
    else:
        kept = [n for n in previous.apply_order if n in state.resources]
        state.apply_order = kept + [n for n in applied if n in state.resources and n not in kept]
    return state


def _after_destroy(previous: StackState, plan: Plan, result: ExecutionResult) -> StackState:
    state = copy.deepcopy(previous)
    for key in result.completed:
        step = plan.get(key)
        if step is None or step.action is not Action.DELETE or plan.mode is not PlanMode.DESTROY:
            continue
        if step.is_orphan_cleanup:
            _forget_orphan(state, step.physical_id)
        else:
            state.resources.pop(step.name, None)
    state.apply_order = [n for n in previous.apply_order if n in state.resources]
    return state


def _remember_orphan(state: StackState, step: PlanStep, record: ResourceRecord | None) -> None:
    if any(o.get("physical_id") == step.physical_id for o in state.orphaned):
        return
    state.orphaned.append(
        {
            "name": step.name,
            "kind": step.kind,
            "physical_id": step.physical_id,
            "removal_policy": record.removal_policy if record else "destroy",
        }
    )


def _forget_orphan(state: StackState, physical_id: str | None) -> None:
    state.orphaned = [o for o in state.orphaned if o.get("physical_id") != physical_id]
