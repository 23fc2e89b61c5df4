"""Execution engine: walks a plan against a provisioning backend.

Each plan step is an independent unit of work that becomes eligible once
every step it requires has completed. Eligible steps run concurrently up to
the configured limit, started in plan order. A failed step takes its whole
dependent subtree with it (reported as skipped) while independent branches
keep going. Cancellation stops new starts immediately and lets in-flight
steps reach a terminal state before the run reports Cancelled.

No retries happen here; wrap the backend in RetryingBackend for that.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable, Dict, Optional, Set

import structlog

from stackwright.backends.base import ProvisioningBackend
from stackwright.core.errors import BackendError, StackwrightError
from stackwright.execution.results import (
    ExecutionRecord,
    ExecutionResult,
    ResultCollector,
    RunStatus,
    StepStatus,
    utcnow,
)
from stackwright.model.references import resolve_value
from stackwright.model.resource import Resource, ResourceState
from stackwright.model.stack import Stack, StackStatus
from stackwright.planning.models import Action, Plan, PlanMode, PlanStep
from stackwright.state.models import StackState

logger = structlog.get_logger()

StepCallback = Callable[[PlanStep, ExecutionRecord], None]


class ExecutionEngine:
    """Runs plan steps against a backend, honouring dependency order."""

    def __init__(
        self,
        backend: ProvisioningBackend,
        *,
        concurrency: int = 4,
        on_step: StepCallback | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._backend = backend
        self._concurrency = concurrency
        self._on_step = on_step

    async def execute(
        self,
        plan: Plan,
        stack: Stack | None = None,
        *,
        previous_state: StackState | None = None,
        cancel_event: asyncio.Event | None = None,
        run_id: str | None = None,
    ) -> ExecutionResult:
        run_id = run_id or uuid.uuid4().hex[:12]
        previous = previous_state or StackState(stack=plan.stack)
        collector = ResultCollector(plan, run_id)
        log = logger.bind(stack=plan.stack, run_id=run_id, mode=plan.mode.value)

        if stack is not None:
            stack.status = StackStatus.DESTROYING if plan.mode is PlanMode.DESTROY else StackStatus.APPLYING

        log.info("run_started", steps=len(plan), concurrency=self._concurrency)
        pending: Dict[str, PlanStep] = {s.key: s for s in plan.steps}
        in_flight: Dict[asyncio.Task, str] = {}
        cancelled = False
        cancel_waiter: Optional[asyncio.Task] = (
            asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
        )

        try:
            while True:
                if cancel_event is not None and cancel_event.is_set() and not cancelled:
                    cancelled = True
                    log.warning("run_cancel_requested", in_flight=len(in_flight), pending=len(pending))

                self._propagate_skips(plan, pending, collector)
                if not cancelled:
                    self._start_ready(plan, pending, in_flight, collector, stack, previous, run_id)

                if not in_flight:
                    break

                waiters: Set[asyncio.Future] = set(in_flight)
                if cancel_waiter is not None and not cancelled:
                    waiters.add(cancel_waiter)
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if task is cancel_waiter:
                        continue
                    key = in_flight.pop(task)
                    # _run_step records every failure itself
                    task.result()
                    self._notify(plan.get(key), collector.records[key])
        finally:
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()

        reason = "run cancelled" if cancelled else "dependency not satisfied"
        for key in list(pending):
            collector.skip(key, reason)
            pending.pop(key)

        result = collector.finalize(cancelled=cancelled)
        if stack is not None:
            stack.status = _final_stack_status(plan.mode, result)
        log.info(
            "run_finished",
            status=result.status.value,
            completed=len(result.completed),
            failed=len(result.failed),
            skipped=len(result.skipped),
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result

    def _propagate_skips(
        self,
        plan: Plan,
        pending: Dict[str, PlanStep],
        collector: ResultCollector,
    ) -> None:
        # plan order guarantees requirements are decided before dependents
        for step in plan.steps:
            if step.key not in pending:
                continue
            blocked = [
                r for r in sorted(step.requires)
                if collector.status_of(r) in (StepStatus.FAILED, StepStatus.SKIPPED)
            ]
            if blocked:
                collector.skip(step.key, "dependency failed: " + ", ".join(blocked))
                pending.pop(step.key)
                logger.warning("step_skipped", stack=plan.stack, step=step.key, blocked_by=blocked)
                self._notify(step, collector.records[step.key])

    def _start_ready(
        self,
        plan: Plan,
        pending: Dict[str, PlanStep],
        in_flight: Dict[asyncio.Task, str],
        collector: ResultCollector,
        stack: Stack | None,
        previous: StackState,
        run_id: str,
    ) -> None:
        for step in plan.steps:
            if len(in_flight) >= self._concurrency:
                return
            if step.key not in pending:
                continue
            if all(collector.status_of(r) is StepStatus.COMPLETED for r in step.requires):
                pending.pop(step.key)
                record = collector.record_for(step)
                record.status = StepStatus.RUNNING
                resource = stack.get(step.name) if stack is not None else None
                task = asyncio.ensure_future(self._run_step(step, record, resource, previous, run_id))
                in_flight[task] = step.key

    async def _run_step(
        self,
        step: PlanStep,
        record: ExecutionRecord,
        resource: Resource | None,
        previous: StackState,
        run_id: str,
    ) -> None:
        log = logger.bind(step=step.key, kind=step.kind, action=step.action.value, run_id=run_id)
        record.started_at = utcnow()
        idempotency_key = f"{run_id}:{step.key}:{step.action.value}"
        # the retired instance of a replaced resource is not the declared one
        target = None if step.is_retirement else resource

        try:
            if step.action is Action.DELETE:
                await self._delete(step, record, target, log, idempotency_key)
            elif step.action is Action.NOOP:
                self._adopt(step, record, resource, previous)
            else:
                await self._apply(step, record, resource, previous, log, idempotency_key)
            record.status = StepStatus.COMPLETED
        except Exception as exc:
            record.status = StepStatus.FAILED
            record.error = _error_payload(exc)
            record.transition(ResourceState.FAILED)
            if target is not None:
                target.state = ResourceState.FAILED
            if isinstance(exc, StackwrightError):
                log.error(
                    "step_failed",
                    error_type=type(exc).__name__,
                    error=exc.message,
                    details=record.error.get("details"),
                )
            else:
                log.exception("step_failed_unexpectedly", error_type=type(exc).__name__)
        finally:
            record.finished_at = utcnow()

    def _adopt(
        self,
        step: PlanStep,
        record: ExecutionRecord,
        resource: Resource | None,
        previous: StackState,
    ) -> None:
        prior = previous.get(step.name)
        record.physical_id = prior.physical_id if prior else None
        record.outputs = dict(prior.outputs) if prior else {}
        record.resolved_config = dict(prior.resolved_config) if prior else {}
        record.transition(ResourceState.CREATED)
        if resource is not None:
            resource.physical_id = record.physical_id
            resource.outputs = dict(record.outputs)
            resource.state = ResourceState.CREATED

    async def _apply(
        self,
        step: PlanStep,
        record: ExecutionRecord,
        resource: Resource | None,
        previous: StackState,
        log: Any,
        idempotency_key: str,
    ) -> None:
        if resource is None:
            raise StackwrightError(
                f"Plan step '{step.key}' has no declared resource",
                {"step": step.key},
            )
        resource.state = ResourceState.CREATING
        record.transition(ResourceState.CREATING)
        config = resolve_value(resource.config)
        record.resolved_config = config
        record.backend_called = True

        if step.action is Action.UPDATE:
            prior = previous.get(step.name)
            if prior is None or not prior.physical_id:
                raise BackendError(
                    f"Cannot update '{step.name}': no recorded physical id",
                    details={"resource": step.name},
                )
            log.info("resource_update_started", physical_id=prior.physical_id, changed=list(step.changed))
            outputs = await self._backend.update_resource(
                prior.physical_id, config, kind=step.kind, idempotency_key=idempotency_key
            )
            record.physical_id = prior.physical_id
            record.outputs = {**prior.outputs, **(outputs or {})}
        else:
            log.info("resource_create_started", replace=step.action is Action.REPLACE)
            created = await self._backend.create_resource(
                step.kind, config, name=step.name, idempotency_key=idempotency_key
            )
            record.physical_id = created.physical_id
            record.outputs = dict(created.outputs)

        resource.physical_id = record.physical_id
        resource.outputs = dict(record.outputs)
        resource.state = ResourceState.CREATED
        record.transition(ResourceState.CREATED)
        log.info("resource_ready", physical_id=record.physical_id)

    async def _delete(
        self,
        step: PlanStep,
        record: ExecutionRecord,
        resource: Resource | None,
        log: Any,
        idempotency_key: str,
    ) -> None:
        record.physical_id = step.physical_id
        record.transition(ResourceState.DESTROYING)
        if resource is not None:
            resource.state = ResourceState.DESTROYING

        if step.retain:
            log.warning("resource_retained", physical_id=step.physical_id, reason=step.reason)
        elif step.physical_id is None:
            log.warning("resource_delete_without_id", reason="never created")
        else:
            log.warning("resource_delete_started", physical_id=step.physical_id, reason=step.reason)
            record.backend_called = True
            await self._backend.delete_resource(
                step.physical_id, kind=step.kind, idempotency_key=idempotency_key
            )

        record.transition(ResourceState.DESTROYED)
        if resource is not None:
            resource.state = ResourceState.DESTROYED
            resource.physical_id = None
            resource.outputs = {}
        log.info("resource_destroyed", physical_id=step.physical_id, retained=step.retain)

    def _notify(self, step: PlanStep | None, record: ExecutionRecord) -> None:
        if self._on_step is not None and step is not None:
            self._on_step(step, record)


def _error_payload(exc: Exception) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, StackwrightError):
        payload["message"] = exc.message
        payload["details"] = {k: v for k, v in exc.details.items() if v is not None}
    if isinstance(exc, BackendError):
        payload["transient"] = exc.transient
    return payload


def _final_stack_status(mode: PlanMode, result: ExecutionResult) -> StackStatus:
    if result.status is RunStatus.CANCELLED:
        return StackStatus.CANCELLED
    if not result.success:
        return StackStatus.FAILED
    return StackStatus.DESTROYED if mode is PlanMode.DESTROY else StackStatus.APPLIED
