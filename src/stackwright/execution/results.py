"""Result types for execution runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Tuple

from stackwright.model.resource import ResourceState
from stackwright.planning.models import Action, Plan, PlanMode, PlanStep


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(Enum):
    """Final disposition of a plan step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ExecutionRecord:
    """Per-step outcome: state transitions, timing and error if any."""

    key: str
    name: str
    kind: str
    action: Action
    status: StepStatus = StepStatus.PENDING
    transitions: List[Tuple[ResourceState, datetime]] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    physical_id: str | None = None
    outputs: Dict[str, Any] = field(default_factory=dict)
    resolved_config: Dict[str, Any] = field(default_factory=dict)
    error: Dict[str, Any] | None = None
    skipped_reason: str | None = None
    backend_called: bool = False

    def transition(self, state: ResourceState) -> None:
        self.transitions.append((state, utcnow()))

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "kind": self.kind,
            "action": self.action.value,
            "status": self.status.value,
            "transitions": [(s.value, ts.isoformat()) for s, ts in self.transitions],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "physical_id": self.physical_id,
            "error": self.error,
            "skipped_reason": self.skipped_reason,
        }


@dataclass
class ExecutionResult:
    """Outcome of walking a plan: every step's final disposition."""

    stack: str
    run_id: str
    mode: PlanMode
    status: RunStatus
    records: Dict[str, ExecutionRecord]
    order: List[str]
    started_at: datetime
    finished_at: datetime

    @property
    def success(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def _keys(self, status: StepStatus) -> List[str]:
        return [k for k in self.order if self.records[k].status is status]

    @property
    def completed(self) -> List[str]:
        return self._keys(StepStatus.COMPLETED)

    @property
    def failed(self) -> List[str]:
        return self._keys(StepStatus.FAILED)

    @property
    def skipped(self) -> List[str]:
        return self._keys(StepStatus.SKIPPED)

    @property
    def backend_calls(self) -> int:
        return sum(1 for r in self.records.values() if r.backend_called)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stack": self.stack,
            "run_id": self.run_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration_seconds": round(self.duration_seconds, 3),
            "records": [self.records[k].to_dict() for k in self.order],
        }


class ResultCollector:
    """Aggregates step records while a plan executes."""

    def __init__(self, plan: Plan, run_id: str) -> None:
        self._plan = plan
        self._run_id = run_id
        self._started = utcnow()
        self.records: Dict[str, ExecutionRecord] = {
            step.key: ExecutionRecord(key=step.key, name=step.name, kind=step.kind, action=step.action)
            for step in plan.steps
        }

    def record_for(self, step: PlanStep) -> ExecutionRecord:
        return self.records[step.key]

    def status_of(self, key: str) -> StepStatus:
        record = self.records.get(key)
        # requirements outside the plan are treated as already satisfied
        return record.status if record else StepStatus.COMPLETED

    def skip(self, key: str, reason: str) -> None:
        record = self.records[key]
        record.status = StepStatus.SKIPPED
        record.skipped_reason = reason

    def finalize(self, *, cancelled: bool) -> ExecutionResult:
        statuses = [r.status for r in self.records.values()]
        if cancelled:
            status = RunStatus.CANCELLED
        elif any(s is not StepStatus.COMPLETED for s in statuses):
            status = RunStatus.FAILED
        else:
            status = RunStatus.SUCCEEDED
        return ExecutionResult(
            stack=self._plan.stack,
            run_id=self._run_id,
            mode=self._plan.mode,
            status=status,
            records=self.records,
            order=self._plan.order,
            started_at=self._started,
            finished_at=utcnow(),
        )
