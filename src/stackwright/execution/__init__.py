"""Execution engine and run results."""

from stackwright.execution.engine import ExecutionEngine
from stackwright.execution.results import (
    ExecutionRecord,
    ExecutionResult,
    ResultCollector,
    RunStatus,
    StepStatus,
)

__all__ = [
    "ExecutionEngine",
    "ExecutionRecord",
    "ExecutionResult",
    "ResultCollector",
    "RunStatus",
    "StepStatus",
]
