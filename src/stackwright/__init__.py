"""Stackwright: declare a stack of cloud resources, plan it, provision it in dependency order."""

from stackwright.core.errors import (
    BackendError,
    CycleError,
    DuplicateNameError,
    NotReadyError,
    StackwrightError,
    UnknownReferenceError,
    UnresolvedReferenceError,
)
from stackwright.execution import ExecutionEngine, ExecutionResult, RunStatus, StepStatus
from stackwright.graph import DependencyGraph, build
from stackwright.model import Join, Reference, RemovalPolicy, Resource, Stack, StackStatus
from stackwright.outputs import exports
from stackwright.planning import Action, Plan, plan, plan_destroy
from stackwright.provisioner import Provisioner

__version__ = "0.1.0"

__all__ = [
    "Action",
    "BackendError",
    "CycleError",
    "DependencyGraph",
    "DuplicateNameError",
    "ExecutionEngine",
    "ExecutionResult",
    "Join",
    "NotReadyError",
    "Plan",
    "Provisioner",
    "Reference",
    "RemovalPolicy",
    "Resource",
    "RunStatus",
    "Stack",
    "StackStatus",
    "StackwrightError",
    "StepStatus",
    "UnknownReferenceError",
    "UnresolvedReferenceError",
    "build",
    "exports",
    "plan",
    "plan_destroy",
]
