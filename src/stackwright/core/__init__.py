"""Core primitives shared across Stackwright."""

from stackwright.core.errors import (
    BackendError,
    BlockedError,
    ConfigurationError,
    CycleError,
    DuplicateNameError,
    ExitCode,
    NotReadyError,
    StackLockedError,
    StackwrightError,
    StalePlanError,
    UnknownKindError,
    UnknownReferenceError,
    UnresolvedReferenceError,
    ValidationError,
)

__all__ = [
    "BackendError",
    "BlockedError",
    "ConfigurationError",
    "CycleError",
    "DuplicateNameError",
    "ExitCode",
    "NotReadyError",
    "StackLockedError",
    "StackwrightError",
    "StalePlanError",
    "UnknownKindError",
    "UnknownReferenceError",
    "UnresolvedReferenceError",
    "ValidationError",
]
