"""
Unified error handling for Stackwright.

Build-time errors (duplicate names, unknown kinds, unknown references,
cycles) are raised before any provisioning side effect. Execution-time
errors (BackendError) are attached to the resource and action that
produced them and never abort independent branches of the graph.

Exit Codes:
- 0: Success
- 1: Warning (advisory, operation succeeded with warnings)
- 2: Blocked (operation blocked, e.g., stack locked by another run)
- 10: Configuration error
- 11: Provider error (provisioning backend failure)
- 12: Validation error
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, Sequence, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    BLOCKED = 2
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class StackwrightError(Exception):
    """Base exception for Stackwright errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(StackwrightError):
    """Raised for stack declaration and configuration errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(StackwrightError):
    """Raised when a value is requested before it is valid to read."""

    exit_code = ExitCode.VALIDATION_ERROR


class BlockedError(StackwrightError):
    """Raised when an operation is blocked."""

    exit_code = ExitCode.BLOCKED


class DuplicateNameError(ConfigurationError):
    """A resource or export name is declared twice in the same stack."""

    def __init__(self, name: str, *, what: str = "resource", stack: str | None = None):
        super().__init__(
            f"{what.capitalize()} '{name}' is already declared"
            + (f" in stack '{stack}'" if stack else ""),
            {"name": name, "stack": stack},
        )
        self.name = name


class UnknownKindError(ConfigurationError):
    """A resource was declared with a kind that has no registered schema."""

    def __init__(self, kind: str, known: Sequence[str] = ()):
        super().__init__(
            f"Unknown resource kind '{kind}'",
            {"kind": kind, "known": ", ".join(known)},
        )
        self.kind = kind


class UnknownReferenceError(ConfigurationError):
    """A reference points to a resource or attribute that does not exist."""

    def __init__(self, source: str, target: str, attribute: str, reason: str):
        super().__init__(
            f"Resource '{source}' references '{target}.{attribute}': {reason}",
            {"source": source, "target": target, "attribute": attribute},
        )
        self.source = source
        self.target = target
        self.attribute = attribute


class CycleError(ConfigurationError):
    """The dependency graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(
            "Dependency cycle detected: " + " -> ".join(self.cycle),
            {"cycle": " -> ".join(self.cycle)},
        )


class UnresolvedReferenceError(ValidationError):
    """A reference was dereferenced before its owning resource was Created."""

    def __init__(self, target: str, attribute: str, state: str):
        super().__init__(
            f"Reference '{target}.{attribute}' is not available (resource is {state})",
            {"target": target, "attribute": attribute, "state": state},
        )
        self.target = target
        self.attribute = attribute


class NotReadyError(ValidationError):
    """Stack outputs were requested before a successful apply."""


class BackendError(StackwrightError):
    """Failure reported by (or while talking to) the provisioning backend."""

    exit_code = ExitCode.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        *,
        transient: bool = False,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.transient = transient


class StalePlanError(ValidationError):
    """A saved plan was computed against an older state than the current one."""

    def __init__(self, stack: str, planned_serial: int, current_serial: int):
        super().__init__(
            f"Plan for stack '{stack}' is stale (planned at serial {planned_serial}, state is at {current_serial})",
            {"stack": stack, "planned_serial": planned_serial, "current_serial": current_serial},
        )


class StackLockedError(BlockedError):
    """Another run holds the lock for this stack."""

    def __init__(self, stack: str, holder: dict[str, Any] | None = None):
        holder = holder or {}
        run_id = holder.get("run_id", "unknown")
        super().__init__(
            f"Stack '{stack}' is locked by run {run_id}",
            {"stack": stack, **{f"holder_{k}": v for k, v in holder.items()}},
        )
        self.stack = stack
        self.holder = holder


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI command functions that provides unified error handling.

    Exit codes:
        - StackwrightError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except StackwrightError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                from stackwright.cli.ux import error as print_error

                print_error(format_error_message(e))
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: StackwrightError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items() if v is not None)
        if detail_str:
            msg = f"{msg} ({detail_str})"
    return msg
