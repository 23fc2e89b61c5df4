"""
CLI commands for applying and destroying a stack.
"""

from __future__ import annotations

import asyncio
import json
import signal

from stackwright.cli.common import make_provisioner, resolve_settings
from stackwright.cli.plan import print_plan_summary
from stackwright.cli.ux import confirm, console, error, info, success, warning
from stackwright.core.errors import ExitCode, main_with_error_handling
from stackwright.execution.results import ExecutionRecord, ExecutionResult, RunStatus, StepStatus
from stackwright.planning.models import PlanStep
from stackwright.provisioner import Provisioner


def _print_step(step: PlanStep, record: ExecutionRecord) -> None:
    if record.status is StepStatus.COMPLETED:
        console.print(f"  [success]✓[/success] {step.key} [muted]{step.action.value}[/muted]")
    elif record.status is StepStatus.FAILED:
        message = (record.error or {}).get("message", "failed")
        console.print(f"  [error]✗ {step.key}[/error] {message}")
    elif record.status is StepStatus.SKIPPED:
        console.print(f"  [warning]- {step.key}[/warning] [muted]{record.skipped_reason}[/muted]")


def print_result_summary(result: ExecutionResult) -> None:
    console.print()
    duration = f" in {result.duration_seconds:.1f}s"
    if result.success:
        success(f"{result.mode.value.capitalize()} complete: {len(result.completed)} steps{duration}")
        return
    warning(
        f"{result.mode.value.capitalize()} {result.status.value}: "
        f"{len(result.completed)} completed, {len(result.failed)} failed, "
        f"{len(result.skipped)} skipped{duration}"
    )
    for key in result.failed:
        err = result.records[key].error or {}
        error(f"{key}: {err.get('message', 'failed')}")


def _run(provisioner: Provisioner, destroy: bool) -> ExecutionResult:
    async def runner() -> ExecutionResult:
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, cancel.set)
        except (NotImplementedError, RuntimeError):
            pass
        if destroy:
            return await provisioner.destroy(cancel_event=cancel)
        return await provisioner.apply(cancel_event=cancel)

    return asyncio.run(runner())


def _exit_code(result: ExecutionResult) -> int:
    if result.success:
        return ExitCode.SUCCESS
    if result.status is RunStatus.CANCELLED:
        return ExitCode.BLOCKED
    return ExitCode.PROVIDER_ERROR


@main_with_error_handling()
def apply_command(
    blueprint: str | None = None,
    env: str | None = None,
    state_dir: str | None = None,
    concurrency: int | None = None,
    output_format: str = "text",
    auto_approve: bool = False,
    verbose: bool = False,
) -> int:
    """
    Provision the stack.

    Returns:
        Exit code (0 for success, 11 when a backend step failed)
    """
    settings = resolve_settings(env=env, state_dir=state_dir, concurrency=concurrency)
    text = output_format != "json"
    provisioner = make_provisioner(blueprint, settings, on_step=_print_step if text else None)

    if text:
        plan = provisioner.plan()
        print_plan_summary(plan, verbose=verbose)
        if plan.has_changes and not auto_approve and not confirm("Apply these changes?", default=True):
            warning("Apply aborted")
            return ExitCode.WARNING
        if not plan.has_changes:
            info("Nothing to change; refreshing recorded outputs")

    result = _run(provisioner, destroy=False)

    if text:
        print_result_summary(result)
        if result.success:
            from stackwright.outputs.sinks import ConsoleSink

            ConsoleSink().write(provisioner.stack.name, provisioner.outputs())
    else:
        payload = result.to_dict()
        if result.success:
            payload["outputs"] = provisioner.outputs()
        print(json.dumps(payload, indent=2, default=str))
    return _exit_code(result)


@main_with_error_handling()
def destroy_command(
    blueprint: str | None = None,
    env: str | None = None,
    state_dir: str | None = None,
    concurrency: int | None = None,
    output_format: str = "text",
    auto_approve: bool = False,
) -> int:
    """Delete every recorded resource of the stack, dependents first."""
    settings = resolve_settings(env=env, state_dir=state_dir, concurrency=concurrency)
    text = output_format != "json"
    provisioner = make_provisioner(blueprint, settings, on_step=_print_step if text else None)

    if provisioner.state().is_empty:
        if text:
            warning(f"Stack {provisioner.stack.name} has no recorded resources")
        return ExitCode.SUCCESS

    if not auto_approve and not confirm(f"Destroy every resource in {provisioner.stack.name}?", default=False):
        warning("Destroy aborted")
        return ExitCode.WARNING

    result = _run(provisioner, destroy=True)
    if text:
        print_result_summary(result)
    else:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    return _exit_code(result)
