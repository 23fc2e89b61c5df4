"""
CLI command for planning (dry-run) a stack.
"""

from __future__ import annotations

import json

from stackwright.cli.common import make_provisioner, resolve_settings
from stackwright.cli.ux import console, header, spinner, warning
from stackwright.core.errors import main_with_error_handling
from stackwright.planning.models import Action, Plan

ACTION_SYMBOLS = {
    Action.CREATE: ("+", "create"),
    Action.UPDATE: ("~", "update"),
    Action.REPLACE: ("±", "replace"),
    Action.DELETE: ("-", "delete"),
    Action.NOOP: (" ", "noop"),
}


def print_plan_summary(plan: Plan, verbose: bool = False) -> None:
    """Print plan steps with rich formatting."""
    header(f"Plan: {plan.stack} ({plan.mode.value})")
    console.print()

    for step in plan.steps:
        if step.action is Action.NOOP and not verbose:
            continue
        symbol, style = ACTION_SYMBOLS[step.action]
        label = step.key
        detail = ""
        if step.changed:
            detail = f" [muted]({', '.join(step.changed)})[/muted]"
        if step.retain:
            detail += " [muted](retained, not deleted)[/muted]"
        if step.reason and verbose:
            detail += f" [muted]# {step.reason}[/muted]"
        console.print(f"  [{style}]{symbol} {label:<28}[/{style}] {step.kind}{detail}")

    console.print()
    counts = plan.summary()
    if not plan.has_changes:
        console.print("[success]No changes.[/success] Infrastructure matches the declaration.")
    else:
        console.print(
            f"[bold]Plan:[/bold] {counts['create']} to create, {counts['update']} to update, "
            f"{counts['replace']} to replace, {counts['delete']} to delete"
        )
    for message in plan.warnings:
        warning(message)
    console.print()


def print_plan_json(plan: Plan) -> None:
    print(json.dumps(plan.to_dict(), indent=2))


@main_with_error_handling()
def plan_command(
    blueprint: str | None = None,
    env: str | None = None,
    state_dir: str | None = None,
    output_format: str = "text",
    verbose: bool = False,
) -> int:
    """
    Preview the actions an apply would take.

    Returns:
        Exit code (0 for success, non-zero on configuration errors)
    """
    settings = resolve_settings(env=env, state_dir=state_dir)
    provisioner = make_provisioner(blueprint, settings)
    if output_format == "json":
        print_plan_json(provisioner.plan())
        return 0

    with spinner("Computing plan"):
        plan = provisioner.plan()
    print_plan_summary(plan, verbose=verbose)
    return 0
