"""
CLI commands that read a stack without changing it: outputs, graph, kinds.
"""

from __future__ import annotations

import json

import yaml

from stackwright.cli.common import load_stack, make_provisioner, resolve_settings
from stackwright.cli.ux import console, header, print_table, success, warning
from stackwright.core.errors import ExitCode, main_with_error_handling
from stackwright.graph.builder import build
from stackwright.outputs.sinks import ConsoleSink, sink_for
from stackwright.planning.planner import topological_order
from stackwright.state.store import FileStateStore


@main_with_error_handling()
def outputs_command(
    blueprint: str | None = None,
    env: str | None = None,
    state_dir: str | None = None,
    output_format: str = "text",
    write: str | None = None,
) -> int:
    """Show stack outputs recorded by the last successful apply."""
    settings = resolve_settings(env=env, state_dir=state_dir)
    provisioner = make_provisioner(blueprint, settings)
    provisioner.refresh()
    values = provisioner.outputs()

    if write:
        sink_for(write).write(provisioner.stack.name, values)
        success(f"Outputs written to {write}")
    elif output_format == "json":
        print(json.dumps(values, indent=2, sort_keys=True))
    elif output_format == "yaml":
        print(yaml.safe_dump(values, default_flow_style=False, sort_keys=True), end="")
    else:
        ConsoleSink().write(provisioner.stack.name, values)
    return 0


@main_with_error_handling()
def graph_command(
    blueprint: str | None = None,
    env: str | None = None,
    output_format: str = "text",
) -> int:
    """Print the dependency graph in apply order."""
    settings = resolve_settings(env=env)
    stack = load_stack(blueprint, settings)
    graph = build(stack)
    order = topological_order(graph)

    if output_format == "json":
        payload = {
            "stack": stack.name,
            "order": [r.name for r in order],
            "edges": [
                {"source": e.source, "target": e.target, "attribute": e.attribute}
                for e in graph.edges
            ],
        }
        print(json.dumps(payload, indent=2))
        return 0

    header(f"Graph: {stack.name}")
    rows = [
        [str(i), r.name, r.kind, ", ".join(sorted(graph.dependencies_of(r.name))) or "-"]
        for i, r in enumerate(order, 1)
    ]
    print_table("Apply order", ["#", "Resource", "Kind", "Depends on"], rows)
    return 0


@main_with_error_handling()
def kinds_command(blueprint: str | None = None, env: str | None = None) -> int:
    """List the resource kinds known to the stack."""
    settings = resolve_settings(env=env)
    stack = load_stack(blueprint, settings)
    rows = [
        [s.name, ", ".join(sorted(s.outputs)), ", ".join(sorted(s.immutable)) or "-"]
        for s in stack.kinds.schemas()
    ]
    print_table("Resource kinds", ["Kind", "Outputs", "Replace on change of"], rows)
    return 0


@main_with_error_handling()
def force_unlock_command(
    blueprint: str | None = None,
    env: str | None = None,
    state_dir: str | None = None,
) -> int:
    """Remove a stale run lock left by a crashed run."""
    settings = resolve_settings(env=env, state_dir=state_dir)
    stack = load_stack(blueprint, settings)
    store = FileStateStore(settings.state_dir)
    holder = store.holder(stack.name)
    if not store.force_unlock(stack.name):
        warning(f"Stack {stack.name} is not locked")
        return ExitCode.WARNING
    run = holder.run_id if holder else "unknown"
    console.print(f"[muted]Removed lock held by run {run}[/muted]")
    success(f"Stack {stack.name} unlocked")
    return 0
