"""Export sinks: where stack outputs go once resolved."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Protocol

import yaml

from stackwright.cli.ux import console, print_table


class ExportSink(Protocol):
    def write(self, stack: str, outputs: Mapping[str, Any]) -> None:
        ...


class JsonFileSink:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def write(self, stack: str, outputs: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"stack": stack, "outputs": dict(outputs)}
        self.path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n")


class YamlFileSink:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def write(self, stack: str, outputs: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"stack": stack, "outputs": dict(outputs)}
        self.path.write_text(yaml.safe_dump(payload, default_flow_style=False, sort_keys=True))


class ConsoleSink:
    """Rich table on the terminal."""

    def write(self, stack: str, outputs: Mapping[str, Any]) -> None:
        if not outputs:
            console.print(f"[muted]Stack {stack} declares no outputs[/muted]")
            return
        print_table(
            f"Outputs: {stack}",
            ["Name", "Value"],
            [[name, str(value)] for name, value in outputs.items()],
        )


def sink_for(path: Path | str | None) -> ExportSink:
    """Pick a sink from a file extension; no path means the console."""
    if path is None:
        return ConsoleSink()
    suffix = Path(path).suffix.lower()
    if suffix in (".yaml", ".yml"):
        return YamlFileSink(path)
    return JsonFileSink(path)
