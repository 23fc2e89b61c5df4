"""Output exporter and export sinks."""

from stackwright.outputs.exporter import exports

__all__ = ["exports"]
