"""Dependency graph construction and cycle detection."""

from stackwright.graph.builder import DependencyGraph, Edge, build, find_cycle

__all__ = ["DependencyGraph", "Edge", "build", "find_cycle"]
