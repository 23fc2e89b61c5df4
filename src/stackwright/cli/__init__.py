"""
CLI commands for Stackwright.

Command modules are imported lazily by ``stackwright.cli.main``.
"""
