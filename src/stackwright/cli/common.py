"""Shared wiring for CLI commands."""

from __future__ import annotations

from pathlib import Path

from stackwright.blueprints import DEFAULT_BLUEPRINT, build_blueprint
from stackwright.config import Settings, get_settings
from stackwright.execution.engine import StepCallback
from stackwright.model.stack import Stack
from stackwright.provisioner import Provisioner


def resolve_settings(
    env: str | None = None,
    state_dir: str | None = None,
    concurrency: int | None = None,
) -> Settings:
    """Settings from the environment with CLI flags layered on top."""
    overrides: dict = {}
    if env:
        overrides["environment"] = env
    if state_dir:
        overrides["state_dir"] = Path(state_dir)
    if concurrency:
        overrides["concurrency"] = concurrency
    base = get_settings()
    return base.model_copy(update=overrides) if overrides else base


def load_stack(blueprint: str | None, settings: Settings) -> Stack:
    return build_blueprint(blueprint or DEFAULT_BLUEPRINT, settings.environment)


def make_provisioner(
    blueprint: str | None,
    settings: Settings,
    on_step: StepCallback | None = None,
) -> Provisioner:
    stack = load_stack(blueprint, settings)
    return Provisioner.from_settings(stack, settings, on_step=on_step)
