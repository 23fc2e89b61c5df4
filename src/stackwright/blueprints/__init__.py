"""Stack blueprints: Python functions that declare a Stack."""

from __future__ import annotations

import importlib
from typing import Callable

from stackwright.core.errors import ConfigurationError
from stackwright.model.stack import Stack

DEFAULT_BLUEPRINT = "stackwright.blueprints.woocommerce:build_stack"

StackFactory = Callable[..., Stack]


def load_blueprint(spec: str) -> StackFactory:
    """Import ``module:function`` and return the stack factory."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(
            f"Blueprint must look like 'module:function', got '{spec}'",
            {"blueprint": spec},
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import blueprint module '{module_name}': {exc}") from exc
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigurationError(
            f"Blueprint '{spec}' is not a callable",
            {"blueprint": spec},
        )
    return factory


def build_blueprint(spec: str, env: str) -> Stack:
    stack = load_blueprint(spec)(env)
    if not isinstance(stack, Stack):
        raise ConfigurationError(
            f"Blueprint '{spec}' returned {type(stack).__name__}, expected Stack",
            {"blueprint": spec},
        )
    return stack


__all__ = ["DEFAULT_BLUEPRINT", "StackFactory", "build_blueprint", "load_blueprint"]
