"""Named backend factories, selected by ``STACKWRIGHT_BACKEND``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from stackwright.backends.base import ProvisioningBackend
from stackwright.core.errors import ConfigurationError, DuplicateNameError

BackendFactory = Callable[..., ProvisioningBackend]


@dataclass(frozen=True)
class BackendSpec:
    """A registered backend factory."""

    name: str
    factory: BackendFactory
    description: str | None = None


class BackendRegistry:
    """Backend factories keyed by lower-case name."""

    def __init__(self) -> None:
        self._backends: Dict[str, BackendSpec] = {}

    def register(
        self,
        name: str,
        factory: BackendFactory,
        *,
        description: str | None = None,
        replace: bool = False,
    ) -> None:
        key = (name or "").strip().lower()
        if not key:
            raise ValueError("Backend name is required")
        if key in self._backends and not replace:
            raise DuplicateNameError(key, what="backend")
        self._backends[key] = BackendSpec(name=key, factory=factory, description=description)

    def create(self, name: str, **kwargs: Any) -> ProvisioningBackend:
        """Build a backend, checking it speaks the provisioning protocol."""
        spec = self._backends.get(name.strip().lower())
        if spec is None:
            raise ConfigurationError(
                f"Unknown backend '{name}'",
                {"backend": name, "known": ", ".join(sorted(self._backends))},
            )
        backend = spec.factory(**kwargs)
        if not isinstance(backend, ProvisioningBackend):
            raise ConfigurationError(
                f"Backend factory '{spec.name}' returned {type(backend).__name__}, "
                "which does not implement the provisioning protocol",
                {"backend": spec.name},
            )
        return backend

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._backends

    def list(self) -> List[BackendSpec]:
        return sorted(self._backends.values(), key=lambda s: s.name)


backend_registry = BackendRegistry()


def register_backend(
    name: str,
    factory: BackendFactory,
    *,
    description: str | None = None,
    replace: bool = False,
) -> None:
    backend_registry.register(name, factory, description=description, replace=replace)


def create_backend(name: str, **kwargs: Any) -> ProvisioningBackend:
    return backend_registry.create(name, **kwargs)


def list_backends() -> List[BackendSpec]:
    return backend_registry.list()
