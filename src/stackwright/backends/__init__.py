"""Provisioning backends: the external systems that realise resources."""

from stackwright.backends.base import BackendHealth, CreateResult, ProvisioningBackend
from stackwright.backends.http import HttpBackend
from stackwright.backends.memory import InMemoryBackend
from stackwright.backends.registry import (
    BackendRegistry,
    BackendSpec,
    backend_registry,
    create_backend,
    list_backends,
    register_backend,
)
from stackwright.backends.retrying import RetryingBackend

__all__ = [
    "BackendHealth",
    "BackendRegistry",
    "BackendSpec",
    "CreateResult",
    "HttpBackend",
    "InMemoryBackend",
    "ProvisioningBackend",
    "RetryingBackend",
    "backend_registry",
    "create_backend",
    "list_backends",
    "register_backend",
]
