"""Root test configuration."""

import logging

import pytest
import structlog

from stackwright.backends.memory import InMemoryBackend
from stackwright.model.stack import Stack
from stackwright.state.store import MemoryStateStore


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def web_stack():
    """Network, bucket and a database wired to the network."""
    stack = Stack("web")
    vpc = stack.declare("network", "vpc", {"cidr_block": "10.0.0.0/16"})
    stack.declare("bucket", "bucket", {"versioned": True})
    db = stack.declare(
        "database",
        "database",
        {"engine": "mysql", "instance_class": "small", "network": vpc.ref("id")},
    )
    stack.export("DatabaseEndpoint", db.ref("endpoint_address"))
    return stack
