"""Tests for the HTTP provisioning backend."""

import json

import pytest
import respx
from httpx import Response

from stackwright.backends import HttpBackend, create_backend, list_backends
from stackwright.core.errors import BackendError

BASE_URL = "https://provisioner.example.com"


def make_backend(**kwargs):
    kwargs.setdefault("max_retries", 3)
    kwargs.setdefault("backoff_factor", 0)
    return HttpBackend(BASE_URL, "test-token", **kwargs)


@pytest.mark.asyncio
async def test_create_resource_success():
    backend = make_backend()

    with respx.mock:
        route = respx.post(f"{BASE_URL}/resources").mock(
            return_value=Response(201, json={"id": "db-123", "outputs": {"port": "3306"}})
        )

        result = await backend.create_resource(
            "database", {"engine": "mysql"}, name="database", idempotency_key="run:database:create"
        )

        assert result.physical_id == "db-123"
        assert result.outputs == {"port": "3306"}
        request = route.calls.last.request
        assert request.headers["Idempotency-Key"] == "run:database:create"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert json.loads(request.content) == {
            "kind": "database",
            "name": "database",
            "config": {"engine": "mysql"},
        }


@pytest.mark.asyncio
async def test_create_retries_on_503():
    backend = make_backend()

    with respx.mock:
        route = respx.post(f"{BASE_URL}/resources")
        route.side_effect = [
            Response(503),
            Response(201, json={"id": "db-123"}),
        ]

        result = await backend.create_resource("database", {}, name="database")

        assert result.physical_id == "db-123"
        assert route.call_count == 2


@pytest.mark.asyncio
async def test_retries_exhausted_is_transient_backend_error():
    backend = make_backend(max_retries=2)

    with respx.mock:
        route = respx.post(f"{BASE_URL}/resources").mock(return_value=Response(503))

        with pytest.raises(BackendError) as exc_info:
            await backend.create_resource("database", {}, name="database")

        assert exc_info.value.transient
        assert route.call_count == 2


@pytest.mark.asyncio
async def test_permanent_error_not_retried():
    backend = make_backend()

    with respx.mock:
        route = respx.post(f"{BASE_URL}/resources").mock(return_value=Response(400, json={"error": "bad"}))

        with pytest.raises(BackendError) as exc_info:
            await backend.create_resource("database", {}, name="database")

        assert not exc_info.value.transient
        assert exc_info.value.details["status"] == 400
        assert route.call_count == 1


@pytest.mark.asyncio
async def test_missing_id_in_response():
    backend = make_backend()

    with respx.mock:
        respx.post(f"{BASE_URL}/resources").mock(return_value=Response(200, json={"outputs": {}}))

        with pytest.raises(BackendError):
            await backend.create_resource("database", {}, name="database")


@pytest.mark.asyncio
async def test_update_resource_returns_outputs():
    backend = make_backend()

    with respx.mock:
        route = respx.put(f"{BASE_URL}/resources/db-123").mock(
            return_value=Response(200, json={"outputs": {"endpoint_address": "db.internal"}})
        )

        outputs = await backend.update_resource("db-123", {"size": "large"}, kind="database")

        assert outputs == {"endpoint_address": "db.internal"}
        assert json.loads(route.calls.last.request.content)["config"] == {"size": "large"}


@pytest.mark.asyncio
async def test_delete_resource_passes_kind():
    backend = make_backend()

    with respx.mock:
        route = respx.delete(f"{BASE_URL}/resources/db-123").mock(return_value=Response(204))

        await backend.delete_resource("db-123", kind="database")

        assert route.calls.last.request.url.params["kind"] == "database"


@pytest.mark.asyncio
async def test_delete_of_missing_resource_succeeds():
    backend = make_backend()

    with respx.mock:
        respx.delete(f"{BASE_URL}/resources/db-123").mock(return_value=Response(404))

        await backend.delete_resource("db-123", kind="database")


@pytest.mark.asyncio
async def test_health_check_reports_unreachable():
    backend = make_backend(max_retries=1)

    with respx.mock:
        respx.get(f"{BASE_URL}/health").mock(return_value=Response(500))

        health = await backend.health_check()

        assert health.status == "unreachable"


def test_registry_requires_base_url():
    with pytest.raises(ValueError):
        create_backend("http")


def test_registry_builds_http_backend():
    backend = create_backend("http", base_url=BASE_URL, token="t")

    assert isinstance(backend, HttpBackend)


def test_builtin_backends_registered():
    names = {spec.name for spec in list_backends()}

    assert {"memory", "http"} <= names
