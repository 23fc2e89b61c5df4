"""Tests for the declarative resource model."""

import pytest

from stackwright.core.errors import (
    DuplicateNameError,
    UnknownKindError,
    UnresolvedReferenceError,
)
from stackwright.model import (
    Join,
    KindRegistry,
    KindSchema,
    Reference,
    RemovalPolicy,
    ResourceState,
    Stack,
    StackStatus,
    iter_references,
    resolve_value,
    to_symbolic,
)


class TestStackDeclare:
    """Tests for Stack.declare."""

    def test_declare_returns_handle_in_planned_state(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc", {"cidr_block": "10.0.0.0/16"})

        assert vpc.name == "vpc"
        assert vpc.kind == "network"
        assert vpc.state is ResourceState.PLANNED
        assert vpc.physical_id is None
        assert vpc.stack_name == "demo"
        assert stack.status is StackStatus.DECLARED

    def test_declaration_index_follows_call_order(self):
        stack = Stack("demo")
        a = stack.declare("bucket", "a")
        b = stack.declare("bucket", "b")

        assert (a.index, b.index) == (0, 1)
        assert [r.name for r in stack] == ["a", "b"]

    def test_duplicate_name_rejected(self):
        stack = Stack("demo")
        stack.declare("bucket", "assets")

        with pytest.raises(DuplicateNameError) as exc_info:
            stack.declare("bucket", "assets")

        assert exc_info.value.name == "assets"
        assert "demo" in str(exc_info.value)
        assert len(stack) == 1

    def test_unknown_kind_rejected(self):
        stack = Stack("demo")

        with pytest.raises(UnknownKindError) as exc_info:
            stack.declare("mainframe", "big-iron")

        assert exc_info.value.kind == "mainframe"
        assert "big-iron" not in stack

    def test_empty_name_rejected(self):
        stack = Stack("demo")

        with pytest.raises(ValueError):
            stack.declare("bucket", "  ")

    def test_same_name_in_two_stacks_is_fine(self):
        one, two = Stack("one"), Stack("two")
        one.declare("bucket", "assets")
        two.declare("bucket", "assets")

        assert "assets" in one and "assets" in two

    def test_depends_on_accepts_handles_and_names(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")
        bucket = stack.declare("bucket", "bucket")
        db = stack.declare("database", "db", depends_on=[vpc, "bucket"])

        assert db.depends_on == ["vpc", "bucket"]
        assert bucket.removal_policy is RemovalPolicy.DESTROY

    def test_duplicate_export_rejected(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")
        stack.export("VpcId", vpc.ref("id"))

        with pytest.raises(DuplicateNameError):
            stack.export("VpcId", vpc.ref("id"))

    def test_custom_kind_can_be_registered(self):
        stack = Stack("demo")
        stack.register_kind(KindSchema("queue", "Message queue", frozenset({"id", "url"})))

        queue = stack.declare("queue", "jobs")

        assert queue.kind == "queue"

    def test_registry_rejects_duplicate_kind(self):
        registry = KindRegistry([KindSchema("queue", "Message queue")])

        with pytest.raises(DuplicateNameError):
            registry.register(KindSchema("queue", "Another queue"))

        registry.register(KindSchema("queue", "Replacement"), replace=True)
        assert registry.get("queue").description == "Replacement"


class TestReference:
    """Tests for deferred references."""

    def test_reference_unresolved_before_create(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")
        ref = vpc.ref("id")

        with pytest.raises(UnresolvedReferenceError) as exc_info:
            ref.resolve()

        assert exc_info.value.target == "vpc"
        assert exc_info.value.attribute == "id"

    def test_reference_resolves_once_created(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")
        vpc.state = ResourceState.CREATED
        vpc.outputs = {"id": "network-0001"}

        assert vpc["id"].resolve() == "network-0001"

    def test_reference_to_failed_resource_stays_unresolved(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")
        vpc.state = ResourceState.FAILED

        with pytest.raises(UnresolvedReferenceError):
            vpc.ref("id").resolve()

    def test_reference_by_name_to_undeclared_resource(self):
        stack = Stack("demo")
        ref = stack.reference("ghost", "id")

        assert ref.owner is None
        with pytest.raises(UnresolvedReferenceError):
            ref.resolve()

    def test_references_compare_by_target_and_attribute(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")

        assert vpc.ref("id") == Reference("vpc", "id")
        assert str(vpc.ref("id")) == "${vpc.id}"

    def test_join_resolves_parts(self):
        stack = Stack("demo")
        bucket = stack.declare("bucket", "bucket")
        bucket.state = ResourceState.CREATED
        bucket.outputs = {"bucket_arn": "arn:sim:storage:::assets"}

        assert Join(bucket.ref("bucket_arn"), "/*").resolve() == "arn:sim:storage:::assets/*"

    def test_iter_references_walks_nested_config(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")
        bucket = stack.declare("bucket", "bucket")
        config = {
            "network": vpc.ref("id"),
            "policy": [{"resources": [Join(bucket.ref("bucket_arn"), "/*")]}],
        }

        found = {(r.target, r.attribute) for r in iter_references(config)}

        assert found == {("vpc", "id"), ("bucket", "bucket_arn")}

    def test_to_symbolic_keeps_references_symbolic(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")

        symbolic = to_symbolic({"network": vpc.ref("id"), "tags": ("a", "b")})

        assert symbolic == {"network": {"$ref": "vpc.id"}, "tags": ["a", "b"]}

    def test_resolve_value_replaces_nested_references(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")
        vpc.state = ResourceState.CREATED
        vpc.outputs = {"id": "network-0001"}

        resolved = resolve_value({"subnets": [{"vpc": vpc.ref("id")}], "size": 3})

        assert resolved == {"subnets": [{"vpc": "network-0001"}], "size": 3}

    def test_references_inside_sets_resolve(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")
        vpc.state = ResourceState.CREATED
        vpc.outputs = {"id": "network-0001"}
        config = {"peers": frozenset({vpc.ref("id"), "network-0000"})}

        assert [r.target for r in iter_references(config)] == ["vpc"]
        assert resolve_value(config) == {"peers": ["network-0000", "network-0001"]}
        assert to_symbolic(config)["peers"] == ["network-0000", {"$ref": "vpc.id"}]

    def test_reference_by_name_resolves_once_declared(self):
        stack = Stack("demo")
        ref = stack.reference("vpc", "id")
        vpc = stack.declare("network", "vpc")
        vpc.state = ResourceState.CREATED
        vpc.outputs = {"id": "network-0001"}

        assert ref.owner is None
        assert ref.resolve() == "network-0001"
