"""Tests for the plan engine."""

import pytest

from stackwright.graph import build
from stackwright.model import RemovalPolicy, Stack, to_symbolic
from stackwright.planning import (
    ORPHAN_MARK,
    RETIRE_SUFFIX,
    Action,
    PlanMode,
    diff_config,
    plan,
    plan_destroy,
    topological_order,
)
from stackwright.state.models import ResourceRecord, StackState


def recorded(stack: Stack, order=None, serial: int = 1) -> StackState:
    """State as if ``stack`` had just been applied in ``order``."""
    graph = build(stack)
    names = order or [r.name for r in topological_order(graph)]
    state = StackState(stack=stack.name, serial=serial, apply_order=list(names))
    for name in names:
        resource = stack[name]
        state.resources[name] = ResourceRecord(
            name=name,
            kind=resource.kind,
            physical_id=f"{resource.kind}-{resource.index:04d}",
            config=to_symbolic(resource.config),
            outputs={"id": f"{resource.kind}-{resource.index:04d}"},
            removal_policy=resource.removal_policy.value,
            depends_on=sorted(graph.dependencies_of(name)),
        )
    return state


def app_stack(engine: str = "mysql", size: str = "small") -> Stack:
    stack = Stack("app")
    vpc = stack.declare("network", "vpc", {"cidr_block": "10.0.0.0/16"})
    db = stack.declare("database", "database", {"engine": engine, "size": size, "network": vpc.ref("id")})
    stack.declare("task-definition", "task", {"family": "app", "db_host": db.ref("endpoint_address")})
    return stack


class TestTopologicalOrder:
    """Tests for apply ordering."""

    def test_dependencies_before_dependents(self, web_stack):
        order = [r.name for r in topological_order(build(web_stack))]

        assert order.index("vpc") < order.index("database")

    def test_ties_broken_by_declaration_order(self):
        stack = Stack("demo")
        for name in ("c", "b", "a"):
            stack.declare("bucket", name)

        order = [r.name for r in topological_order(build(stack))]

        assert order == ["c", "b", "a"]

    def test_independent_resource_floats_ahead_of_dependents(self):
        stack = Stack("demo")
        vpc = stack.declare("network", "vpc")
        stack.declare("database", "db", {"network": vpc.ref("id")})
        stack.declare("bucket", "bucket")

        order = [r.name for r in topological_order(build(stack))]

        # vpc and bucket are ready together; db only once vpc is placed
        assert order == ["vpc", "bucket", "db"]

    def test_same_declaration_same_order(self):
        first = [r.name for r in topological_order(build(app_stack()))]
        second = [r.name for r in topological_order(build(app_stack()))]

        assert first == second


class TestPlan:
    """Tests for plan()."""

    def test_everything_created_without_state(self, web_stack):
        result = plan(build(web_stack))

        assert result.mode is PlanMode.APPLY
        assert result.order == ["vpc", "bucket", "database"]
        assert set(result.actions.values()) == {Action.CREATE}
        assert result.state_serial == 0

    def test_requires_matches_graph(self, web_stack):
        result = plan(build(web_stack))

        assert result.get("database").requires == frozenset({"vpc"})

    def test_unchanged_declaration_is_all_noop(self):
        stack = app_stack()
        result = plan(build(stack), recorded(stack))

        assert not result.has_changes
        assert set(result.actions.values()) == {Action.NOOP}

    def test_mutable_change_is_update(self):
        previous = recorded(app_stack(size="small"))
        result = plan(build(app_stack(size="large")), previous)

        step = result.get("database")
        assert step.action is Action.UPDATE
        assert step.changed == ("size",)
        assert step.physical_id == previous.get("database").physical_id
        assert result.get("task").action is Action.NOOP

    def test_immutable_change_is_replace(self):
        previous = recorded(app_stack(engine="mysql"))
        result = plan(build(app_stack(engine="postgres")), previous)

        step = result.get("database")
        assert step.action is Action.REPLACE
        assert "engine" in step.reason

    def test_replace_on_makes_attribute_immutable(self):
        def stack_with(version):
            stack = Stack("demo")
            stack.declare("bucket", "assets", {"region": version}, replace_on=["region"])
            return stack

        result = plan(build(stack_with("eu")), recorded(stack_with("us")))

        assert result.get("assets").action is Action.REPLACE

    def test_kind_change_is_replace(self):
        before = Stack("demo")
        before.declare("bucket", "store")
        after = Stack("demo")
        after.declare("database", "store")

        result = plan(build(after), recorded(before))

        assert result.get("store").action is Action.REPLACE

    def test_replace_retires_old_instance_after_dependents(self):
        previous = recorded(app_stack(engine="mysql"))
        result = plan(build(app_stack(engine="postgres")), previous)

        assert result.order == ["vpc", "database", "task", "database" + RETIRE_SUFFIX]
        assert result.get("task").action is Action.UPDATE
        assert "repoint" in result.get("task").reason

        retire = result.get("database" + RETIRE_SUFFIX)
        assert retire.action is Action.DELETE
        assert retire.requires == frozenset({"database", "task"})
        assert retire.physical_id == previous.get("database").physical_id

    def test_replace_without_dependents_retires_immediately(self):
        def stack_with(engine):
            stack = Stack("demo")
            stack.declare("database", "db", {"engine": engine})
            stack.declare("bucket", "assets")
            return stack

        result = plan(build(stack_with("postgres")), recorded(stack_with("mysql")))

        assert result.order == ["db", "db" + RETIRE_SUFFIX, "assets"]
        assert result.get("db" + RETIRE_SUFFIX).requires == frozenset({"db"})

    def test_retire_waits_for_removed_dependent(self):
        before = Stack("demo")
        vpc = before.declare("network", "vpc", {"cidr_block": "10.0.0.0/16"})
        before.declare("database", "db", {"engine": "mysql", "network": vpc.ref("id")})
        after = Stack("demo")
        after.declare("network", "vpc", {"cidr_block": "10.1.0.0/16"})

        result = plan(build(after), recorded(before))

        assert result.order == ["vpc", "db", "vpc" + RETIRE_SUFFIX]
        assert result.get("db").action is Action.DELETE
        assert result.get("vpc" + RETIRE_SUFFIX).requires == frozenset({"vpc", "db"})

    def test_retire_waits_for_former_dependent(self):
        before = Stack("demo")
        vpc = before.declare("network", "vpc", {"cidr_block": "10.0.0.0/16"})
        before.declare("bucket", "logs", {"network": vpc.ref("id")})
        after = Stack("demo")
        after.declare("network", "vpc", {"cidr_block": "10.1.0.0/16"})
        after.declare("bucket", "logs")

        result = plan(build(after), recorded(before))

        assert result.get("logs").action is Action.UPDATE
        assert result.get("vpc" + RETIRE_SUFFIX).requires == frozenset({"vpc", "logs"})
        assert result.order.index("logs") < result.order.index("vpc" + RETIRE_SUFFIX)

    def test_removal_waits_for_retired_former_dependent(self):
        before = Stack("demo")
        logs = before.declare("bucket", "logs")
        before.declare("database", "db", {"engine": "mysql", "audit": logs.ref("bucket_arn")})
        after = Stack("demo")
        after.declare("database", "db", {"engine": "postgres"})

        result = plan(build(after), recorded(before))

        assert result.get("logs").requires == frozenset({"db", "db" + RETIRE_SUFFIX})
        assert result.order == ["db", "db" + RETIRE_SUFFIX, "logs"]

    def test_orphaned_instance_retired_again(self):
        stack = app_stack(engine="postgres")
        previous = recorded(stack)
        previous.orphaned.append({"name": "database", "kind": "database", "physical_id": "database-0099"})

        result = plan(build(stack), previous)

        key = "database" + ORPHAN_MARK + "database-0099"
        step = result.get(key)
        assert step.action is Action.DELETE
        assert step.is_retirement
        assert step.physical_id == "database-0099"
        assert step.requires == frozenset({"database", "task"})
        assert result.get("task").action is Action.UPDATE
        assert result.order[-1] == key

    def test_removed_resources_deleted_in_reverse_apply_order(self, web_stack):
        previous = recorded(web_stack)
        remaining = Stack("web")
        remaining.declare("bucket", "bucket", {"versioned": True})

        result = plan(build(remaining), previous)

        assert result.order == ["bucket", "database", "vpc"]
        assert result.get("database").action is Action.DELETE
        assert result.get("vpc").requires == frozenset({"database"})

    def test_retained_removal_carries_warning(self):
        before = Stack("demo")
        before.declare("bucket", "archive", removal_policy=RemovalPolicy.RETAIN)
        after = Stack("demo")

        result = plan(build(after), recorded(before))

        step = result.get("archive")
        assert step.action is Action.DELETE
        assert step.retain
        assert result.warnings and "archive" in result.warnings[0]

    def test_plan_serialises(self, web_stack):
        data = plan(build(web_stack)).to_dict()

        assert data["summary"]["create"] == 3
        assert data["steps"][0]["key"] == "vpc"


class TestPlanDestroy:
    """Tests for plan_destroy()."""

    def test_destroy_is_exact_reverse_of_apply_order(self, web_stack):
        previous = recorded(web_stack, order=["vpc", "bucket", "database"])

        result = plan_destroy(previous)

        assert result.mode is PlanMode.DESTROY
        assert result.order == ["database", "bucket", "vpc"]
        assert all(s.action is Action.DELETE for s in result)

    def test_destroy_follows_recorded_order_not_declaration(self, web_stack):
        # bucket happened to be applied first last time
        previous = recorded(web_stack, order=["bucket", "vpc", "database"])

        result = plan_destroy(previous)

        assert result.order == ["database", "vpc", "bucket"]

    def test_delete_requires_dependents_gone(self, web_stack):
        result = plan_destroy(recorded(web_stack))

        assert result.get("vpc").requires == frozenset({"database"})
        assert result.get("bucket").requires == frozenset()

    def test_orphaned_instance_deleted_after_its_former_dependents(self, web_stack):
        previous = recorded(web_stack)
        previous.orphaned.append({"name": "vpc", "kind": "network", "physical_id": "network-0042"})

        result = plan_destroy(previous)

        key = "vpc" + ORPHAN_MARK + "network-0042"
        assert result.order[-1] == key
        assert result.get(key).requires == frozenset({"vpc", "database"})

    def test_empty_state_yields_empty_plan(self):
        result = plan_destroy(StackState(stack="nothing"))

        assert len(result) == 0
        assert not result.has_changes


class TestDiffConfig:
    """Tests for diff_config()."""

    @pytest.mark.parametrize(
        "old,new,expected",
        [
            ({"a": 1}, {"a": 1}, ()),
            ({"a": 1}, {"a": 2}, ("a",)),
            ({"a": 1}, {"a": 1, "b": 2}, ("b",)),
            ({"a": 1, "b": 2}, {"a": 1}, ("b",)),
            ({"a": None}, {}, ("a",)),
        ],
    )
    def test_changed_keys(self, old, new, expected):
        assert diff_config(old, new) == expected

    def test_reference_change_detected_symbolically(self):
        old = {"network": {"$ref": "vpc.id"}}
        new = {"network": {"$ref": "other.id"}}

        assert diff_config(old, new) == ("network",)
