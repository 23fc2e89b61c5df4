"""Tests for the stackwright CLI commands."""

import json

import pytest
import yaml

from stackwright.cli.apply import apply_command, destroy_command
from stackwright.cli.inspect import (
    force_unlock_command,
    graph_command,
    kinds_command,
    outputs_command,
)
from stackwright.cli.main import build_parser, main
from stackwright.cli.plan import plan_command
from stackwright.core.errors import ExitCode
from stackwright.state import FileRunLock, FileStateStore, LockInfo


@pytest.fixture
def state_dir(tmp_path):
    return str(tmp_path / "state")


def read_json(capsys):
    return json.loads(capsys.readouterr().out)


class TestParser:
    """Tests for build_parser."""

    def test_apply_flags(self):
        args = build_parser().parse_args(["apply", "--env", "prod", "--concurrency", "2", "--yes"])

        assert args.command == "apply"
        assert args.env == "prod"
        assert args.concurrency == 2
        assert args.yes

    def test_outputs_format_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["outputs", "--format", "xml"])

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1
        assert "stackwright" in capsys.readouterr().out


class TestPlanCommand:
    """Tests for plan_command."""

    def test_fresh_plan_creates_everything(self, state_dir, capsys):
        code = plan_command(env="dev", state_dir=state_dir, output_format="json")

        data = read_json(capsys)
        assert code == 0
        assert data["stack"] == "woocommerce-dev"
        assert data["summary"]["create"] == 11
        assert data["steps"][0]["key"] == "vpc"

    def test_bad_blueprint_is_config_error(self, state_dir):
        code = plan_command(blueprint="not-a-blueprint", state_dir=state_dir)

        assert code == ExitCode.CONFIG_ERROR

    def test_text_output(self, state_dir, capsys):
        code = plan_command(env="staging", state_dir=state_dir, verbose=True)

        out = capsys.readouterr().out
        assert code == 0
        assert "woocommerce-staging" in out
        assert "11 to create" in out


class TestApplyLifecycle:
    """apply, outputs, re-plan and destroy across separate invocations."""

    def test_apply_outputs_destroy(self, state_dir, capsys, tmp_path):
        code = apply_command(env="dev", state_dir=state_dir, output_format="json", auto_approve=True)
        applied = read_json(capsys)

        assert code == ExitCode.SUCCESS
        assert applied["status"] == "succeeded"
        assert set(applied["outputs"]) == {
            "LoadBalancerDNS",
            "CloudFrontDistributionURL",
            "Route53DomainName",
        }
        assert FileStateStore(state_dir).read("woocommerce-dev").serial == 1

        assert outputs_command(env="dev", state_dir=state_dir, output_format="json") == 0
        assert read_json(capsys) == applied["outputs"]

        target = tmp_path / "outputs.yaml"
        assert outputs_command(env="dev", state_dir=state_dir, write=str(target)) == 0
        assert yaml.safe_load(target.read_text())["outputs"] == applied["outputs"]
        capsys.readouterr()

        assert plan_command(env="dev", state_dir=state_dir, output_format="json") == 0
        assert read_json(capsys)["summary"]["noop"] == 11

        code = destroy_command(env="dev", state_dir=state_dir, output_format="json", auto_approve=True)
        destroyed = read_json(capsys)
        assert code == ExitCode.SUCCESS
        assert destroyed["mode"] == "destroy"
        assert FileStateStore(state_dir).read("woocommerce-dev").is_empty

    def test_outputs_before_apply_not_ready(self, state_dir):
        code = outputs_command(env="dev", state_dir=state_dir)

        assert code == ExitCode.VALIDATION_ERROR

    def test_destroy_without_state_is_noop(self, state_dir):
        assert destroy_command(env="dev", state_dir=state_dir, auto_approve=True) == ExitCode.SUCCESS

    def test_apply_blocked_by_lock(self, state_dir):
        FileRunLock(state_dir).acquire(LockInfo(stack="woocommerce-dev", run_id="crashed"))

        code = apply_command(env="dev", state_dir=state_dir, output_format="json", auto_approve=True)

        assert code == ExitCode.BLOCKED

    def test_force_unlock(self, state_dir):
        FileRunLock(state_dir).acquire(LockInfo(stack="woocommerce-dev", run_id="crashed"))

        assert force_unlock_command(env="dev", state_dir=state_dir) == 0
        assert force_unlock_command(env="dev", state_dir=state_dir) == ExitCode.WARNING


class TestInspectCommands:
    """Tests for graph and kinds."""

    def test_graph_json(self, capsys):
        assert graph_command(env="dev", output_format="json") == 0

        data = read_json(capsys)
        assert data["order"][0] == "vpc"
        assert {"source": "database", "target": "vpc", "attribute": "id"} in data["edges"]

    def test_kinds_lists_catalog(self, capsys):
        assert kinds_command() == 0

        out = capsys.readouterr().out
        assert "database" in out
        assert "dns-record" in out
