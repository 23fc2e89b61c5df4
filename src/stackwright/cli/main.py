"""
Stackwright CLI.

Usage:
    stackwright <command> [args]
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from stackwright.config import get_settings
from stackwright.logging import configure_logging


def _add_common(parser: argparse.ArgumentParser, *, state: bool = True) -> None:
    parser.add_argument(
        "--blueprint",
        help="Stack factory as module:function (default: the WooCommerce blueprint)",
    )
    parser.add_argument("--env", help="Environment (dev, staging, prod)")
    if state:
        parser.add_argument("--state-dir", help="Directory holding state and lock files")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stackwright", description="Stackwright CLI")
    parser.add_argument("--log-level", help="Log level (default from STACKWRIGHT_LOG_LEVEL)")
    parser.add_argument("--log-format", choices=["json", "console"], help="Log rendering (default from STACKWRIGHT_LOG_FORMAT)")
    subparsers = parser.add_subparsers(dest="command")

    plan_parser = subparsers.add_parser("plan", help="Preview changes (dry-run)")
    _add_common(plan_parser)
    plan_parser.add_argument("--output", choices=["text", "json"], default="text", help="Output format")
    plan_parser.add_argument("-v", "--verbose", action="store_true", help="Show unchanged resources and reasons")

    apply_parser = subparsers.add_parser("apply", help="Provision the stack")
    _add_common(apply_parser)
    apply_parser.add_argument("--concurrency", type=int, help="Maximum steps in flight")
    apply_parser.add_argument("--output", choices=["text", "json"], default="text", help="Output format")
    apply_parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    apply_parser.add_argument("-v", "--verbose", action="store_true", help="Show unchanged resources")

    destroy_parser = subparsers.add_parser("destroy", help="Delete every resource of the stack")
    _add_common(destroy_parser)
    destroy_parser.add_argument("--concurrency", type=int, help="Maximum steps in flight")
    destroy_parser.add_argument("--output", choices=["text", "json"], default="text", help="Output format")
    destroy_parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")

    outputs_parser = subparsers.add_parser("outputs", help="Show stack outputs")
    _add_common(outputs_parser)
    outputs_parser.add_argument("--format", choices=["text", "json", "yaml"], default="text", help="Output format")
    outputs_parser.add_argument("--write", help="Write outputs to a .json or .yaml file")

    graph_parser = subparsers.add_parser("graph", help="Show the dependency graph")
    _add_common(graph_parser, state=False)
    graph_parser.add_argument("--output", choices=["text", "json"], default="text", help="Output format")

    kinds_parser = subparsers.add_parser("kinds", help="List resource kinds")
    _add_common(kinds_parser, state=False)

    unlock_parser = subparsers.add_parser("force-unlock", help="Remove a stale run lock")
    _add_common(unlock_parser)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, args.log_format or settings.log_format)

    if args.command == "plan":
        from stackwright.cli.plan import plan_command

        sys.exit(plan_command(
            blueprint=args.blueprint,
            env=args.env,
            state_dir=args.state_dir,
            output_format=args.output,
            verbose=args.verbose,
        ))

    if args.command == "apply":
        from stackwright.cli.apply import apply_command

        sys.exit(apply_command(
            blueprint=args.blueprint,
            env=args.env,
            state_dir=args.state_dir,
            concurrency=args.concurrency,
            output_format=args.output,
            auto_approve=args.yes,
            verbose=args.verbose,
        ))

    if args.command == "destroy":
        from stackwright.cli.apply import destroy_command

        sys.exit(destroy_command(
            blueprint=args.blueprint,
            env=args.env,
            state_dir=args.state_dir,
            concurrency=args.concurrency,
            output_format=args.output,
            auto_approve=args.yes,
        ))

    if args.command == "outputs":
        from stackwright.cli.inspect import outputs_command

        sys.exit(outputs_command(
            blueprint=args.blueprint,
            env=args.env,
            state_dir=args.state_dir,
            output_format=args.format,
            write=args.write,
        ))

    if args.command == "graph":
        from stackwright.cli.inspect import graph_command

        sys.exit(graph_command(blueprint=args.blueprint, env=args.env, output_format=args.output))

    if args.command == "kinds":
        from stackwright.cli.inspect import kinds_command

        sys.exit(kinds_command(blueprint=args.blueprint, env=args.env))

    if args.command == "force-unlock":
        from stackwright.cli.inspect import force_unlock_command

        sys.exit(force_unlock_command(blueprint=args.blueprint, env=args.env, state_dir=args.state_dir))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
