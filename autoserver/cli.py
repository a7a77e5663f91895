"""Command line entry point.

    autoserver plan [--project-dir DIR] [--config FILE] [--json]
                    [--log-level LEVEL] [--log-file FILE]

Logging defaults come from the ``[logging]`` table of the merged config;
``--log-level`` and ``--log-file`` override it.
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import get_args

from rich.console import Console
from rich.markup import escape

from autoserver.config import RawConfig, build_cluster, load_config
from autoserver.exceptions import AutoServerError
from autoserver.logging import LogConfig, LogLevel, logging_enabled
from autoserver.output import print_summary


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autoserver", description="Game-server cluster planner")
    sub = parser.add_subparsers(dest="command", required=True)

    plan = sub.add_parser("plan", help="Resolve the cluster and print its descriptors")
    plan.add_argument("--project-dir", type=Path, default=None, help="Directory containing autoserver.toml")
    plan.add_argument("--config", type=Path, default=None, help="Global defaults file")
    plan.add_argument("--json", action="store_true", help="Print the descriptor as JSON")
    plan.add_argument("--log-level", choices=get_args(LogLevel.__value__), default=None)
    plan.add_argument("--log-file", default=None, help="Also write JSON-lines logs here")
    return parser


def _log_config(config: RawConfig, args: argparse.Namespace) -> LogConfig:
    log_config = LogConfig.from_mapping(config.get("logging", {}))
    overrides = {
        k: v for k, v in (("level", args.log_level), ("file", args.log_file)) if v is not None
    }
    return dataclasses.replace(log_config, **overrides)


def plan(args: argparse.Namespace, console: Console) -> int:
    config = load_config(project_dir=args.project_dir, global_path=args.config)

    with logging_enabled(_log_config(config, args)):
        descriptor = build_cluster(config).finalize()

    if args.json:
        console.print_json(descriptor.to_json())
    else:
        print_summary(descriptor, console)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    console = Console()

    try:
        match args.command:
            case "plan":
                return plan(args, console)
            case _:
                return 2
    except AutoServerError as e:
        Console(stderr=True).print(f"[red]error:[/red] {type(e).__name__}: {escape(str(e))}", highlight=False)
        return 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
