#!/usr/bin/env python3
"""Main entry point for sweep."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Sequence

from .config import EngineConfig, load_config
from .engine import Engine
from .executor import HostStatus
from .models import Destination, HostRecord, SinkConfig, SinkStatus
from .paths import build_report_paths
from .payloads import build_payload

# ANSI colors for different hosts
COLORS = [
    "\033[36m",  # Cyan
    "\033[33m",  # Yellow
    "\033[35m",  # Magenta
    "\033[32m",  # Green
    "\033[34m",  # Blue
    "\033[91m",  # Light Red
    "\033[96m",  # Light Cyan
    "\033[93m",  # Light Yellow
]
RESET = "\033[0m"


def _positive(kind: type) -> Callable[[str], Any]:
    """argparse type accepting only numbers above zero."""

    def convert(text: str) -> Any:
        try:
            value = kind(text)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid {kind.__name__} value: {text!r}") from None
        if not value > 0:
            raise argparse.ArgumentTypeError(f"must be greater than 0: {text}")
        return value

    convert.__name__ = kind.__name__
    return convert


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run a remote operation across many hosts and report the results"
    )
    parser.add_argument(
        "target",
        nargs="?",
        default="",
        help="Hostname, comma list, host list file or name prefix (default: this machine)",
    )
    payload = parser.add_mutually_exclusive_group(required=True)
    payload.add_argument("--command", help="Shell command to run on every host")
    payload.add_argument("--path-exists", metavar="PATH", help="Check whether PATH exists on every host")
    parser.add_argument("--config", type=Path, help="Path to YAML configuration file")
    parser.add_argument("--key", type=Path, help="Override SSH key path from config")
    parser.add_argument("--user", help="Override SSH user from config")
    parser.add_argument("--skip-ping", action="store_true", help="Do not probe hosts before running")
    parser.add_argument("--probe-count", type=_positive(int), help="Liveness probes per host")
    parser.add_argument("--max-workers", type=_positive(int), help="Maximum hosts worked on at once")
    parser.add_argument("--timeout", type=_positive(float), help="Per-host timeout in seconds")
    parser.add_argument("--csv", action="store_true", help="Write CSV and spreadsheet reports")
    parser.add_argument("--report-dir", type=Path, help="Directory for reports (implies --csv)")
    parser.add_argument("--task", help="Report name (default: payload name)")
    parser.add_argument("--no-spreadsheet", action="store_true", help="Only write the CSV report")
    parser.add_argument("--no-table", action="store_true", help="Never open the interactive table")
    parser.add_argument("--stream", action="store_true", help="Print command output as it arrives")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level (default: WARNING)")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s - %(message)s",
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(args.log_level)

    # Load configuration
    try:
        config = load_config(args.config) if args.config else EngineConfig()
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    _apply_overrides(config, args)

    colors: dict[str, str] = {}

    def color_for(host: HostRecord) -> str:
        return colors.setdefault(host.key, COLORS[len(colors) % len(COLORS)])

    def on_output(host: HostRecord, line: str) -> None:
        print(f"{color_for(host)}[{host}]{RESET} {line}")

    def on_status(host: HostRecord, status: HostStatus) -> None:
        if status is not HostStatus.PENDING:
            print(f"{color_for(host)}[{host}]{RESET} Status: {status.value}")

    if args.command:
        task = args.task or "command"
        payload = build_payload(
            "command", config, command=args.command, on_output=on_output if args.stream else None
        )
    else:
        task = args.task or "path_exists"
        payload = build_payload("path_exists", config, path=args.path_exists)

    sink = _sink_for(args, config, task)
    engine = Engine(config, on_status=on_status)
    run = engine.run(args.target, payload, sink, skip_probe=args.skip_ping, probe_count=args.probe_count)

    if not run.hosts:
        print("No hosts matched the target; nothing to do.")
        return 0

    if run.write and sink.destination is Destination.FILES:
        for warning in run.write.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        if run.write.canonical_path:
            print(f"\nReport: {run.write.canonical_path}")
        if run.write.spreadsheet is SinkStatus.OK:
            print(f"Spreadsheet: {run.write.spreadsheet_path}")

    # Check final status
    failed = run.failed
    if failed:
        print(f"\nFailed hosts: {', '.join(failed.names())}", file=sys.stderr)
        return 1

    return 0


def _apply_overrides(config: EngineConfig, args: argparse.Namespace) -> None:
    """Apply command line overrides on top of the loaded configuration."""
    if args.key:
        config.ssh.ssh_key = args.key.expanduser()
    if args.user:
        config.ssh.user = args.user
    if args.max_workers:
        config.defaults.max_workers = args.max_workers
    if args.timeout:
        config.defaults.host_timeout = args.timeout


def _sink_for(args: argparse.Namespace, config: EngineConfig, task: str) -> SinkConfig:
    if args.csv or args.report_dir:
        paths = build_report_paths(args.report_dir or config.report_root, task)
        return SinkConfig.files(paths.csv, None if args.no_spreadsheet else paths.spreadsheet)
    return SinkConfig(
        table_threshold=config.defaults.table_threshold,
        interactive=not args.no_table and sys.stdout.isatty(),
    )


if __name__ == "__main__":
    sys.exit(main())
