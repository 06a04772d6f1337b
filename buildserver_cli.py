#!/usr/bin/env python3
"""
Command line front end for the build server.

Commands:
  build - build one project archive into an APK or App Bundle
  tasks - list the build pipelines and their tasks

Usage:
  python buildserver_cli.py build --input MyApp.aia --output-dir out/
  python buildserver_cli.py build -i MyApp.aia -o out/ --format aab --receipt
  python buildserver_cli.py tasks --format apk
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

import buildserver.tasks  # noqa: F401  (registers the build tasks)
from buildserver.wiring import build_project_builder
from cli.args.build import add_build_args
from cli.args.tasks import add_tasks_args
from cli.commands.build import run_build
from cli.commands.tasks import run_tasks


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build App Inventor project archives into Android packages.")
    sub = parser.add_subparsers(dest="command", required=True)

    add_build_args(sub.add_parser("build", help="Build one project archive"))
    add_tasks_args(sub.add_parser("tasks", help="List the build pipelines"))

    return parser.parse_args(argv)


def _print_progress(index: int, total: int, task_name: str) -> None:
    print(f"  [{index + 1}/{total}] {task_name}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    if args.command == "tasks":
        return run_tasks(args)

    builder = build_project_builder(
        args.config,
        progress=None if args.quiet else _print_progress,
    )
    return run_build(args, builder)


if __name__ == "__main__":
    sys.exit(main())
