from __future__ import annotations

import argparse

from buildserver.core import BUILD_FORMATS


def add_tasks_args(parser: argparse.ArgumentParser) -> None:
    """Register the flags of the ``tasks`` command (pipeline listing)."""
    parser.add_argument(
        "--format",
        dest="build_format",
        choices=sorted(BUILD_FORMATS),
        default=None,
        help="Only show the pipeline for this format",
    )
