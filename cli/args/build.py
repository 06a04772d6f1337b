from __future__ import annotations

import argparse

from buildserver.core import BUILD_FORMATS, DEFAULT_CHILD_PROCESS_RAM_MB


def add_build_args(parser: argparse.ArgumentParser) -> None:
    """Register the flags of the ``build`` command.

    These map one-to-one onto :class:`buildserver.models.BuildRequest`,
    plus a few options that only make sense on a terminal (config file,
    receipt, log printing).
    """

    parser.add_argument("--input", "-i", required=True, help="Project archive (.aia / .zip) to build")
    parser.add_argument(
        "--output-dir",
        "-o",
        required=True,
        help="Directory that receives the artifact (and a newly created keystore)",
    )
    parser.add_argument("--user", default="anonymous", help="User identity embedded in a new signing key")
    parser.add_argument(
        "--format",
        dest="build_format",
        choices=sorted(BUILD_FORMATS),
        default="apk",
        help="Target package format (default: apk)",
    )
    parser.add_argument(
        "--output-name",
        default=None,
        help="Artifact file name (default: <project name>.<format>)",
    )

    # Mode flags
    parser.add_argument("--companion", action="store_true", help="Build the companion app (all components)")
    parser.add_argument("--emulator", action="store_true", help="Build for the emulator (debuggable)")
    parser.add_argument(
        "--dangerous-permissions",
        action="store_true",
        help="Include permissions Play Store policy treats as dangerous (e.g. SMS)",
    )
    parser.add_argument(
        "--extension",
        dest="extensions",
        action="append",
        default=[],
        metavar="TYPE",
        help="Extra component type to include (repeatable)",
    )

    # Limits / caches
    parser.add_argument(
        "--ram",
        type=int,
        default=None,
        help=f"Memory ceiling for child processes in MB (default: config or {DEFAULT_CHILD_PROCESS_RAM_MB})",
    )
    parser.add_argument("--dex-cache", default=None, help="Directory for cached pre-dexed libraries")

    # Terminal-only
    parser.add_argument("--config", default=None, help="Build server YAML config file")
    parser.add_argument(
        "--receipt",
        action="store_true",
        help="Write build_receipt.json into the output directory",
    )
    parser.add_argument("--show-log", action="store_true", help="Print the rendered build log")
    parser.add_argument("--quiet", action="store_true", help="Do not print per-task progress")
