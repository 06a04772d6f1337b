from __future__ import annotations

import argparse

from buildserver.core import FORMAT_LABELS
from buildserver.framework import PIPELINES, list_tasks, pipeline_for


def run_tasks(args: argparse.Namespace) -> int:
    formats = [args.build_format] if args.build_format else sorted(PIPELINES)
    for fmt in formats:
        print(f"\n{fmt} ({FORMAT_LABELS.get(fmt, fmt)}):")
        for idx, td in enumerate(list_tasks(pipeline_for(fmt)), start=1):
            print(f"  {idx:>2}. {td.name:<22} {td.description}")
    return 0
