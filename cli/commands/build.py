from __future__ import annotations

import argparse
from pathlib import Path

from buildserver.builder import ProjectBuilder
from buildserver.io import write_json_atomic
from buildserver.models import BuildRequest, Result

RECEIPT_FILE_NAME = "build_receipt.json"


def request_from_args(args: argparse.Namespace, *, default_ram_mb: int) -> BuildRequest:
    return BuildRequest(
        user_name=str(args.user),
        archive=Path(args.input).expanduser().resolve(),
        output_dir=Path(args.output_dir).expanduser().resolve(),
        build_format=str(args.build_format),
        output_file_name=args.output_name,
        for_companion=bool(args.companion),
        for_emulator=bool(args.emulator),
        include_dangerous_permissions=bool(args.dangerous_permissions),
        extra_extensions=tuple(args.extensions or ()),
        child_process_ram_mb=int(args.ram) if args.ram else int(default_ram_mb),
        dex_cache_path=Path(args.dex_cache).expanduser() if args.dex_cache else None,
    )


def write_receipt(req: BuildRequest, result: Result) -> Path:
    path = req.output_dir / RECEIPT_FILE_NAME
    write_json_atomic(
        path,
        {
            "request": {
                "user": req.user_name,
                "archive": str(req.archive),
                "format": req.build_format,
                "for_companion": req.for_companion,
                "for_emulator": req.for_emulator,
                "include_dangerous_permissions": req.include_dangerous_permissions,
                "extensions": list(req.extra_extensions),
            },
            "result": result.as_dict(),
        },
    )
    return path


def run_build(args: argparse.Namespace, builder: ProjectBuilder) -> int:
    req = request_from_args(args, default_ram_mb=builder.config.child_process_ram_mb)
    if not req.archive.is_file():
        raise SystemExit(f"Project archive not found: {req.archive}")

    print(f"Building {req.archive.name} ({req.build_format}) ...")
    result = builder.build(req)

    if args.show_log and result.output:
        print("\n--- build log ---")
        print(result.output)
        print("-----------------\n")

    if result.success:
        print(f"  Artifact : {result.artifact or '(none)'}")
        if result.keystore:
            print(f"  Keystore : {result.keystore}")
    else:
        print(f"Build failed ({result.state}): {result.error}")

    if args.receipt:
        receipt = write_receipt(req, result)
        print(f"  Receipt  : {receipt}")

    return 0 if result.success else 1
