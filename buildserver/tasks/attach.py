"""buildserver.tasks.attach

Attach component payloads to the build tree: native libraries, Android
archive (aar) libraries, and assets.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from buildserver.archive import extract_project_files
from buildserver.core import EXTERNAL_COMPS_DIR
from buildserver.errors import ExtractionError
from buildserver.framework import BuildContext, TaskEnv, register_task

from ._shared import copy_file, require_file
from .keys import EnvKeys

logger = logging.getLogger(__name__)

DEFAULT_ABI = "armeabi-v7a"
KNOWN_ABIS = ("armeabi", "armeabi-v7a", "arm64-v8a", "x86", "x86_64")


def _abi_for(lib: Path) -> str:
    """Native libs are listed as ``<abi>/libfoo.so``; bare names default to 32-bit arm."""
    parent = lib.parent.name
    return parent if parent in KNOWN_ABIS else DEFAULT_ABI


@register_task(
    "attach_native_libs",
    description="Copy native libraries into lib/<abi>/.",
    requires=[EnvKeys.NATIVE_LIBS],
    produces=[EnvKeys.NATIVE_LIBS_DIR],
)
def task_attach_native_libs(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    libs_dir = ctx.build_dir / "libs"
    native: List[Path] = env.require(EnvKeys.NATIVE_LIBS)

    abis = set()
    for lib in native:
        src = require_file(env, Path(lib), "native library")
        abi = _abi_for(src)
        copy_file(src, libs_dir / abi / src.name)
        abis.add(abi)

    env.put(EnvKeys.NATIVE_LIBS_DIR, libs_dir if native else None)
    return {"native_libs": len(native), "abis": sorted(abis)}


@register_task(
    "attach_aar_libs",
    description="Unpack aar libraries into resource directories and jars.",
    requires=[EnvKeys.AAR_LIBRARIES],
    produces=[EnvKeys.AAR_RES_DIRS, EnvKeys.AAR_JARS],
)
def task_attach_aar_libs(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    aar_root = ctx.tmp_dir / "aars"
    res_dirs: List[Path] = []
    jars: List[Path] = []

    for aar in env.require(EnvKeys.AAR_LIBRARIES):
        src = require_file(env, Path(aar), "aar library")
        dest = aar_root / src.stem
        try:
            extract_project_files(src, dest)
        except ExtractionError as e:
            raise env.fail(f"could not unpack {src.name}: {e}") from e

        if (dest / "res").is_dir():
            res_dirs.append(dest / "res")
        classes = dest / "classes.jar"
        if classes.is_file():
            # two aars both ship classes.jar; keep them apart by name
            renamed = classes.with_name(f"{src.stem}.jar")
            classes.rename(renamed)
            jars.append(renamed)
        jars.extend(sorted((dest / "libs").glob("*.jar")))

    env.put(EnvKeys.AAR_RES_DIRS, res_dirs)
    env.put(EnvKeys.AAR_JARS, jars)
    return {"aars": len(res_dirs), "jars": len(jars)}


@register_task(
    "attach_comp_assets",
    description="Collect project and component assets into one directory.",
    requires=[EnvKeys.COMPONENT_ASSETS],
    produces=[EnvKeys.ASSETS_DIR],
)
def task_attach_comp_assets(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    out_dir = ctx.build_dir / "assets"
    out_dir.mkdir(parents=True, exist_ok=True)

    project_assets = 0
    src_root = ctx.project.assets_dir
    if src_root.is_dir():
        for path in sorted(src_root.rglob("*")):
            rel = path.relative_to(src_root)
            if not path.is_file() or rel.parts[0] == EXTERNAL_COMPS_DIR:
                continue
            copy_file(path, out_dir / rel)
            project_assets += 1

    component_assets = 0
    for asset in env.require(EnvKeys.COMPONENT_ASSETS):
        src = require_file(env, Path(asset), "component asset")
        dst = out_dir / src.name
        if dst.exists():
            logger.info("component asset %s shadows a project asset", src.name)
        copy_file(src, dst)
        component_assets += 1

    env.put(EnvKeys.ASSETS_DIR, out_dir)
    return {"project_assets": project_assets, "component_assets": component_assets}
