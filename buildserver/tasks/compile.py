"""buildserver.tasks.compile

Compile YAIL sources to JVM classes, then dex them (with every library on the
classpath) into ``classes*.dex``.

Dexing a library is the slowest step of most builds and library jars rarely
change, so when the request names a dex cache directory each library is
pre-dexed once and reused by content hash.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from buildserver.core import YAIL_EXTENSION
from buildserver.framework import BuildContext, TaskEnv, register_task

from ._shared import java_cmd, require_configured
from .keys import EnvKeys

logger = logging.getLogger(__name__)

D8_MAIN = "com.android.tools.r8.D8"
KAWA_MAIN = "kawa.repl"


def _sha1(path: Path) -> str:
    h = hashlib.sha1()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


@register_task(
    "generate_classes",
    description="Compile the project's YAIL sources with the Kawa compiler.",
    requires=[EnvKeys.CLASSPATH],
    produces=[EnvKeys.CLASSES_DIR],
)
def task_generate_classes(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    compiler = require_configured(env, env.config.yail_compiler_jar, "yail_compiler_jar")

    sources = sorted(ctx.project.source_dir.rglob(f"*{YAIL_EXTENSION}")) if ctx.project.source_dir.is_dir() else []
    if not sources:
        raise env.fail(f"no {YAIL_EXTENSION} sources found in {ctx.project.source_dir.name}")

    classes_dir = ctx.build_dir / "classes"
    classes_dir.mkdir(parents=True, exist_ok=True)

    classpath: List[Path] = [compiler, *env.require(EnvKeys.CLASSPATH)]
    cmd = [
        *java_cmd(ctx, env),
        "-cp", os.pathsep.join(str(p) for p in classpath),
        KAWA_MAIN,
        "-C",
        "-d", str(classes_dir),
        "-P", f"{ctx.project.package_name}.",
        "--module-static-run",
        *[str(s) for s in sources],
    ]
    env.run_tool(ctx, cmd, cwd=ctx.project.root, label="YAIL compiler")

    env.put(EnvKeys.CLASSES_DIR, classes_dir)
    return {"sources": len(sources)}


def _predex(
    ctx: BuildContext,
    env: TaskEnv,
    d8_base: List[str],
    lib: Path,
    cache_dir: Path,
) -> Path:
    """Return a dexed copy of *lib* from the cache, dexing it on a miss."""
    cached = cache_dir / f"{lib.stem}-{_sha1(lib)}.zip"
    if cached.is_file():
        logger.debug("dex cache hit for %s", lib.name)
        return cached

    staging = ctx.tmp_dir / "predex" / cached.name
    staging.parent.mkdir(parents=True, exist_ok=True)
    env.run_tool(ctx, [*d8_base, "--output", str(staging), str(lib)], label=f"d8 ({lib.name})")

    cache_dir.mkdir(parents=True, exist_ok=True)
    # another build may be filling the same entry; last writer wins
    tmp = cached.with_suffix(f".{os.getpid()}.tmp")
    shutil.copy2(staging, tmp)
    os.replace(tmp, cached)
    return cached


@register_task(
    "run_multidex",
    description="Dex compiled classes and libraries (d8, multidex).",
    requires=[EnvKeys.CLASSES_DIR, EnvKeys.CLASSPATH],
    produces=[EnvKeys.DEX_DIR],
)
def task_run_multidex(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    d8_jar = require_configured(env, env.config.d8_jar, "d8_jar")
    android_jar = require_configured(env, env.config.android_jar, "android_jar")

    dex_dir = ctx.tmp_dir / "dex"
    if dex_dir.exists():
        shutil.rmtree(dex_dir)
    dex_dir.mkdir(parents=True)

    d8_base = [
        *java_cmd(ctx, env),
        "-cp", str(d8_jar),
        D8_MAIN,
        "--release",
        "--min-api", str(env.config.min_sdk),
        "--lib", str(android_jar),
    ]

    libs = [Path(p) for p in env.require(EnvKeys.CLASSPATH) if Path(p) != android_jar]
    cache_dir: Optional[Path] = ctx.dex_cache_path
    inputs: List[str] = []
    for lib in libs:
        inputs.append(str(_predex(ctx, env, d8_base, lib, cache_dir) if cache_dir else lib))

    class_files = sorted(str(p) for p in Path(env.require(EnvKeys.CLASSES_DIR)).rglob("*.class"))
    env.run_tool(ctx, [*d8_base, "--output", str(dex_dir), *class_files, *inputs], label="d8")

    dex_files = sorted(dex_dir.glob("classes*.dex"))
    if not dex_files:
        raise env.fail("d8 produced no dex files")

    env.put(EnvKeys.DEX_DIR, dex_dir)
    return {"dex_files": len(dex_files), "libraries": len(libs), "dex_cache": bool(cache_dir)}
