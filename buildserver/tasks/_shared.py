from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Optional

from buildserver.framework import BuildContext, TaskEnv


def runtime_path(env: TaskEnv, rel: str, *, base: Optional[str] = None) -> Path:
    """Resolve a build-info path against its extension dir or the runtime dir."""
    p = Path(rel)
    if p.is_absolute():
        return p
    if base:
        return Path(base) / p
    runtime_dir = env.config.runtime_dir
    if runtime_dir is None:
        raise env.fail(f"runtime files directory is not configured (needed for {rel})")
    return Path(runtime_dir) / p


def require_file(env: TaskEnv, path: Path, what: str) -> Path:
    if not Path(path).exists():
        raise env.fail(f"{what} not found: {path}")
    return Path(path)


def require_configured(env: TaskEnv, value: Optional[Path], setting: str) -> Path:
    if value is None:
        raise env.fail(f"build server setting '{setting}' is not configured")
    return require_file(env, Path(value), setting)


def java_cmd(ctx: BuildContext, env: TaskEnv) -> List[str]:
    return [env.config.java, f"-Xmx{ctx.child_process_ram_mb}m", "-Dfile.encoding=UTF-8"]


def copy_file(src: Path, dst: Path) -> Path:
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)
    return dst
