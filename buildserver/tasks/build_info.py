"""buildserver.tasks.build_info

Per-component build requirements.

Each component type may need permissions, jar/aar libraries, native
libraries, assets and extra activities. Built-in requirements ship with the
build server (``component_build_info.json``); extension packages carry their
own ``component_build_infos.json`` next to their ``component(s).json``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from buildserver.analysis.catalog import external_component_dirs
from buildserver.core import COMPONENT_BUILD_INFO_JSON, EXTERNAL_BUILD_INFOS_JSON
from buildserver.framework import BuildContext, TaskEnv, register_task

from ._shared import runtime_path
from .keys import EnvKeys

logger = logging.getLogger(__name__)

_LIST_FIELDS = ("permissions", "dangerousPermissions", "libraries", "aarLibraries", "native", "assets", "activities")

# Extension packages store their files under <ext_dir>/files/.
_EXT_FILES_DIR = "files"


def _normalize_entry(raw: Dict[str, Any], *, base: Optional[str]) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"type": str(raw["type"]), "_base": base}
    for key in _LIST_FIELDS:
        val = raw.get(key) or []
        entry[key] = [str(v) for v in val] if isinstance(val, list) else []
    return entry


def load_build_infos(path: Path, *, base: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"build info must be a JSON array or object: {path}")
    out: Dict[str, Dict[str, Any]] = {}
    for raw in data:
        if isinstance(raw, dict) and raw.get("type"):
            out[str(raw["type"])] = _normalize_entry(raw, base=base)
    return out


@register_task(
    "read_build_info",
    description="Load built-in and extension component build requirements.",
    produces=[EnvKeys.BUILD_INFO],
)
def task_read_build_info(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    infos = load_build_infos(COMPONENT_BUILD_INFO_JSON)

    extensions = 0
    for ext_dir in external_component_dirs(ctx.project.assets_dir):
        for name in (EXTERNAL_BUILD_INFOS_JSON, "component_build_info.json"):
            path = ext_dir / name
            if path.exists():
                try:
                    infos.update(load_build_infos(path, base=str(ext_dir / _EXT_FILES_DIR)))
                except (ValueError, KeyError) as e:
                    raise env.fail(f"invalid build info in extension {ext_dir.name}: {e}") from e
                extensions += 1
                break

    env.put(EnvKeys.BUILD_INFO, infos)
    return {"component_infos": len(infos), "extensions": extensions}


@register_task(
    "load_component_info",
    description="Collect permissions, libraries and assets of the required components.",
    requires=[EnvKeys.BUILD_INFO],
    produces=[
        EnvKeys.PERMISSIONS,
        EnvKeys.LIBRARIES,
        EnvKeys.AAR_LIBRARIES,
        EnvKeys.NATIVE_LIBS,
        EnvKeys.COMPONENT_ASSETS,
        EnvKeys.ACTIVITIES,
    ],
)
def task_load_component_info(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    infos: Dict[str, Dict[str, Any]] = env.require(EnvKeys.BUILD_INFO)

    permissions: Set[str] = set(ctx.extra_permissions)
    libraries: List[Path] = []
    aars: List[Path] = []
    native: List[Path] = []
    assets: List[Path] = []
    activities: List[str] = []

    def _add(target: List[Path], entry: Dict[str, Any], key: str) -> None:
        for rel in entry[key]:
            p = runtime_path(env, rel, base=entry.get("_base"))
            if p not in target:
                target.append(p)

    for ctype in sorted(ctx.component_types):
        entry = infos.get(ctype)
        if entry is None:
            continue
        permissions.update(entry["permissions"])
        if ctx.include_dangerous_permissions:
            permissions.update(entry["dangerousPermissions"])
        _add(libraries, entry, "libraries")
        _add(aars, entry, "aarLibraries")
        _add(native, entry, "native")
        _add(assets, entry, "assets")
        for act in entry["activities"]:
            if act not in activities:
                activities.append(act)

    env.put(EnvKeys.PERMISSIONS, sorted(permissions))
    env.put(EnvKeys.LIBRARIES, libraries)
    env.put(EnvKeys.AAR_LIBRARIES, aars)
    env.put(EnvKeys.NATIVE_LIBS, native)
    env.put(EnvKeys.COMPONENT_ASSETS, assets)
    env.put(EnvKeys.ACTIVITIES, activities)

    return {
        "components": len(ctx.component_types),
        "permissions": len(permissions),
        "libraries": len(libraries),
        "aar_libraries": len(aars),
    }
