"""buildserver.tasks.resources

Android resource preparation: app icon, theme XML, merged res tree and the
compile classpath.
"""

from __future__ import annotations

import logging
import re
import shutil
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, List, Optional

from buildserver.framework import BuildContext, TaskEnv, register_task

from ._shared import copy_file, require_configured
from .keys import EnvKeys

logger = logging.getLogger(__name__)

ICON_RES_PATH = "res/drawable/ya.png"

DEFAULT_PRIMARY = "#FF3F51B5"
DEFAULT_PRIMARY_DARK = "#FF303F9F"
DEFAULT_ACCENT = "#FFFF4081"

_THEME_PARENTS = {
    "Classic": "Theme.AppCompat.Light.NoActionBar",
    "AppTheme.Light.DarkActionBar": "Theme.AppCompat.Light.DarkActionBar",
    "AppTheme.Light": "Theme.AppCompat.Light",
    "AppTheme": "Theme.AppCompat",
}

_AI_COLOR = re.compile(r"^&H([0-9A-Fa-f]{8})$")
_HEX_COLOR = re.compile(r"^#([0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$")


def convert_color(value: Optional[str], default: str) -> str:
    """Turn a project color (``&HFF3F51B5``) into an Android one (``#FF3F51B5``)."""
    if not value:
        return default
    value = value.strip()
    m = _AI_COLOR.match(value)
    if m:
        return "#" + m.group(1).upper()
    if _HEX_COLOR.match(value):
        return value.upper()
    logger.warning("ignoring malformed color %r", value)
    return default


def _write_xml(root: ET.Element, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    ET.ElementTree(root).write(path, encoding="utf-8", xml_declaration=True)
    return path


@register_task(
    "prepare_app_icon",
    description="Copy the project icon into the drawable resources.",
    produces=[EnvKeys.APP_ICON],
)
def task_prepare_app_icon(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    icon_name = ctx.project.get("icon")
    dst = ctx.build_dir / ICON_RES_PATH

    if icon_name:
        src = ctx.project.assets_dir / icon_name
        if src.is_file():
            copy_file(src, dst)
            env.put(EnvKeys.APP_ICON, dst)
            return {"icon": icon_name}
        ctx.reporter.warn(f"app icon {icon_name} not found in assets; using the default icon")

    default_icon = env.config.runtime_dir / "ya.png" if env.config.runtime_dir else None
    if default_icon is not None and default_icon.is_file():
        copy_file(default_icon, dst)
        env.put(EnvKeys.APP_ICON, dst)
        return {"icon": "default"}

    env.put(EnvKeys.APP_ICON, None)
    return {"icon": None}


@register_task(
    "xml_config",
    description="Write colors.xml and styles.xml for the app theme.",
    produces=[EnvKeys.STYLES],
)
def task_xml_config(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    values_dir = ctx.build_dir / "res" / "values"
    project = ctx.project

    colors = {
        "colorPrimary": convert_color(project.get("color.primary"), DEFAULT_PRIMARY),
        "colorPrimaryDark": convert_color(project.get("color.primary.dark"), DEFAULT_PRIMARY_DARK),
        "colorAccent": convert_color(project.get("color.accent"), DEFAULT_ACCENT),
    }

    res = ET.Element("resources")
    for name, value in colors.items():
        ET.SubElement(res, "color", name=name).text = value
    _write_xml(res, values_dir / "colors.xml")

    theme = project.get("theme") or "Classic"
    parent = _THEME_PARENTS.get(theme)
    if parent is None:
        ctx.reporter.warn(f"unknown theme {theme}; falling back to Classic")
        parent = _THEME_PARENTS["Classic"]

    styles = ET.Element("resources")
    style = ET.SubElement(styles, "style", name="AppTheme", parent=parent)
    for name in colors:
        ET.SubElement(style, "item", name=name).text = f"@color/{name}"
    styles_path = _write_xml(styles, values_dir / "styles.xml")

    env.put(EnvKeys.STYLES, styles_path)
    return {"theme": theme, **colors}


def _copy_tree(src: Path, dst: Path) -> int:
    copied = 0
    for path in sorted(src.rglob("*")):
        if path.is_file():
            copy_file(path, dst / path.relative_to(src))
            copied += 1
    return copied


@register_task(
    "merge_resources",
    description="Merge library and project resources into one res tree.",
    requires=[EnvKeys.AAR_RES_DIRS, EnvKeys.STYLES],
    produces=[EnvKeys.MERGED_RES],
)
def task_merge_resources(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    merged = ctx.tmp_dir / "merged-res"
    if merged.exists():
        shutil.rmtree(merged)
    merged.mkdir(parents=True)

    # library resources first so the project's own files win
    files = 0
    aar_dirs: List[Path] = env.require(EnvKeys.AAR_RES_DIRS)
    for res_dir in aar_dirs:
        files += _copy_tree(res_dir, merged)

    project_res = ctx.build_dir / "res"
    if project_res.is_dir():
        files += _copy_tree(project_res, merged)

    env.put(EnvKeys.MERGED_RES, merged)
    return {"res_dirs": len(aar_dirs) + 1, "files": files}


@register_task(
    "setup_libs",
    description="Assemble the compile classpath.",
    requires=[EnvKeys.LIBRARIES, EnvKeys.AAR_JARS],
    produces=[EnvKeys.CLASSPATH],
)
def task_setup_libs(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    android_jar = require_configured(env, env.config.android_jar, "android_jar")

    classpath: List[Path] = []
    missing: List[str] = []
    for lib in list(env.require(EnvKeys.LIBRARIES)) + list(env.require(EnvKeys.AAR_JARS)):
        if Path(lib).is_file():
            classpath.append(Path(lib))
        else:
            missing.append(str(lib))
    if missing:
        raise env.fail(f"missing component libraries: {', '.join(missing)}")

    classpath.append(android_jar)
    env.put(EnvKeys.CLASSPATH, classpath)
    return {"entries": len(classpath)}
