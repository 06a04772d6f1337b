"""buildserver.tasks.manifest

AndroidManifest.xml generation.

One ``<activity>`` per screen (the main screen carries the launcher intent
filter), the permissions collected by ``load_component_info``, and any
activities declared by components.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, List, Optional

from buildserver.framework import BuildContext, TaskEnv, register_task

from .keys import EnvKeys

ANDROID_NS = "http://schemas.android.com/apk/res/android"

ET.register_namespace("android", ANDROID_NS)

_ORIENTATIONS = {
    "unspecified",
    "portrait",
    "landscape",
    "sensor",
    "user",
    "behind",
    "nosensor",
    "fullSensor",
    "reversePortrait",
    "reverseLandscape",
    "sensorPortrait",
    "sensorLandscape",
}


def _a(name: str) -> str:
    return f"{{{ANDROID_NS}}}{name}"


def _int_property(value: Optional[str], default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _screen_names(ctx: BuildContext) -> List[str]:
    main = ctx.project.main_form_name
    others = sorted(n for n in ctx.form_orientations if n != main)
    return [main, *others]


def build_manifest(ctx: BuildContext, env: TaskEnv) -> ET.Element:
    project = ctx.project
    package = project.package_name

    manifest = ET.Element(
        "manifest",
        {
            "package": package,
            _a("versionCode"): str(_int_property(project.get("versioncode"), 1)),
            _a("versionName"): project.get("versionname") or "1.0",
        },
    )
    ET.SubElement(
        manifest,
        "uses-sdk",
        {
            _a("minSdkVersion"): str(env.config.min_sdk),
            _a("targetSdkVersion"): str(env.config.target_sdk),
        },
    )
    for permission in env.require(EnvKeys.PERMISSIONS):
        ET.SubElement(manifest, "uses-permission", {_a("name"): permission})

    app_attrs = {
        _a("label"): project.get("aname") or project.name,
        _a("theme"): "@style/AppTheme",
    }
    if env.get(EnvKeys.APP_ICON):
        app_attrs[_a("icon")] = "@drawable/ya"
    if ctx.is_debuggable:
        app_attrs[_a("debuggable")] = "true"
    application = ET.SubElement(manifest, "application", app_attrs)

    main = project.main_form_name
    for screen in _screen_names(ctx):
        orientation = ctx.form_orientations.get(screen, "unspecified")
        if orientation not in _ORIENTATIONS:
            ctx.reporter.warn(f"screen {screen} has unknown orientation {orientation}")
            orientation = "unspecified"
        activity = ET.SubElement(
            application,
            "activity",
            {
                _a("name"): f".{screen}",
                _a("screenOrientation"): orientation,
                _a("configChanges"): "orientation|screenSize|keyboardHidden",
                _a("exported"): "true" if screen == main else "false",
            },
        )
        if screen == main:
            intent = ET.SubElement(activity, "intent-filter")
            ET.SubElement(intent, "action", {_a("name"): "android.intent.action.MAIN"})
            ET.SubElement(intent, "category", {_a("name"): "android.intent.category.LAUNCHER"})

    for activity_name in env.require(EnvKeys.ACTIVITIES):
        ET.SubElement(application, "activity", {_a("name"): activity_name, _a("exported"): "false"})

    return manifest


@register_task(
    "create_manifest",
    description="Write AndroidManifest.xml.",
    requires=[EnvKeys.PERMISSIONS, EnvKeys.ACTIVITIES],
    produces=[EnvKeys.MANIFEST],
)
def task_create_manifest(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    root = build_manifest(ctx, env)
    path: Path = ctx.build_dir / "AndroidManifest.xml"
    path.parent.mkdir(parents=True, exist_ok=True)
    ET.ElementTree(root).write(path, encoding="utf-8", xml_declaration=True)

    env.put(EnvKeys.MANIFEST, path)
    return {
        "package": ctx.project.package_name,
        "screens": len(_screen_names(ctx)),
        "permissions": len(env.require(EnvKeys.PERMISSIONS)),
    }
