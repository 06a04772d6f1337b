"""buildserver.tasks.aapt

Resource packaging with aapt (APK) or aapt2 (App Bundle).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from buildserver.framework import BuildContext, TaskEnv, register_task

from ._shared import require_configured
from .keys import EnvKeys


@register_task(
    "run_aapt",
    description="Compile resources and the manifest into resources.ap_ (aapt).",
    requires=[EnvKeys.MANIFEST, EnvKeys.MERGED_RES, EnvKeys.ASSETS_DIR],
    produces=[EnvKeys.RESOURCES_AP, EnvKeys.R_JAVA_DIR],
)
def task_run_aapt(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    android_jar = require_configured(env, env.config.android_jar, "android_jar")
    resources_ap = ctx.tmp_dir / "resources.ap_"
    gen_dir = ctx.tmp_dir / "gen"
    gen_dir.mkdir(parents=True, exist_ok=True)

    cmd = [
        env.config.aapt,
        "package",
        "-f",
        "--auto-add-overlay",
        "-M", str(env.require(EnvKeys.MANIFEST)),
        "-S", str(env.require(EnvKeys.MERGED_RES)),
        "-A", str(env.require(EnvKeys.ASSETS_DIR)),
        "-I", str(android_jar),
        "-F", str(resources_ap),
        "-J", str(gen_dir),
    ]
    env.run_tool(ctx, cmd, label="aapt")

    env.put(EnvKeys.RESOURCES_AP, resources_ap)
    env.put(EnvKeys.R_JAVA_DIR, gen_dir)
    return {"resources": str(resources_ap)}


@register_task(
    "run_aapt2",
    description="Compile and link resources in protobuf format (aapt2).",
    requires=[EnvKeys.MANIFEST, EnvKeys.MERGED_RES, EnvKeys.ASSETS_DIR],
    produces=[EnvKeys.RESOURCES_AP, EnvKeys.R_JAVA_DIR],
)
def task_run_aapt2(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    android_jar = require_configured(env, env.config.android_jar, "android_jar")
    compiled: Path = ctx.tmp_dir / "compiled-res.zip"
    resources_ap = ctx.tmp_dir / "resources.ap_"
    gen_dir = ctx.tmp_dir / "gen"
    gen_dir.mkdir(parents=True, exist_ok=True)

    env.run_tool(
        ctx,
        [env.config.aapt2, "compile", "--dir", str(env.require(EnvKeys.MERGED_RES)), "-o", str(compiled)],
        label="aapt2 compile",
    )
    env.run_tool(
        ctx,
        [
            env.config.aapt2,
            "link",
            "--proto-format",
            "--auto-add-overlay",
            "-o", str(resources_ap),
            "-I", str(android_jar),
            "--manifest", str(env.require(EnvKeys.MANIFEST)),
            "-A", str(env.require(EnvKeys.ASSETS_DIR)),
            "--java", str(gen_dir),
            "-R", str(compiled),
        ],
        label="aapt2 link",
    )

    env.put(EnvKeys.RESOURCES_AP, resources_ap)
    env.put(EnvKeys.R_JAVA_DIR, gen_dir)
    return {"resources": str(resources_ap)}
