"""buildserver.tasks.package

Final packaging: assemble, align and sign an APK, or build and sign an App
Bundle. Signed artifacts land in ``build/deploy/``.
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Any, Dict, Optional

from buildserver.core import KEYSTORE_ALIAS, KEYSTORE_PASSWORD
from buildserver.framework import BuildContext, TaskEnv, register_task

from ._shared import java_cmd, require_configured, require_file
from .keys import EnvKeys

logger = logging.getLogger(__name__)


def _add_tree(zf: zipfile.ZipFile, src_root: Optional[Path], prefix: str) -> int:
    if src_root is None or not Path(src_root).is_dir():
        return 0
    added = 0
    for path in sorted(Path(src_root).rglob("*")):
        if path.is_file():
            zf.write(path, f"{prefix}{path.relative_to(src_root).as_posix()}")
            added += 1
    return added


def _keystore_or_fail(ctx: BuildContext, env: TaskEnv) -> Path:
    if ctx.keystore_path is None or not ctx.keystore_path.is_file():
        raise env.fail("no signing keystore is available")
    return ctx.keystore_path


@register_task(
    "run_apk_builder",
    description="Assemble resources, dex files and native libraries into an unsigned APK.",
    requires=[EnvKeys.RESOURCES_AP, EnvKeys.DEX_DIR, EnvKeys.NATIVE_LIBS_DIR],
    produces=[EnvKeys.UNSIGNED_APK],
)
def task_run_apk_builder(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    resources_ap = require_file(env, env.require(EnvKeys.RESOURCES_AP), "packaged resources")
    unsigned = ctx.tmp_dir / f"{ctx.project.name}-unsigned.apk"

    entries = 0
    with zipfile.ZipFile(unsigned, "w", compression=zipfile.ZIP_DEFLATED) as out:
        with zipfile.ZipFile(resources_ap, "r") as res:
            for info in res.infolist():
                out.writestr(info, res.read(info.filename))
                entries += 1
        for dex in sorted(Path(env.require(EnvKeys.DEX_DIR)).glob("classes*.dex")):
            out.write(dex, dex.name)
            entries += 1
        entries += _add_tree(out, env.require(EnvKeys.NATIVE_LIBS_DIR), "lib/")

    env.put(EnvKeys.UNSIGNED_APK, unsigned)
    return {"entries": entries}


@register_task(
    "run_zip_align",
    description="Align the unsigned APK on 4-byte boundaries.",
    requires=[EnvKeys.UNSIGNED_APK],
    produces=[EnvKeys.ALIGNED_APK],
)
def task_run_zip_align(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    unsigned: Path = env.require(EnvKeys.UNSIGNED_APK)
    aligned = ctx.tmp_dir / f"{ctx.project.name}-aligned.apk"
    env.run_tool(ctx, [env.config.zipalign, "-f", "4", str(unsigned), str(aligned)], label="zipalign")
    env.put(EnvKeys.ALIGNED_APK, aligned)
    return {"aligned": str(aligned)}


@register_task(
    "run_apk_signer",
    description="Sign the aligned APK into build/deploy.",
    requires=[EnvKeys.ALIGNED_APK],
    produces=[EnvKeys.ARTIFACT],
)
def task_run_apk_signer(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    keystore = _keystore_or_fail(ctx, env)
    ctx.deploy_dir.mkdir(parents=True, exist_ok=True)
    signed = ctx.deploy_dir / ctx.output_name

    env.run_tool(
        ctx,
        [
            env.config.apksigner,
            "sign",
            "--ks", str(keystore),
            "--ks-key-alias", KEYSTORE_ALIAS,
            "--ks-pass", f"pass:{KEYSTORE_PASSWORD}",
            "--out", str(signed),
            str(env.require(EnvKeys.ALIGNED_APK)),
        ],
        label="apksigner",
    )
    env.put(EnvKeys.ARTIFACT, signed)
    return {"artifact": signed.name}


def _write_base_module(ctx: BuildContext, env: TaskEnv, path: Path) -> int:
    """Lay out the bundle's base module: manifest/, dex/, res/, assets/, lib/."""
    entries = 0
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as out:
        with zipfile.ZipFile(env.require(EnvKeys.RESOURCES_AP), "r") as res:
            for info in res.infolist():
                if info.is_dir():
                    continue
                name = info.filename
                if name == "AndroidManifest.xml":
                    name = "manifest/AndroidManifest.xml"
                out.writestr(name, res.read(info.filename))
                entries += 1
        for dex in sorted(Path(env.require(EnvKeys.DEX_DIR)).glob("classes*.dex")):
            out.write(dex, f"dex/{dex.name}")
            entries += 1
        entries += _add_tree(out, env.get(EnvKeys.ASSETS_DIR), "assets/")
        entries += _add_tree(out, env.get(EnvKeys.NATIVE_LIBS_DIR), "lib/")
    return entries


@register_task(
    "run_bundletool",
    description="Build the App Bundle with bundletool and sign it into build/deploy.",
    requires=[EnvKeys.RESOURCES_AP, EnvKeys.DEX_DIR],
    produces=[EnvKeys.ARTIFACT],
)
def task_run_bundletool(ctx: BuildContext, env: TaskEnv) -> Dict[str, Any]:
    bundletool = require_configured(env, env.config.bundletool_jar, "bundletool_jar")
    keystore = _keystore_or_fail(ctx, env)

    base_zip = ctx.tmp_dir / "base.zip"
    entries = _write_base_module(ctx, env, base_zip)

    unsigned = ctx.tmp_dir / f"{ctx.project.name}-unsigned.aab"
    if unsigned.exists():
        unsigned.unlink()
    env.run_tool(
        ctx,
        [*java_cmd(ctx, env), "-jar", str(bundletool), "build-bundle", f"--modules={base_zip}", f"--output={unsigned}"],
        label="bundletool",
    )

    ctx.deploy_dir.mkdir(parents=True, exist_ok=True)
    signed = ctx.deploy_dir / ctx.output_name
    env.run_tool(
        ctx,
        [
            env.config.jarsigner,
            "-sigalg", "SHA256withRSA",
            "-digestalg", "SHA-256",
            "-keystore", str(keystore),
            "-storepass", KEYSTORE_PASSWORD,
            "-signedjar", str(signed),
            str(unsigned),
            KEYSTORE_ALIAS,
        ],
        label="jarsigner",
    )
    env.put(EnvKeys.ARTIFACT, signed)
    return {"artifact": signed.name, "module_entries": entries}
