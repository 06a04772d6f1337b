"""Build tasks that need no external toolchain, run directly against a workspace."""

import json
import xml.etree.ElementTree as ET
import zipfile
from pathlib import Path

import pytest

import buildserver.tasks  # noqa: F401
from buildserver.config import BuildServerConfig
from buildserver.errors import TaskFailure
from buildserver.framework import PIPELINES, BuildContext, TaskEnv, check_task_order, get_task, list_tasks
from buildserver.models import Project
from buildserver.tasks.keys import EnvKeys
from buildserver.tasks.resources import convert_color

RUNTIME = "com.google.appinventor.components.runtime"
ANDROID = "{http://schemas.android.com/apk/res/android}"


def _project(root: Path, **props) -> Project:
    properties = {"name": "Foo", "main": "appinventor.ai_test.Foo.Screen1"}
    properties.update(props)
    return Project(
        name="Foo",
        root=root,
        assets_dir=root / "assets",
        source_dir=root / "src",
        build_dir=root / "build",
        main=properties["main"],
        properties=properties,
    )


def _run(name: str, ctx: BuildContext, env: TaskEnv):
    env.current_task = name
    try:
        return get_task(name).func(ctx, env)
    finally:
        env.current_task = None


@pytest.fixture
def runtime(tmp_path: Path) -> Path:
    d = tmp_path / "runtime"
    d.mkdir()
    for lib in ("kawa.jar", "acra-4.4.0.jar", "android.jar"):
        (d / lib).write_bytes(b"jar")
    return d


def test_both_pipelines_are_fully_registered_and_ordered() -> None:
    for fmt, names in PIPELINES.items():
        defs = list_tasks(names)
        assert [d.name for d in defs] == names
        assert check_task_order(defs) == [], fmt
    assert PIPELINES["apk"][-3:] == ["run_apk_builder", "run_zip_align", "run_apk_signer"]
    assert PIPELINES["aab"][-1] == "run_bundletool"
    assert "run_aapt" in PIPELINES["apk"] and "run_aapt2" in PIPELINES["aab"]


def test_component_info_collects_permissions_and_libraries(tmp_path: Path, runtime: Path) -> None:
    ctx = BuildContext.build(
        project=_project(tmp_path),
        build_format="apk",
        component_types={f"{RUNTIME}.Form", f"{RUNTIME}.Texting"},
        block_permissions={"android.permission.CAMERA"},
    )
    env = TaskEnv(config=BuildServerConfig(runtime_dir=runtime))

    _run("read_build_info", ctx, env)
    _run("load_component_info", ctx, env)

    perms = env.require(EnvKeys.PERMISSIONS)
    assert "android.permission.INTERNET" in perms
    assert "android.permission.SEND_SMS" in perms
    assert "android.permission.CAMERA" in perms
    assert "android.permission.RECEIVE_SMS" not in perms
    assert runtime / "kawa.jar" in env.require(EnvKeys.LIBRARIES)


def test_dangerous_permissions_need_the_flag(tmp_path: Path, runtime: Path) -> None:
    ctx = BuildContext.build(
        project=_project(tmp_path),
        build_format="apk",
        component_types={f"{RUNTIME}.Texting"},
        include_dangerous_permissions=True,
    )
    env = TaskEnv(config=BuildServerConfig(runtime_dir=runtime))
    _run("read_build_info", ctx, env)
    _run("load_component_info", ctx, env)
    assert "android.permission.RECEIVE_SMS" in env.require(EnvKeys.PERMISSIONS)


def test_extension_build_info_is_read_from_assets(tmp_path: Path, runtime: Path) -> None:
    ext = tmp_path / "assets" / "external_comps" / "com.example.Ext"
    ext.mkdir(parents=True)
    (ext / "component_build_infos.json").write_text(
        json.dumps([{"type": "com.example.Ext", "permissions": ["android.permission.NFC"], "libraries": ["ext.jar"]}]),
        encoding="utf-8",
    )
    ctx = BuildContext.build(project=_project(tmp_path), build_format="apk", extra_extensions=["com.example.Ext"])
    env = TaskEnv(config=BuildServerConfig(runtime_dir=runtime))

    summary = _run("read_build_info", ctx, env)
    _run("load_component_info", ctx, env)

    assert summary["extensions"] == 1
    assert env.require(EnvKeys.PERMISSIONS) == ["android.permission.NFC"]
    assert env.require(EnvKeys.LIBRARIES) == [ext / "files" / "ext.jar"]


def test_runtime_dir_is_required_for_bundled_libraries(tmp_path: Path) -> None:
    ctx = BuildContext.build(project=_project(tmp_path), build_format="apk", component_types={f"{RUNTIME}.Form"})
    env = TaskEnv()
    _run("read_build_info", ctx, env)
    with pytest.raises(TaskFailure):
        _run("load_component_info", ctx, env)


def test_color_conversion() -> None:
    assert convert_color("&HFF3F51B5", "#FF000000") == "#FF3F51B5"
    assert convert_color("#ff112233", "#FF000000") == "#FF112233"
    assert convert_color(None, "#FF000000") == "#FF000000"
    assert convert_color("purple", "#FF000000") == "#FF000000"


def test_theme_and_manifest(tmp_path: Path) -> None:
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "icon.png").write_bytes(b"png")
    project = _project(tmp_path, icon="icon.png", aname="Foo App", versioncode="7", theme="AppTheme")
    ctx = BuildContext.build(
        project=project,
        build_format="apk",
        form_orientations={"Screen1": "portrait", "Screen2": "landscape"},
        for_emulator=True,
    )
    env = TaskEnv()
    env.put(EnvKeys.PERMISSIONS, ["android.permission.INTERNET"])
    env.put(EnvKeys.ACTIVITIES, ["com.example.ExtActivity"])

    _run("prepare_app_icon", ctx, env)
    _run("xml_config", ctx, env)
    _run("create_manifest", ctx, env)

    assert (tmp_path / "build" / "res" / "drawable" / "ya.png").read_bytes() == b"png"
    colors = ET.parse(tmp_path / "build" / "res" / "values" / "colors.xml").getroot()
    assert {c.get("name") for c in colors} == {"colorPrimary", "colorPrimaryDark", "colorAccent"}
    style = ET.parse(tmp_path / "build" / "res" / "values" / "styles.xml").getroot().find("style")
    assert style.get("parent") == "Theme.AppCompat"

    manifest = ET.parse(env.require(EnvKeys.MANIFEST)).getroot()
    assert manifest.get("package") == "appinventor.ai_test.Foo"
    assert manifest.get(f"{ANDROID}versionCode") == "7"
    assert [p.get(f"{ANDROID}name") for p in manifest.iter("uses-permission")] == ["android.permission.INTERNET"]

    app = manifest.find("application")
    assert app.get(f"{ANDROID}label") == "Foo App"
    assert app.get(f"{ANDROID}debuggable") == "true"
    activities = {a.get(f"{ANDROID}name"): a for a in app.iter("activity")}
    assert activities[".Screen1"].get(f"{ANDROID}screenOrientation") == "portrait"
    assert activities[".Screen1"].find("intent-filter") is not None
    assert activities[".Screen2"].get(f"{ANDROID}screenOrientation") == "landscape"
    assert activities[".Screen2"].find("intent-filter") is None
    assert "com.example.ExtActivity" in activities


def test_assets_aars_and_resource_merge(tmp_path: Path) -> None:
    assets = tmp_path / "assets"
    (assets / "external_comps" / "pkg").mkdir(parents=True)
    (assets / "external_comps" / "pkg" / "component.json").write_text("{}", encoding="utf-8")
    (assets / "kitty.png").write_bytes(b"cat")

    aar = tmp_path / "lib.aar"
    with zipfile.ZipFile(aar, "w") as zf:
        zf.writestr("classes.jar", b"jar")
        zf.writestr("res/values/values.xml", "<resources/>")
        zf.writestr("res/layout/lib.xml", "<lib/>")
    comp_asset = tmp_path / "runtime-asset.txt"
    comp_asset.write_text("asset", encoding="utf-8")

    # project resource overriding the aar's
    (tmp_path / "build" / "res" / "layout").mkdir(parents=True)
    (tmp_path / "build" / "res" / "layout" / "lib.xml").write_text("<project/>", encoding="utf-8")

    ctx = BuildContext.build(project=_project(tmp_path), build_format="apk")
    env = TaskEnv()
    env.put(EnvKeys.NATIVE_LIBS, [])
    env.put(EnvKeys.AAR_LIBRARIES, [aar])
    env.put(EnvKeys.COMPONENT_ASSETS, [comp_asset])
    env.put(EnvKeys.STYLES, None)

    _run("attach_native_libs", ctx, env)
    _run("attach_aar_libs", ctx, env)
    _run("attach_comp_assets", ctx, env)
    _run("merge_resources", ctx, env)

    assert env.require(EnvKeys.NATIVE_LIBS_DIR) is None
    assert [p.name for p in env.require(EnvKeys.AAR_JARS)] == ["lib.jar"]

    out_assets = env.require(EnvKeys.ASSETS_DIR)
    assert (out_assets / "kitty.png").is_file()
    assert (out_assets / "runtime-asset.txt").is_file()
    assert not (out_assets / "external_comps").exists()

    merged = env.require(EnvKeys.MERGED_RES)
    assert (merged / "values" / "values.xml").is_file()
    assert (merged / "layout" / "lib.xml").read_text(encoding="utf-8") == "<project/>"


def test_corrupt_aar_is_a_task_failure(tmp_path: Path) -> None:
    aar = tmp_path / "broken.aar"
    aar.write_bytes(b"not a zip")
    ctx = BuildContext.build(project=_project(tmp_path), build_format="apk")
    env = TaskEnv()
    env.put(EnvKeys.AAR_LIBRARIES, [aar])
    with pytest.raises(TaskFailure) as ei:
        _run("attach_aar_libs", ctx, env)
    assert ei.value.task_name == "attach_aar_libs"


def test_setup_libs_reports_missing_libraries(tmp_path: Path, runtime: Path) -> None:
    ctx = BuildContext.build(project=_project(tmp_path), build_format="apk")
    env = TaskEnv(config=BuildServerConfig(runtime_dir=runtime, android_jar=runtime / "android.jar"))
    env.put(EnvKeys.LIBRARIES, [runtime / "kawa.jar"])
    env.put(EnvKeys.AAR_JARS, [])
    _run("setup_libs", ctx, env)
    assert env.require(EnvKeys.CLASSPATH) == [runtime / "kawa.jar", runtime / "android.jar"]

    env.put(EnvKeys.LIBRARIES, [runtime / "missing.jar"])
    with pytest.raises(TaskFailure):
        _run("setup_libs", ctx, env)


def test_apk_builder_assembles_resources_dex_and_native_libs(tmp_path: Path) -> None:
    tmp = tmp_path / "build" / "tmp"
    tmp.mkdir(parents=True)
    res_ap = tmp / "resources.ap_"
    with zipfile.ZipFile(res_ap, "w") as zf:
        zf.writestr("AndroidManifest.xml", b"<binary manifest>")
        zf.writestr("resources.arsc", b"arsc")
    dex = tmp / "dex"
    dex.mkdir()
    (dex / "classes.dex").write_bytes(b"dex1")
    (dex / "classes2.dex").write_bytes(b"dex2")
    libs = tmp_path / "build" / "libs" / "arm64-v8a"
    libs.mkdir(parents=True)
    (libs / "libfoo.so").write_bytes(b"so")

    ctx = BuildContext.build(project=_project(tmp_path), build_format="apk")
    env = TaskEnv()
    env.put(EnvKeys.RESOURCES_AP, res_ap)
    env.put(EnvKeys.DEX_DIR, dex)
    env.put(EnvKeys.NATIVE_LIBS_DIR, tmp_path / "build" / "libs")

    summary = _run("run_apk_builder", ctx, env)

    with zipfile.ZipFile(env.require(EnvKeys.UNSIGNED_APK)) as zf:
        names = set(zf.namelist())
    assert names == {"AndroidManifest.xml", "resources.arsc", "classes.dex", "classes2.dex", "lib/arm64-v8a/libfoo.so"}
    assert summary["entries"] == 5


def test_signing_without_keystore_fails(tmp_path: Path) -> None:
    ctx = BuildContext.build(project=_project(tmp_path), build_format="apk", keystore_path=None)
    env = TaskEnv()
    env.put(EnvKeys.ALIGNED_APK, tmp_path / "aligned.apk")
    with pytest.raises(TaskFailure) as ei:
        _run("run_apk_signer", ctx, env)
    assert "keystore" in ei.value.reason


def test_missing_tool_is_a_task_failure(tmp_path: Path) -> None:
    ctx = BuildContext.build(project=_project(tmp_path), build_format="apk")
    env = TaskEnv(config=BuildServerConfig(zipalign=str(tmp_path / "no-zipalign")))
    env.put(EnvKeys.UNSIGNED_APK, tmp_path / "unsigned.apk")
    with pytest.raises(TaskFailure) as ei:
        _run("run_zip_align", ctx, env)
    assert "could not be started" in ei.value.reason
    assert "could not be started" in ctx.reporter.system_output


def test_generate_classes_needs_yail_sources(tmp_path: Path) -> None:
    compiler = tmp_path / "yail.jar"
    compiler.write_bytes(b"jar")
    ctx = BuildContext.build(project=_project(tmp_path), build_format="apk")
    env = TaskEnv(config=BuildServerConfig(yail_compiler_jar=compiler))
    env.put(EnvKeys.CLASSPATH, [])
    with pytest.raises(TaskFailure) as ei:
        _run("generate_classes", ctx, env)
    assert ".yail" in ei.value.reason
