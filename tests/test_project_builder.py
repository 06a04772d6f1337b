"""End-to-end builds through ProjectBuilder with test-registered tasks."""

import logging
import threading
import time
from pathlib import Path
from typing import List, Optional

import pytest

from buildserver.builder import ProjectBuilder
from buildserver.config import BuildServerConfig
from buildserver.core import MSG_PROPERTIES_PROBLEM, MSG_SERVER_ERROR, MSG_ZIP_PROBLEM
from buildserver.framework import register_task, unregister_task
from buildserver.models import BuildRequest

from conftest import make_project_zip

SEEN: List[dict] = []


@pytest.fixture(autouse=True)
def _fake_tasks():
    SEEN.clear()

    @register_task("fake_compile")
    def _compile(ctx, env):
        SEEN.append(
            {
                "types": set(ctx.component_types),
                "keystore": ctx.keystore_path,
                "debuggable": ctx.is_debuggable,
                "ram": ctx.child_process_ram_mb,
            }
        )
        ctx.reporter.log(f"{ctx.project.source_dir}/appinventor/ai_test/Foo/Screen1.yail:3:1: warning: unused x")
        return {"ok": True}

    @register_task("fake_package")
    def _package(ctx, env):
        ctx.deploy_dir.mkdir(parents=True, exist_ok=True)
        (ctx.deploy_dir / ctx.output_name).write_bytes(b"PK\x03\x04")

    @register_task("fake_fail")
    def _fail(ctx, env):
        raise env.fail("Screen1.yail has errors")

    @register_task("fake_crash")
    def _crash(ctx, env):
        raise ZeroDivisionError("division by zero")

    @register_task("fake_slow")
    def _slow(ctx, env):
        time.sleep(0.3)

    yield
    for name in ("fake_compile", "fake_package", "fake_fail", "fake_crash", "fake_slow"):
        unregister_task(name)


def _keystore_factory(calls: Optional[list] = None, *, fail: bool = False):
    def _make(user_name, project_root, file_name, *, keytool="keytool"):
        if calls is not None:
            calls.append(user_name)
        if fail:
            return None
        ks = Path(project_root) / file_name
        ks.write_bytes(b"fake keystore")
        return ks

    return _make


def _builder(tmp_path: Path, task_names, **kwargs) -> ProjectBuilder:
    config = kwargs.pop("config", None) or BuildServerConfig(tmp_root=tmp_path / "work")
    return ProjectBuilder(
        config,
        pipelines={"apk": list(task_names), "aab": list(task_names)},
        keystore_factory=kwargs.pop("keystore_factory", _keystore_factory()),
        **kwargs,
    )


def _request(tmp_path: Path, archive: Path, **kwargs) -> BuildRequest:
    return BuildRequest(user_name="alice", archive=archive, output_dir=tmp_path / "out", **kwargs)


def _workspace_is_gone(tmp_path: Path) -> bool:
    work = tmp_path / "work"
    return not work.exists() or list(work.iterdir()) == []


def test_successful_build_publishes_artifact_and_keystore(tmp_path: Path, project_zip: Path) -> None:
    calls: list = []
    progress: list = []
    builder = _builder(
        tmp_path,
        ["fake_compile", "fake_package"],
        keystore_factory=_keystore_factory(calls),
        progress=lambda i, total, name: progress.append(name),
    )

    result = builder.build(_request(tmp_path, project_zip))

    assert result.success, result.detail
    assert result.state == "Succeeded"
    assert result.artifact == tmp_path / "out" / "Foo.apk"
    assert result.artifact.is_file()
    assert result.keystore == tmp_path / "out" / "android.keystore"
    assert calls == ["alice"]
    assert progress == ["fake_compile", "fake_package"]
    assert [r["status"] for r in result.task_records] == ["ok", "ok"]
    assert _workspace_is_gone(tmp_path)

    # the rendered log has no ERROR blocks and no workspace paths
    assert "compiler-ErrorMarker" not in result.output
    assert "compiler-WarningMarker'>WARNING</span>: appinventor/ai_test/Foo/Screen1.yail line 3" in result.output
    assert str(tmp_path / "work") not in result.output

    assert SEEN[0]["types"] == {
        "com.google.appinventor.components.runtime.Form",
        "com.google.appinventor.components.runtime.Button",
    }


def test_output_name_format_and_flags_reach_the_context(tmp_path: Path, project_zip: Path) -> None:
    builder = _builder(tmp_path, ["fake_compile", "fake_package"])
    result = builder.build(
        _request(
            tmp_path,
            project_zip,
            build_format="aab",
            output_file_name="release.aab",
            for_emulator=True,
            extra_extensions=("com.example.Ext",),
            child_process_ram_mb=1024,
        )
    )

    assert result.success
    assert result.artifact == tmp_path / "out" / "release.aab"
    assert SEEN[0]["debuggable"] is True
    assert SEEN[0]["ram"] == 1024
    assert "com.example.Ext" in SEEN[0]["types"]


def test_companion_build_includes_every_builtin_component(tmp_path: Path, project_zip: Path) -> None:
    builder = _builder(tmp_path, ["fake_compile", "fake_package"])
    assert builder.build(_request(tmp_path, project_zip, for_companion=True)).success
    assert "com.google.appinventor.components.runtime.Canvas" in SEEN[0]["types"]


def test_keystore_shipped_in_archive_is_reused(tmp_path: Path) -> None:
    archive = make_project_zip(tmp_path / "in" / "Foo.aia", extra={"android.keystore": "existing"})
    calls: list = []
    builder = _builder(tmp_path, ["fake_compile", "fake_package"], keystore_factory=_keystore_factory(calls))

    result = builder.build(_request(tmp_path, archive))

    assert result.success
    assert calls == []
    assert result.keystore is None
    assert SEEN[0]["keystore"].name == "android.keystore"


def test_keystore_generation_failure_is_not_fatal(tmp_path: Path, project_zip: Path) -> None:
    builder = _builder(tmp_path, ["fake_compile", "fake_package"], keystore_factory=_keystore_factory(fail=True))
    result = builder.build(_request(tmp_path, project_zip))

    assert result.success
    assert result.keystore is None
    assert SEEN[0]["keystore"] is None


def test_missing_project_name_fails_with_properties_message(tmp_path: Path) -> None:
    archive = make_project_zip(tmp_path / "in" / "Foo.aia", name=None)
    result = _builder(tmp_path, ["fake_compile", "fake_package"]).build(_request(tmp_path, archive))

    assert not result.success
    assert result.error == MSG_PROPERTIES_PROBLEM
    assert result.artifact is None
    assert not (tmp_path / "out" / "Foo.apk").exists()
    assert SEEN == []
    assert _workspace_is_gone(tmp_path)


def test_corrupt_archive_fails_with_zip_message(tmp_path: Path) -> None:
    archive = tmp_path / "broken.aia"
    archive.write_bytes(b"garbage")
    result = _builder(tmp_path, ["fake_compile"]).build(_request(tmp_path, archive))

    assert not result.success
    assert result.error == MSG_ZIP_PROBLEM
    assert result.detail
    assert _workspace_is_gone(tmp_path)


def test_task_failure_halts_and_reports_reason(tmp_path: Path, project_zip: Path) -> None:
    builder = _builder(tmp_path, ["fake_compile", "fake_fail", "fake_package"])
    result = builder.build(_request(tmp_path, project_zip))

    assert not result.success
    assert result.state == "Failed"
    assert "Screen1.yail has errors" in result.error
    assert "ERROR: fake_fail failed" in result.output
    assert [r["status"] for r in result.task_records] == ["ok", "failed"]
    assert result.artifact is None
    assert not (tmp_path / "out" / "Foo.apk").exists()
    assert _workspace_is_gone(tmp_path)


def test_task_fault_is_a_generic_server_error(tmp_path: Path, project_zip: Path) -> None:
    result = _builder(tmp_path, ["fake_compile", "fake_crash"]).build(_request(tmp_path, project_zip))

    assert not result.success
    assert result.state == "Faulted"
    assert result.error == MSG_SERVER_ERROR
    assert "ZeroDivisionError" in result.detail
    assert "Traceback" not in result.output
    assert "ZeroDivisionError" not in result.output
    assert _workspace_is_gone(tmp_path)


def test_unknown_format_is_a_server_error(tmp_path: Path, project_zip: Path) -> None:
    result = _builder(tmp_path, ["fake_compile"]).build(_request(tmp_path, project_zip, build_format="ipa"))
    assert not result.success
    assert result.error == MSG_SERVER_ERROR
    assert "IncompleteContextError" in result.detail


def test_build_deadline_faults_the_build(tmp_path: Path, project_zip: Path) -> None:
    config = BuildServerConfig(tmp_root=tmp_path / "work", build_timeout_seconds=0.05)
    builder = _builder(tmp_path, ["fake_slow", "fake_package"], config=config)

    result = builder.build(_request(tmp_path, project_zip))

    assert not result.success
    assert result.state == "Faulted"
    assert "timed out" in result.detail
    assert not (tmp_path / "out" / "Foo.apk").exists()
    assert _workspace_is_gone(tmp_path)


def test_concurrent_builds_do_not_share_state(tmp_path: Path) -> None:
    builder = _builder(tmp_path, ["fake_compile", "fake_package"])
    archives = [
        make_project_zip(tmp_path / "in" / f"P{i}.aia", name=f"P{i}") for i in range(3)
    ]
    results = [None] * len(archives)

    def _run(i: int) -> None:
        req = BuildRequest(user_name="u", archive=archives[i], output_dir=tmp_path / f"out{i}")
        results[i] = builder.build(req)

    threads = [threading.Thread(target=_run, args=(i,)) for i in range(len(archives))]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for i, result in enumerate(results):
        assert result.success
        assert result.artifact == tmp_path / f"out{i}" / f"P{i}.apk"
    assert _workspace_is_gone(tmp_path)


def test_build_logs_its_state_transitions(tmp_path: Path, project_zip: Path, caplog) -> None:
    builder = _builder(tmp_path, ["fake_package"])
    req = BuildRequest(user_name="alice", archive=project_zip, output_dir=tmp_path / "out")

    with caplog.at_level(logging.DEBUG, logger="buildserver.builder"):
        result = builder.build(req)

    assert result.success
    states = [r.getMessage().rsplit(" ", 1)[-1] for r in caplog.records if "build state ->" in r.getMessage()]
    assert states == ["Created", "Extracting", "AnalyzingMetadata", "ContextBuilt", "Running", "Finalizing"]
