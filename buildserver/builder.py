"""buildserver.builder

The build invocation boundary.

:class:`ProjectBuilder` turns one :class:`~buildserver.models.BuildRequest`
into one :class:`~buildserver.models.Result`. It owns the per-build state
machine::

    Created -> Extracting -> AnalyzingMetadata -> ContextBuilt -> Running
            -> Succeeded | Failed | Faulted -> Finalizing -> Done

Why this exists
---------------
Every step below the boundary raises freely (extraction, metadata, analysis,
tasks). Exactly one place converts those errors into a failing ``Result`` with
a generic user message, logs operator detail, and makes sure the workspace is
gone before the caller sees the outcome. Nothing about a build is stored on
the builder itself, so one instance can serve concurrent builds.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence

import buildserver.tasks  # noqa: F401  (registers the build tasks)
from buildserver.analysis import analyze_project_files
from buildserver.archive import extract_project_files
from buildserver.config import BuildServerConfig
from buildserver.core import (
    BUILD_TMP_DIR,
    KEYSTORE_FILE_NAME,
    MSG_PROPERTIES_PROBLEM,
    MSG_SERVER_ERROR,
    MSG_ZIP_PROBLEM,
    PROJECT_DIRECTORY,
)
from buildserver.errors import ExtractionError, MissingProjectMetadataError, TaskFault
from buildserver.framework import PIPELINES, BuildContext, BuildReporter, TaskEnv, execute_pipeline
from buildserver.framework.reporter import ProgressCallback
from buildserver.models import BuildRequest, BuildState, Project, Result
from buildserver.output_log import process_compiler_output
from buildserver.project import read_project
from buildserver.publish import publish_artifacts
from buildserver.toolchain.keytool import create_keystore
from buildserver.workspace import Workspace

logger = logging.getLogger(__name__)

KeystoreFactory = Callable[..., Optional[Path]]


def source_path_prefixes(root: Path, project: Optional[Project] = None) -> List[str]:
    """Workspace path prefixes the compiler output may mention."""
    prefixes = [str(root / PROJECT_DIRECTORY / ".." / "src") + "/", str(root / "src") + "/"]
    if project is not None:
        prefixes.append(str(project.source_dir) + "/")
    return prefixes


class ProjectBuilder:
    """Build one project archive into a signed package.

    Callers should prefer building this through
    :func:`buildserver.wiring.build_project_builder`.
    """

    def __init__(
        self,
        config: Optional[BuildServerConfig] = None,
        *,
        pipelines: Optional[Mapping[str, Sequence[str]]] = None,
        keystore_factory: KeystoreFactory = create_keystore,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._config = config or BuildServerConfig()
        self._pipelines = dict(PIPELINES if pipelines is None else pipelines)
        self._keystore_factory = keystore_factory
        self._progress = progress

    @property
    def config(self) -> BuildServerConfig:
        return self._config

    def build(self, request: BuildRequest) -> Result:
        """Run one build. Never raises; every failure becomes a failing Result."""
        logger.info("build requested by %s for %s (%s)", request.user_name, request.archive, request.build_format)
        try:
            workspace = Workspace.create(self._config.tmp_root)
        except Exception as e:
            logger.exception("could not allocate a workspace")
            return Result.failing("", MSG_SERVER_ERROR, detail=f"{type(e).__name__}: {e}")

        try:
            with workspace:
                result = self._build_in(workspace, request)
            logger.debug("build state -> %s", BuildState.FINALIZING.value)
        except Exception as e:
            # publishing (copy) failures and anything else past the pipeline
            logger.exception("build failed outside the pipeline")
            result = Result.failing("", MSG_SERVER_ERROR, detail=f"{type(e).__name__}: {e}")

        logger.info("build finished: %s", result.state)
        return result

    # ----------------------------
    # Internals
    # ----------------------------

    def _build_in(self, workspace: Workspace, request: BuildRequest) -> Result:
        root = workspace.root
        logger.debug("build state -> %s", BuildState.CREATED.value)
        reporter = BuildReporter(progress=self._progress)
        env = TaskEnv(config=self._config)

        def _render(project: Optional[Project] = None) -> str:
            return process_compiler_output(reporter.system_output, source_path_prefixes(root, project))

        # Extracting
        logger.debug("build state -> %s", BuildState.EXTRACTING.value)
        try:
            files = extract_project_files(request.archive, root)
        except ExtractionError as e:
            logger.error("could not extract %s: %s", request.archive, e)
            return Result.failing(_render(), MSG_ZIP_PROBLEM, detail=str(e))

        # AnalyzingMetadata
        logger.debug("build state -> %s", BuildState.ANALYZING_METADATA.value)
        try:
            project = read_project(root)
        except MissingProjectMetadataError as e:
            logger.error("bad project metadata: %s", e)
            return Result.failing(_render(), MSG_PROPERTIES_PROBLEM, detail=str(e))

        keystore_path = workspace.path(KEYSTORE_FILE_NAME)
        keystore_created = False
        if not keystore_path.exists():
            made = self._keystore_factory(
                request.user_name,
                root,
                KEYSTORE_FILE_NAME,
                keytool=self._config.keytool_path(),
            )
            if made is None:
                reporter.warn("no signing keystore could be created")
                keystore_path = None
            else:
                keystore_path = Path(made)
                keystore_created = True

        try:
            workspace.path(BUILD_TMP_DIR).mkdir(parents=True, exist_ok=True)
            analysis = analyze_project_files(files, assets_dir=project.assets_dir)
            ctx = BuildContext.build(
                project=project,
                build_format=request.build_format,
                component_types=analysis.component_types,
                component_blocks=analysis.component_blocks,
                block_permissions=analysis.block_permissions,
                block_scopes=analysis.block_scopes,
                form_orientations=analysis.form_orientations,
                for_companion=request.for_companion,
                for_emulator=request.for_emulator,
                include_dangerous_permissions=request.include_dangerous_permissions,
                extra_extensions=request.extra_extensions,
                child_process_ram_mb=request.child_process_ram_mb,
                dex_cache_path=request.dex_cache_path,
                keystore_path=keystore_path,
                output_file_name=request.output_file_name,
                reporter=reporter,
            )
            logger.debug("build state -> %s", BuildState.CONTEXT_BUILT.value)

            task_names = self._pipelines.get(ctx.build_format)
            if task_names is None:
                raise KeyError(f"No pipeline for build format: {ctx.build_format}")

            logger.debug("build state -> %s", BuildState.RUNNING.value)
            outcome = execute_pipeline(
                ctx,
                env,
                task_names=list(task_names),
                timeout_seconds=self._config.build_timeout_seconds,
            )
        except TaskFault as e:
            logger.exception("build faulted in %s", e.task_name)
            return Result(
                success=False,
                output=_render(project),
                error=MSG_SERVER_ERROR,
                state=BuildState.FAULTED.value,
                detail=str(e),
                task_records=[r.as_dict() for r in env.records],
            )
        except Exception as e:
            logger.exception("build faulted before the pipeline ran")
            return Result.failing(_render(project), MSG_SERVER_ERROR, detail=f"{type(e).__name__}: {e}")

        records = [r.as_dict() for r in outcome.records]
        if not outcome.success:
            return Result(
                success=False,
                output=_render(project),
                error=reporter.user_output or f"{outcome.failed_task} failed: {outcome.reason}",
                state=BuildState.FAILED.value,
                detail=f"{outcome.failed_task}: {outcome.reason}",
                task_records=records,
            )

        artifact, keystore = publish_artifacts(
            root,
            request.output_dir,
            ctx.output_name,
            keystore_path=keystore_path,
            keystore_created=keystore_created,
        )
        return Result(
            success=True,
            output=_render(project),
            error=reporter.user_output,
            artifact=artifact,
            keystore=keystore,
            state=BuildState.SUCCEEDED.value,
            task_records=records,
        )
