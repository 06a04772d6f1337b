from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Sequence

from buildserver.analysis.catalog import all_component_types
from buildserver.analysis.permissions import permissions_for_scopes
from buildserver.core import (
    BUILD_DEPLOY_DIR,
    BUILD_DIR,
    BUILD_FORMATS,
    BUILD_TMP_DIR,
    DEFAULT_CHILD_PROCESS_RAM_MB,
)
from buildserver.errors import IncompleteContextError
from buildserver.models import Project

from .reporter import BuildReporter


@dataclass(frozen=True)
class BuildContext:
    """Immutable build job packet.

    Everything a task needs to know about *what* to build lives here and is
    fixed for the lifetime of the build. Tasks never change it; they write
    files under the workspace, scratch values to the
    :class:`~buildserver.framework.env.TaskEnv`, and messages to
    ``reporter``.

    Attributes
    ----------
    project:
        Parsed project descriptor (name, root, assets directory, ...).
    build_format:
        Target package format, ``"apk"`` or ``"aab"``. Selects the pipeline.
    component_types:
        Fully qualified component types the app needs. Includes every
        built-in type for companion builds and any caller-declared extension
        types.
    component_blocks:
        Component type -> block names (events/methods/properties) used.
    extra_permissions:
        Permissions requested by blocks, plus those derived from the storage
        scopes the blocks use. The scopes themselves are not kept.
    form_orientations:
        Screen name -> declared orientation.
    child_process_ram_mb:
        Memory ceiling for tools started by tasks (``-Xmx``).
    dex_cache_path:
        Directory where dexed libraries are cached across builds.
    keystore_path:
        Signing keystore; ``None`` when none exists and none could be made.
    output_file_name:
        Explicit artifact file name; defaults to ``<project name>.<format>``.
    reporter:
        Log channel (the only mutable thing reachable from the context).
    """

    project: Project
    build_format: str

    component_types: FrozenSet[str] = frozenset()
    component_blocks: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    extra_permissions: FrozenSet[str] = frozenset()
    form_orientations: Mapping[str, str] = field(default_factory=dict)

    for_companion: bool = False
    for_emulator: bool = False
    include_dangerous_permissions: bool = False

    child_process_ram_mb: int = DEFAULT_CHILD_PROCESS_RAM_MB
    dex_cache_path: Optional[Path] = None
    keystore_path: Optional[Path] = None
    output_file_name: Optional[str] = None

    reporter: BuildReporter = field(default_factory=BuildReporter, compare=False, repr=False)

    @staticmethod
    def build(
        *,
        project: Optional[Project],
        build_format: Optional[str],
        component_types: Iterable[str] = (),
        component_blocks: Optional[Mapping[str, Iterable[str]]] = None,
        block_permissions: Iterable[str] = (),
        block_scopes: Iterable[str] = (),
        form_orientations: Optional[Mapping[str, str]] = None,
        for_companion: bool = False,
        for_emulator: bool = False,
        include_dangerous_permissions: bool = False,
        extra_extensions: Optional[Sequence[str]] = None,
        companion_types: Optional[Iterable[str]] = None,
        child_process_ram_mb: int = DEFAULT_CHILD_PROCESS_RAM_MB,
        dex_cache_path: Optional[Path] = None,
        keystore_path: Optional[Path] = None,
        output_file_name: Optional[str] = None,
        reporter: Optional[BuildReporter] = None,
    ) -> "BuildContext":
        """Validate inputs and assemble a context.

        Raises :class:`IncompleteContextError` when ``project`` or
        ``build_format`` is missing, or the format has no pipeline.
        """
        if project is None:
            raise IncompleteContextError("build context requires a project")
        if not build_format:
            raise IncompleteContextError("build context requires a target format")
        build_format = str(build_format).lower()
        if build_format not in BUILD_FORMATS:
            raise IncompleteContextError(
                f"Unknown build format '{build_format}'. Valid: {sorted(BUILD_FORMATS)}"
            )

        types = set(component_types)
        if for_companion:
            types |= set(all_component_types() if companion_types is None else companion_types)
        if extra_extensions:
            types |= {str(t) for t in extra_extensions if str(t).strip()}

        permissions = set(block_permissions) | permissions_for_scopes(block_scopes)

        blocks = {str(k): frozenset(v) for k, v in (component_blocks or {}).items()}

        return BuildContext(
            project=project,
            build_format=build_format,
            component_types=frozenset(types),
            component_blocks=MappingProxyType(blocks),
            extra_permissions=frozenset(permissions),
            form_orientations=MappingProxyType(dict(form_orientations or {})),
            for_companion=bool(for_companion),
            for_emulator=bool(for_emulator),
            include_dangerous_permissions=bool(include_dangerous_permissions),
            child_process_ram_mb=max(1, int(child_process_ram_mb)),
            dex_cache_path=Path(dex_cache_path) if dex_cache_path else None,
            keystore_path=Path(keystore_path) if keystore_path else None,
            output_file_name=output_file_name or None,
            reporter=reporter or BuildReporter(),
        )

    # ----------------------------
    # Derived paths
    # ----------------------------

    @property
    def project_root(self) -> Path:
        return self.project.root

    @property
    def build_dir(self) -> Path:
        return self.project.root / BUILD_DIR

    @property
    def tmp_dir(self) -> Path:
        return self.project.root / BUILD_TMP_DIR

    @property
    def deploy_dir(self) -> Path:
        return self.project.root / BUILD_DEPLOY_DIR

    @property
    def output_name(self) -> str:
        return self.output_file_name or f"{self.project.name}.{self.build_format}"

    @property
    def is_debuggable(self) -> bool:
        return self.for_companion or self.for_emulator

    def as_dict(self) -> dict[str, Any]:
        return {
            "project": self.project.name,
            "build_format": self.build_format,
            "component_types": sorted(self.component_types),
            "component_blocks": {k: sorted(v) for k, v in sorted(self.component_blocks.items())},
            "extra_permissions": sorted(self.extra_permissions),
            "form_orientations": dict(self.form_orientations),
            "for_companion": self.for_companion,
            "for_emulator": self.for_emulator,
            "include_dangerous_permissions": self.include_dangerous_permissions,
            "child_process_ram_mb": self.child_process_ram_mb,
            "dex_cache_path": str(self.dex_cache_path) if self.dex_cache_path else None,
            "keystore_path": str(self.keystore_path) if self.keystore_path else None,
            "output_name": self.output_name,
        }
