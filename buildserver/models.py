"""buildserver.models

Lightweight data structures used across the build server.

Why this exists
---------------
A build invocation takes a dozen loosely related knobs (flags, paths, limits)
and produces a handful of outputs. Passing them around individually grows
into "spaghetti" quickly. These dataclasses give the builder, the CLI and the
tests one explicit vocabulary for:

- what is being built (:class:`Project`)
- how it should be built (:class:`BuildRequest`)
- what came out (:class:`Result`)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from buildserver.core import APK_EXTENSION, DEFAULT_CHILD_PROCESS_RAM_MB


class BuildState(str, Enum):
    """States one build invocation moves through."""

    CREATED = "Created"
    EXTRACTING = "Extracting"
    ANALYZING_METADATA = "AnalyzingMetadata"
    CONTEXT_BUILT = "ContextBuilt"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    FAULTED = "Faulted"
    FINALIZING = "Finalizing"
    DONE = "Done"


@dataclass(frozen=True)
class Project:
    """Project descriptor parsed from ``youngandroidproject/project.properties``.

    Notes
    -----
    - ``main`` is the fully qualified name of the first screen, e.g.
      ``appinventor.ai_test.Foo.Screen1``.
    - Directory properties in the file are relative to the
      ``youngandroidproject`` directory; the paths stored here are resolved.
    """

    name: str
    root: Path
    assets_dir: Path
    source_dir: Path
    build_dir: Path
    main: Optional[str] = None
    properties: Mapping[str, str] = field(default_factory=dict)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.properties.get(key, default)

    @property
    def main_form_name(self) -> str:
        if not self.main:
            return "Screen1"
        return self.main.rsplit(".", 1)[-1]

    @property
    def package_name(self) -> str:
        if not self.main or "." not in self.main:
            return f"appinventor.ai_anonymous.{self.name}"
        return self.main.rsplit(".", 1)[0]


@dataclass(frozen=True)
class BuildRequest:
    """Parameters for one build invocation."""

    user_name: str
    archive: Path
    output_dir: Path

    build_format: str = APK_EXTENSION
    output_file_name: Optional[str] = None

    # mode flags
    for_companion: bool = False
    for_emulator: bool = False
    include_dangerous_permissions: bool = False

    # extension component types declared by the caller
    extra_extensions: Sequence[str] = ()

    # child process limits / caches
    child_process_ram_mb: int = DEFAULT_CHILD_PROCESS_RAM_MB
    dex_cache_path: Optional[Path] = None


@dataclass(frozen=True)
class Result:
    """Outcome of one build invocation.

    ``output`` is the rendered (HTML-ish) compiler log, ``error`` the message
    meant for the user. ``detail`` carries internal detail for operators and
    is never shown to users.
    """

    success: bool
    output: str
    error: str

    artifact: Optional[Path] = None
    keystore: Optional[Path] = None

    state: str = BuildState.DONE.value
    detail: Optional[str] = None
    task_records: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def failing(
        cls,
        output: str,
        error: str,
        *,
        state: BuildState = BuildState.FAULTED,
        detail: Optional[str] = None,
    ) -> "Result":
        return cls(success=False, output=output, error=error, state=state.value, detail=detail)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": bool(self.success),
            "state": self.state,
            "error": self.error,
            "artifact": str(self.artifact) if self.artifact else None,
            "keystore": str(self.keystore) if self.keystore else None,
            "tasks": list(self.task_records),
        }
