"""buildserver.errors

Error taxonomy for one build invocation.

Fatal errors derive from :class:`BuildServerError` and are converted into a
failing :class:`~buildserver.models.Result` at the invocation boundary
(:meth:`buildserver.builder.ProjectBuilder.build`). Warnings are only ever
logged.
"""

from __future__ import annotations

from typing import Optional


class BuildServerError(Exception):
    """Base class for fatal build errors."""


class ExtractionError(BuildServerError):
    """The project archive could not be read or written to the workspace."""


class MissingProjectMetadataError(BuildServerError):
    """``project.properties`` is absent or unparseable."""


class IncompleteContextError(BuildServerError):
    """A required build context field was not supplied.

    This is an assembly bug, not a user error.
    """


class WorkspaceError(BuildServerError):
    """No temporary workspace directory could be allocated."""


class TaskFailure(Exception):
    """A task reported a user-actionable failure (e.g. a compile error)."""

    def __init__(self, task_name: str, reason: str) -> None:
        super().__init__(f"{task_name}: {reason}")
        self.task_name = task_name
        self.reason = reason


class TaskFault(Exception):
    """A task raised something other than :class:`TaskFailure`."""

    def __init__(self, task_name: str, error: Optional[BaseException] = None) -> None:
        detail = f"{type(error).__name__}: {error}" if error is not None else "unknown fault"
        super().__init__(f"{task_name}: {detail}")
        self.task_name = task_name
        self.error = error


class WorkspaceCleanupWarning(UserWarning):
    """The workspace could not be fully deleted."""


class ArtifactMissingWarning(UserWarning):
    """The pipeline succeeded but the expected artifact was not found."""
