from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

if TYPE_CHECKING:
    from .context import BuildContext
    from .env import TaskEnv

# A task reports success by returning (optionally with a summary dict) and a
# user-actionable failure by raising TaskFailure. Anything else it raises is a
# fault.
TaskFunc = Callable[["BuildContext", "TaskEnv"], Optional[Dict[str, Any]]]

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_FAULTED = "faulted"
STATUS_CANCELLED = "cancelled"


@dataclass
class TaskRecord:
    """Execution record for one task."""

    name: str
    status: str
    started_at: str
    finished_at: str

    summary: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "summary": dict(self.summary),
            "error": self.error,
        }
