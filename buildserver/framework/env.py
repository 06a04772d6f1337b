from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from buildserver.config import BuildServerConfig
from buildserver.errors import TaskFailure
from buildserver.toolchain.cmd import CmdResult, run_cmd, which_or_raise

from .context import BuildContext


@dataclass
class TaskEnv:
    """Execution environment shared by the tasks of one build.

    Tasks should:
    - read their inputs from ctx
    - write files under the workspace (``ctx.build_dir``)
    - hand intermediate values to later tasks through this store

    The store is intentionally untyped (Dict[str, Any]); ``requires`` /
    ``produces`` on each registered task document which keys flow where.
    """

    config: BuildServerConfig = field(default_factory=BuildServerConfig)

    data: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    records: List[Any] = field(default_factory=list)

    # name of the task currently running (set by the runner)
    current_task: Optional[str] = None

    # absolute time.monotonic() deadline for the whole pipeline
    deadline: Optional[float] = None

    _cancel: threading.Event = field(default_factory=threading.Event, repr=False)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def put(self, key: str, value: Any) -> None:
        self.data[key] = value

    def require(self, key: str) -> Any:
        if key not in self.data:
            raise KeyError(f"Required value missing from task env: {key}")
        return self.data[key]

    def add_warning(self, message: str) -> None:
        self.warnings.append(str(message))

    # -- cancellation / deadline -------------------------------------------

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def remaining_seconds(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.001, self.deadline - time.monotonic())

    # -- failures ----------------------------------------------------------

    def fail(self, reason: str) -> TaskFailure:
        """Build the :class:`TaskFailure` for the running task (caller raises it)."""
        return TaskFailure(self.current_task or "unknown", reason)

    # -- external tools ----------------------------------------------------

    def run_tool(
        self,
        ctx: BuildContext,
        cmd: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        label: Optional[str] = None,
    ) -> CmdResult:
        """Run one external tool for the current task.

        Combined output goes to the reporter's system output. A non-zero
        exit, a timeout, or a missing binary raises :class:`TaskFailure`.
        """
        label = label or Path(str(cmd[0])).name
        try:
            exe = which_or_raise(str(cmd[0]))
            res = run_cmd([exe, *cmd[1:]], cwd=cwd, env=env, timeout_seconds=self.remaining_seconds())
        except OSError as e:
            ctx.reporter.error(f"{label} could not be started: {e}", for_user=False)
            raise self.fail(f"{label} could not be started") from e

        ctx.reporter.log(res.output)
        if res.timed_out:
            raise self.fail(f"{label} timed out after {res.elapsed_seconds:.0f}s")
        if res.exit_code != 0:
            raise self.fail(f"{label} exited with status {res.exit_code}")
        return res
