from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class BuildReporter:
    """Mutable log channel shared by the tasks of one build.

    Two streams are kept apart:

    - *system output*: raw combined stdout/stderr of the tools the tasks run,
      later rendered by :func:`buildserver.output_log.process_compiler_output`
    - *user output*: short messages meant for the person who asked for the
      build

    The build context is frozen; this object is the only thing tasks write to
    through it. Writes come from the pipeline worker thread and reads from the
    invoking thread, hence the lock.
    """

    def __init__(self, progress: Optional[ProgressCallback] = None) -> None:
        self._lock = threading.Lock()
        self._system: List[str] = []
        self._user: List[str] = []
        self._progress = progress

    # -- system output -----------------------------------------------------

    def log(self, text: str) -> None:
        if not text:
            return
        if not text.endswith("\n"):
            text += "\n"
        with self._lock:
            self._system.append(text)

    def info(self, message: str) -> None:
        logger.info(message)
        self.log(message)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.log(f"WARNING: {message}")

    # -- user output -------------------------------------------------------

    def user(self, message: str) -> None:
        with self._lock:
            self._user.append(message)

    def error(self, message: str, *, for_user: bool = True) -> None:
        logger.error(message)
        self.log(f"ERROR: {message}")
        if for_user:
            self.user(message)

    # -- progress ----------------------------------------------------------

    def progress(self, index: int, total: int, task_name: str) -> None:
        if self._progress is None:
            return
        try:
            self._progress(index, total, task_name)
        except Exception:
            logger.exception("progress callback failed for %s", task_name)

    @property
    def system_output(self) -> str:
        with self._lock:
            return "".join(self._system)

    @property
    def user_output(self) -> str:
        with self._lock:
            return "\n".join(self._user)
