"""buildserver.workspace

Per-build temporary directory with a guaranteed cleanup.

A :class:`Workspace` owns every extracted file, intermediate output and the
final artifact location of exactly one build. Use it as a context manager::

    with Workspace.create(config.tmp_root) as ws:
        ...

The directory is deleted recursively when the ``with`` block exits, whether
it exits normally or through an exception. Deletion problems are logged as
:class:`~buildserver.errors.WorkspaceCleanupWarning` and never raised.
"""

from __future__ import annotations

import logging
import os
import random
import shutil
import sys
import time
from pathlib import Path
from typing import Optional

from buildserver.core import TEMP_DIR_ATTEMPTS
from buildserver.errors import WorkspaceCleanupWarning, WorkspaceError

logger = logging.getLogger(__name__)


def create_temp_dir(base_dir: Path, *, attempts: int = TEMP_DIR_ATTEMPTS) -> Path:
    """Create a fresh directory named ``<millis>_<random>-<n>`` under base_dir.

    Raises :class:`WorkspaceError` if no free name is found within *attempts*.
    """
    base_dir = Path(base_dir)
    base_dir.mkdir(parents=True, exist_ok=True)
    prefix = f"{int(time.time() * 1000)}_{random.random()}-"

    for counter in range(attempts):
        candidate = base_dir / f"{prefix}{counter}"
        if candidate.exists():
            continue
        try:
            candidate.mkdir()
        except FileExistsError:
            continue
        return candidate

    raise WorkspaceError(
        f"Failed to create directory within {attempts} attempts "
        f"(tried {prefix}0 to {prefix}{attempts - 1})"
    )


class Workspace:
    """Owns one build's temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._closed = False

    @classmethod
    def create(cls, base_dir: Path, *, attempts: int = TEMP_DIR_ATTEMPTS) -> "Workspace":
        root = create_temp_dir(base_dir, attempts=attempts)
        logger.info("temporary project root: %s", root)
        return cls(root)

    def path(self, rel: str) -> Path:
        return self.root / rel

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Delete the workspace recursively. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        # tmp dirs may sit behind a symlink (e.g. /var -> /private/var)
        target = Path(os.path.realpath(self.root))
        if not target.exists():
            return

        failures: list[str] = []

        def _onexc(func, path, exc) -> None:
            if isinstance(exc, tuple):
                exc = exc[1]
            failures.append(f"{path}: {exc}")

        if sys.version_info >= (3, 12):
            shutil.rmtree(target, onexc=_onexc)
        else:
            shutil.rmtree(target, onerror=_onexc)
        if failures or target.exists():
            logger.warning(
                "%s: could not fully delete %s (%d problems, first: %s)",
                WorkspaceCleanupWarning.__name__,
                target,
                len(failures),
                failures[0] if failures else "directory still present",
            )

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None
