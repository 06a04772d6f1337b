"""buildserver.toolchain.cmd

Command-execution helpers shared by the build tasks.

This module deliberately avoids tool-specific knowledge. It provides:

* :func:`which_or_raise` - resolve executables reliably across environments.
* :func:`run_cmd` - run subprocesses (no ``shell=True``) and capture output.

Rule
----
Only this package should touch ``subprocess``.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence


@dataclass(frozen=True)
class CmdResult:
    exit_code: int
    elapsed_seconds: float
    command_str: str
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """stdout followed by stderr, the way a terminal would show them."""
        parts = [p for p in (self.stdout, self.stderr) if p]
        return "".join(p if p.endswith("\n") else p + "\n" for p in parts)


def which_or_raise(bin_name: str, fallbacks: Optional[List[str]] = None) -> str:
    """Locate an executable and return its absolute path.

    Absolute or relative paths that point at an executable file are returned
    as-is.
    """
    p = Path(bin_name)
    if p.parent != Path(".") and p.exists() and os.access(str(p), os.X_OK):
        return str(p)

    found = shutil.which(bin_name)
    if found:
        return found

    for candidate in fallbacks or []:
        c = Path(candidate)
        if c.exists() and os.access(str(c), os.X_OK):
            return str(c)

    raise FileNotFoundError(
        f"Executable '{bin_name}' not found on PATH.\n"
        f"Install it and ensure it's available to the build server.\n"
        f"Tried fallbacks: {fallbacks or []}"
    )


def run_cmd(
    cmd: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    timeout_seconds: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
) -> CmdResult:
    """Run a subprocess and capture stdout/stderr (no ``shell=True``).

    Never raises on non-zero exit codes or timeouts; only raises on execution
    errors (e.g. binary not found).
    """
    cmd = [str(c) for c in cmd]
    t0 = time.time()

    # If env is provided, merge it onto the current process environment.
    env2 = None
    if env is not None:
        env2 = os.environ.copy()
        env2.update(env)

    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            text=True,
            errors="replace",
            capture_output=True,
            timeout=timeout_seconds if timeout_seconds and timeout_seconds > 0 else None,
            env=env2,
        )
    except subprocess.TimeoutExpired as e:
        return CmdResult(
            exit_code=-1,
            elapsed_seconds=time.time() - t0,
            command_str=" ".join(cmd),
            stdout=_as_text(e.stdout),
            stderr=_as_text(e.stderr),
            timed_out=True,
        )

    return CmdResult(
        exit_code=proc.returncode,
        elapsed_seconds=time.time() - t0,
        command_str=" ".join(cmd),
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
