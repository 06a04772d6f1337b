from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Set

from buildserver.errors import TaskFailure, TaskFault

from .context import BuildContext
from .env import TaskEnv
from .registry import TaskDefinition, get_task
from .task import STATUS_CANCELLED, STATUS_FAILED, STATUS_FAULTED, STATUS_OK, TaskRecord

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PipelineOutcome:
    """Aggregated result of one pipeline run."""

    success: bool
    records: List[TaskRecord] = field(default_factory=list)
    failed_task: Optional[str] = None
    reason: Optional[str] = None


def check_task_order(task_defs: Sequence[TaskDefinition], *, initial: Sequence[str] = ()) -> List[str]:
    """Return warnings for tasks that require keys only produced later."""
    warnings: List[str] = []
    available: Set[str] = set(initial)
    for i, td in enumerate(task_defs):
        missing = [k for k in td.requires if k not in available]
        if missing:
            later: Set[str] = set()
            for other in task_defs[i + 1 :]:
                later.update(other.produces)
            wrong_order = [k for k in missing if k in later]
            if wrong_order:
                warnings.append(
                    f"deps: task '{td.name}' requires keys produced later in the pipeline: {wrong_order}"
                )
        available.update(td.produces)
    return warnings


def run_pipeline(
    ctx: BuildContext,
    env: TaskEnv,
    *,
    task_names: Sequence[str],
    strict_deps: bool = False,
) -> PipelineOutcome:
    """Run tasks strictly in order, halting at the first failure.

    A :class:`TaskFailure` ends the run with ``success=False``. Any other
    exception is re-raised as :class:`TaskFault` after its record is written
    to ``env.records``.
    """
    task_defs = [get_task(n) for n in task_names]

    for msg in check_task_order(task_defs, initial=list(env.data.keys())):
        if strict_deps:
            raise RuntimeError(msg)
        logger.warning(msg)
        env.add_warning(msg)

    total = len(task_defs)
    for index, task_def in enumerate(task_defs):
        name = task_def.name
        if env.cancelled:
            env.records.append(
                TaskRecord(name=name, status=STATUS_CANCELLED, started_at=_now_iso(), finished_at=_now_iso())
            )
            return PipelineOutcome(False, list(env.records), failed_task=name, reason="build cancelled")

        env.current_task = name
        ctx.reporter.progress(index, total, name)
        started = _now_iso()
        t0 = time.monotonic()
        try:
            summary = task_def.func(ctx, env) or {}
        except TaskFailure as e:
            env.records.append(
                TaskRecord(name=name, status=STATUS_FAILED, started_at=started, finished_at=_now_iso(), error=e.reason)
            )
            ctx.reporter.error(f"{name} failed: {e.reason}")
            logger.info("task %s failed after %.2fs: %s", name, time.monotonic() - t0, e.reason)
            return PipelineOutcome(False, list(env.records), failed_task=name, reason=e.reason)
        except Exception as e:
            env.records.append(
                TaskRecord(
                    name=name,
                    status=STATUS_FAULTED,
                    started_at=started,
                    finished_at=_now_iso(),
                    error=f"{type(e).__name__}: {e}",
                )
            )
            raise TaskFault(name, e) from e
        finally:
            env.current_task = None

        env.records.append(
            TaskRecord(name=name, status=STATUS_OK, started_at=started, finished_at=_now_iso(), summary=dict(summary))
        )
        logger.debug("task %s ok in %.2fs", name, time.monotonic() - t0)

    return PipelineOutcome(True, list(env.records))


def execute_pipeline(
    ctx: BuildContext,
    env: TaskEnv,
    *,
    task_names: Sequence[str],
    timeout_seconds: Optional[float] = None,
) -> PipelineOutcome:
    """Run the pipeline on one dedicated worker and block until it ends.

    With *timeout_seconds*, the caller stops waiting at the deadline, asks
    the worker to stop before its next task, waits for the running task to
    return, and raises :class:`TaskFault` wrapping a ``TimeoutError``. Child
    processes started after the deadline are bounded by the remaining time.
    """
    if timeout_seconds:
        env.deadline = time.monotonic() + float(timeout_seconds)

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="build-pipeline") as pool:
        future = pool.submit(run_pipeline, ctx, env, task_names=task_names)
        try:
            return future.result(timeout=timeout_seconds or None)
        except FutureTimeoutError:
            env.cancel()
            logger.warning("pipeline exceeded %ss; waiting for the running task to stop", timeout_seconds)
            # the worker still owns the workspace until it returns
            try:
                future.result()
            except TaskFault:
                logger.info("pipeline faulted while draining after timeout")
            raise TaskFault("pipeline", TimeoutError(f"build timed out after {timeout_seconds}s")) from None
