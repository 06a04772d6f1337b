from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .task import TaskFunc


@dataclass(frozen=True)
class TaskDefinition:
    """Metadata describing a registered task.

    Notes
    -----
    ``requires`` and ``produces`` define a small contract around the
    :class:`~buildserver.framework.env.TaskEnv` store:

    - ``requires``: store keys that should exist before the task runs.
    - ``produces``: store keys that should exist after the task runs.

    They are used to validate pipeline ordering. They never reorder tasks.
    """

    name: str
    func: TaskFunc

    description: str = ""

    requires: Tuple[str, ...] = ()
    produces: Tuple[str, ...] = ()


_TASK_REGISTRY: Dict[str, TaskDefinition] = {}


def _coerce_keys(keys: Sequence[str] | None) -> Tuple[str, ...]:
    if not keys:
        return ()
    # Keep order stable, drop obvious empties.
    out: List[str] = []
    seen = set()
    for k in keys:
        s = str(k).strip()
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return tuple(out)


def register_task(
    name: str,
    *,
    description: str = "",
    requires: Sequence[str] | None = None,
    produces: Sequence[str] | None = None,
):
    """Decorator to register a task."""

    def _decorator(fn: TaskFunc) -> TaskFunc:
        _TASK_REGISTRY[name] = TaskDefinition(
            name=name,
            func=fn,
            description=description,
            requires=_coerce_keys(requires),
            produces=_coerce_keys(produces),
        )
        return fn

    return _decorator


def unregister_task(name: str) -> None:
    _TASK_REGISTRY.pop(name, None)


def get_task(name: str) -> TaskDefinition:
    if name not in _TASK_REGISTRY:
        raise KeyError(f"Unknown task: {name}")
    return _TASK_REGISTRY[name]


def list_tasks(names: Optional[Sequence[str]] = None) -> List[TaskDefinition]:
    if names is not None:
        return [get_task(n) for n in names]
    tasks = list(_TASK_REGISTRY.values())
    tasks.sort(key=lambda t: t.name)
    return tasks
