"""buildserver.framework

A small task-pipeline framework.

- **BuildContext (ctx)**: an immutable job packet (project, format, analysis
  results, flags, limits)
- **TaskEnv (env)**: a per-build scratchpad shared by tasks, plus the tool
  runner and the cancellation flag
- **BuildReporter**: the log channel tasks write to
- **Tasks**: small, registered units of work
- **Pipelines**: ordered task lists, one per target format
"""

from .context import BuildContext
from .env import TaskEnv
from .pipelines import PIPELINES, pipeline_for
from .registry import TaskDefinition, get_task, list_tasks, register_task, unregister_task
from .reporter import BuildReporter
from .runner import PipelineOutcome, check_task_order, execute_pipeline, run_pipeline
from .task import TaskFunc, TaskRecord

__all__ = [
    "BuildContext",
    "TaskEnv",
    "BuildReporter",
    "PIPELINES",
    "pipeline_for",
    "TaskDefinition",
    "TaskFunc",
    "TaskRecord",
    "register_task",
    "unregister_task",
    "get_task",
    "list_tasks",
    "PipelineOutcome",
    "check_task_order",
    "run_pipeline",
    "execute_pipeline",
]
