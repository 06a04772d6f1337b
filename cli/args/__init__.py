"""CLI argument builder modules.

The top-level :mod:`buildserver_cli` is intentionally kept thin. Each
sub-command registers its flags through a small "arg builder" function
housed here:

- :func:`cli.args.build.add_build_args`
- :func:`cli.args.tasks.add_tasks_args`
"""

from __future__ import annotations

__all__ = [
    "build",
    "tasks",
]
