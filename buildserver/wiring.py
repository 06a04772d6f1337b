"""buildserver.wiring

This module is the **composition root** for the build server.

It is the single place where the running application is assembled from its
building blocks:

- load ``.env`` / environment variables
- load :class:`~buildserver.config.BuildServerConfig`
- configure logging
- build the :class:`~buildserver.builder.ProjectBuilder`

Entrypoints (CLI, scripts, tests that want the real thing) call
:func:`build_project_builder` instead of wiring modules themselves.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Optional

from buildserver.builder import ProjectBuilder
from buildserver.config import BuildServerConfig, load_config
from buildserver.core import ROOT_DIR
from buildserver.framework.reporter import ProgressCallback

ENV_PATH: Path = ROOT_DIR / ".env"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def load_dotenv_if_present(dotenv_path: Path = ENV_PATH) -> None:
    """Minimal .env loader.

    Loads KEY=VALUE lines into ``os.environ`` if the key is not already set.
    Supports quoted values and ``VALUE  # comment`` trailing comments.
    """
    if not dotenv_path.exists():
        return

    for raw in dotenv_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        raw_val = val.strip()

        if len(raw_val) >= 2 and raw_val[0] == raw_val[-1] and raw_val[0] in "\"'":
            parsed_val = raw_val[1:-1]
        else:
            parsed_val = re.split(r"\s+#", raw_val, maxsplit=1)[0].strip()

        parsed_val = parsed_val.replace("\r", "")
        if key and key not in os.environ:
            os.environ[key] = parsed_val


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)


def build_project_builder(
    config_path: Optional[str | Path] = None,
    *,
    load_dotenv: bool = True,
    progress: Optional[ProgressCallback] = None,
    config: Optional[BuildServerConfig] = None,
) -> ProjectBuilder:
    """Build the configured :class:`ProjectBuilder`."""
    if load_dotenv:
        load_dotenv_if_present(ENV_PATH)

    if config is None:
        config = load_config(config_path)
    configure_logging(config.log_level)

    return ProjectBuilder(config, progress=progress)
