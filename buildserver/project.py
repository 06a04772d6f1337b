"""buildserver.project

Reads ``youngandroidproject/project.properties`` into a :class:`Project`.

The file uses the Java properties format. The parser below covers what
project files contain in practice:

- ``key=value``, ``key:value`` and ``key value`` separators
- ``#`` / ``!`` comment lines
- backslash line continuations
- ``\\t``, ``\\n``, ``\\r``, ``\\f``, ``\\uXXXX`` and escaped separator characters
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict

from buildserver.core import PROJECT_DIRECTORY, PROJECT_PROPERTIES_FILE
from buildserver.errors import MissingProjectMetadataError
from buildserver.models import Project

logger = logging.getLogger(__name__)

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_HEX4 = re.compile(r"[0-9a-fA-F]{4}")

# Directory properties are relative to the youngandroidproject directory.
DEFAULT_ASSETS = "../assets"
DEFAULT_SOURCE = "../src"
DEFAULT_BUILD = "../build"


def _logical_lines(text: str):
    pending = ""
    for raw in text.splitlines():
        line = raw.lstrip()
        if not pending and (not line or line[0] in "#!"):
            continue
        # an odd number of trailing backslashes continues the line
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending += line[:-1]
            continue
        yield pending + line
        pending = ""
    if pending:
        yield pending


def _unescape(s: str) -> str:
    out = []
    i = 0
    while i < len(s):
        ch = s[i]
        if ch == "\\" and i + 1 < len(s):
            nxt = s[i + 1]
            if nxt == "u" and _HEX4.fullmatch(s[i + 2 : i + 6]):
                out.append(chr(int(s[i + 2 : i + 6], 16)))
                i += 6
                continue
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _split_key_value(line: str) -> tuple[str, str]:
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch in "=: \t\f":
            break
        i += 1
    key = line[:i]
    rest = line[i:].lstrip(" \t\f")
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(" \t\f")
    return _unescape(key), _unescape(rest)


def parse_properties(text: str) -> Dict[str, str]:
    """Parse Java-properties text into a dict (last definition wins)."""
    props: Dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_key_value(line)
        if key:
            props[key] = value
    return props


def _resolve_dir(project_dir: Path, rel: str) -> Path:
    return Path(os.path.normpath(str(project_dir / rel)))


def read_project(project_root: Path) -> Project:
    """Load the project descriptor from an extracted project root.

    Raises :class:`MissingProjectMetadataError` if the properties file is
    missing, undecodable, or does not define ``name``.
    """
    root = Path(project_root)
    props_path = root / PROJECT_PROPERTIES_FILE
    if not props_path.is_file():
        raise MissingProjectMetadataError(f"{PROJECT_PROPERTIES_FILE} not found in project archive")

    try:
        text = props_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MissingProjectMetadataError(f"Unable to read {PROJECT_PROPERTIES_FILE}: {e}") from e

    props = parse_properties(text)
    name = (props.get("name") or "").strip()
    if not name:
        raise MissingProjectMetadataError(f"{PROJECT_PROPERTIES_FILE} does not define a project name")

    project_dir = root / PROJECT_DIRECTORY
    project = Project(
        name=name,
        root=root,
        assets_dir=_resolve_dir(project_dir, props.get("assets") or DEFAULT_ASSETS),
        source_dir=_resolve_dir(project_dir, props.get("source") or DEFAULT_SOURCE),
        build_dir=_resolve_dir(project_dir, props.get("build") or DEFAULT_BUILD),
        main=(props.get("main") or "").strip() or None,
        properties=dict(props),
    )
    logger.info("project %s (main=%s)", project.name, project.main)
    return project
