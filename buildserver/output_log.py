"""buildserver.output_log

Render raw tool output as the user-facing build log.

Tool output mentions absolute workspace paths and, besides diagnostics in the
user's own ``.yail`` sources, diagnostics in generated runtime files the user
never wrote. The renderer strips the former and drops the latter (with their
indented continuation lines), turning the rest into small HTML blocks::

    <div><span class='compiler-ErrorMarker'>ERROR</span>: Screen1.yail line 3: ...</div>

Rendering never raises: if a line cannot be processed the whole text is
HTML-escaped instead.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Iterable, List, Sequence, Union

from buildserver.core import MAX_COMPILER_MESSAGE_LENGTH, YAIL_EXTENSION

logger = logging.getLogger(__name__)

DIAGNOSTIC_RE = re.compile(r"(.*?):(\d+):\d+: (error|warning)?:? ?(.*?)")

WARNING_MARKER = "compiler-WarningMarker"
ERROR_MARKER = "compiler-ErrorMarker"

CONTINUATION_PREFIX = "  "


def escape(text: str) -> str:
    return html.escape(text, quote=True)


def truncate_message(text: str, limit: int = MAX_COMPILER_MESSAGE_LENGTH) -> str:
    return text if len(text) <= limit else text[:limit]


def strip_source_paths(output: str, src_paths: Union[str, Sequence[str]]) -> str:
    """Remove every occurrence of the workspace source prefix(es).

    Longer prefixes go first so ``/tmp/x/youngandroidproject/../src/`` is
    removed whole before ``/tmp/x/src/`` could match part of something else.
    """
    prefixes = [src_paths] if isinstance(src_paths, str) else list(src_paths)
    for prefix in sorted((p for p in prefixes if p), key=len, reverse=True):
        output = output.replace(prefix, "")
    return output


def _lines(text: str) -> List[str]:
    lines = text.split("\n")
    while lines and lines[-1] == "":
        lines.pop()
    return lines


def _render(lines: Iterable[str]) -> str:
    out: List[str] = []
    suppressed = False
    for line in lines:
        m = DIAGNOSTIC_RE.fullmatch(line)
        if m:
            filename, line_number, severity, text = m.groups()
            if severity == "warning":
                kind, marker = "WARNING", WARNING_MARKER
            else:
                # scanner messages carry no severity but still stop compilation
                kind, marker = "ERROR", ERROR_MARKER

            if filename.endswith(YAIL_EXTENSION):
                suppressed = False
                out.append(
                    f"<div><span class='{marker}'>{kind}</span>: "
                    f"{escape(filename)} line {line_number}: {escape(text)}</div>"
                )
            else:
                suppressed = True

            logger.info("%s: %s line %s: %s", kind, filename, line_number, truncate_message(text))
        elif line.startswith(CONTINUATION_PREFIX):
            if not suppressed:
                out.append(escape(line) + "<br>")
        else:
            suppressed = False
            out.append(escape(line) + "<br>")
    return "".join(out)


def process_compiler_output(output: str, src_paths: Union[str, Sequence[str]]) -> str:
    """Strip workspace paths from *output* and render it for the user."""
    messages = strip_source_paths(output or "", src_paths)
    try:
        return _render(_lines(messages))
    except Exception:
        logger.exception("could not format compiler output; escaping it verbatim")
        return escape(messages)
