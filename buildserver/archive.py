"""buildserver.archive

Project archive extraction.

Every entry is written under the destination directory at its archive-relative
path, parent directories are created on demand, and the created file paths are
returned in archive iteration order. Anything that would land outside the
destination (absolute names, ``..`` segments) aborts the extraction.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import List, Union

from buildserver.errors import ExtractionError

logger = logging.getLogger(__name__)

ArchiveSource = Union[str, Path, zipfile.ZipFile]


def _is_safe_name(name: str) -> bool:
    """Reject absolute names and parent-directory segments."""
    if not name or name.startswith(("/", "\\")):
        return False
    parts = name.replace("\\", "/").split("/")
    if ".." in parts:
        return False
    # drive letters ("C:foo")
    if len(parts[0]) >= 2 and parts[0][1] == ":":
        return False
    return True


def _resolve_inside(dest_root: Path, name: str) -> Path:
    if not _is_safe_name(name):
        raise ExtractionError(f"Unsafe path in archive: {name!r}")
    target = (dest_root / name).resolve()
    try:
        target.relative_to(dest_root)
    except ValueError:
        raise ExtractionError(f"Archive entry escapes destination: {name!r}") from None
    return target


def _extract_all(zf: zipfile.ZipFile, dest_root: Path) -> List[Path]:
    extracted: List[Path] = []
    for info in zf.infolist():
        target = _resolve_inside(dest_root, info.filename)
        if info.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            continue

        logger.debug("extracting %s from input zip", target)
        if target.exists():
            raise ExtractionError(f"Archive entry conflicts with existing file: {info.filename!r}")
        target.parent.mkdir(parents=True, exist_ok=True)
        with zf.open(info, "r") as src, target.open("wb") as dst:
            shutil.copyfileobj(src, dst)
        extracted.append(target)
    return extracted


def extract_project_files(archive: ArchiveSource, dest_dir: Path) -> List[Path]:
    """Extract *archive* into *dest_dir* and return the created file paths.

    Raises :class:`ExtractionError` for unreadable/corrupt archives, write
    failures and path traversal attempts.
    """
    dest_root = Path(dest_dir).resolve()
    dest_root.mkdir(parents=True, exist_ok=True)

    try:
        if isinstance(archive, zipfile.ZipFile):
            return _extract_all(archive, dest_root)
        with zipfile.ZipFile(Path(archive), "r") as zf:
            return _extract_all(zf, dest_root)
    except ExtractionError:
        raise
    except (zipfile.BadZipFile, zlib.error, OSError, KeyError, RuntimeError, EOFError) as e:
        raise ExtractionError(f"{type(e).__name__}: {e}") from e
