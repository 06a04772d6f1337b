"""buildserver.analysis.aggregate

Runs the descriptor analyzers over an extracted project and merges their
per-file results.

Why this exists
---------------
The analyzers in :mod:`buildserver.analysis.descriptors` work on one file's
content at a time. A build needs project-wide answers:

- which component *types* are required (via the name -> type lookup)
- which blocks each component type uses
- which permissions and storage scopes the blocks ask for
- which orientation each screen declares

Per-file results are merged by set/map union.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence, Set

from buildserver.core import CODEBLOCKS_SOURCE_EXTENSION, FORM_PROPERTIES_EXTENSION

from .catalog import create_name_type_map
from .descriptors import (
    BlockXmlAnalyzer,
    ComponentBlocksExtractor,
    PermissionBlockExtractor,
    ScopeBlockExtractor,
    analyze_blocks,
    component_types_from_form,
    form_orientation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DescriptorAnalysis:
    """Project-wide analyzer output, ready for :meth:`BuildContext.build`."""

    component_types: Set[str] = field(default_factory=set)
    component_blocks: Mapping[str, Set[str]] = field(default_factory=dict)
    block_permissions: Set[str] = field(default_factory=set)
    block_scopes: Set[str] = field(default_factory=set)
    form_orientations: Mapping[str, str] = field(default_factory=dict)


def _read(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8")


def _files_with_suffix(files: Iterable[Path], suffix: str) -> Iterable[Path]:
    return (Path(f) for f in files if str(f).endswith(suffix))


def get_component_types(
    files: Sequence[Path],
    name_type_map: Mapping[str, str],
) -> Set[str]:
    """Resolve every component name used by a form file to its type."""
    types: Set[str] = set()
    for f in _files_with_suffix(files, FORM_PROPERTIES_EXTENSION):
        for name in component_types_from_form(_read(f)):
            ctype = name_type_map.get(name)
            if ctype is None:
                logger.warning("no component type known for %s (in %s)", name, f.name)
                continue
            types.add(ctype)
    return types


def get_screen_orientations(files: Sequence[Path]) -> Dict[str, str]:
    """Form name -> declared orientation."""
    out: Dict[str, str] = {}
    for f in _files_with_suffix(files, FORM_PROPERTIES_EXTENSION):
        form_name = f.name[: -len(FORM_PROPERTIES_EXTENSION)]
        out[form_name] = form_orientation(_read(f))
    return out


def analyze_block_files(files: Sequence[Path], *analyzers: BlockXmlAnalyzer) -> None:
    for f in _files_with_suffix(files, CODEBLOCKS_SOURCE_EXTENSION):
        analyze_blocks(_read(f), analyzers)


def analyze_project_files(
    files: Sequence[Path],
    *,
    assets_dir: Optional[Path],
    name_type_map: Optional[Mapping[str, str]] = None,
) -> DescriptorAnalysis:
    """Run every analyzer over *files* and merge the results."""
    if name_type_map is None:
        name_type_map = create_name_type_map(assets_dir)

    component_types = get_component_types(files, name_type_map)

    blocks = ComponentBlocksExtractor()
    permissions = PermissionBlockExtractor()
    scopes = ScopeBlockExtractor()
    analyze_block_files(files, blocks, permissions, scopes)

    return DescriptorAnalysis(
        component_types=component_types,
        component_blocks={k: set(v) for k, v in blocks.get_result().items()},
        block_permissions=set(permissions.get_result()),
        block_scopes=set(scopes.get_result()),
        form_orientations=get_screen_orientations(files),
    )
