"""buildserver.analysis.catalog

Component name -> type lookup.

Form files refer to components by *name* (``Button``); the build needs the
fully qualified *type* (``com.google.appinventor.components.runtime.Button``).
The lookup is assembled per build from:

1. the bundled catalog of built-in components (``simple_components.json``)
2. every ``<assets>/external_comps/<dir>/`` extension package, read from
   ``component.json`` (one object) or, failing that, ``components.json``
   (an array of objects)

Later entries overwrite earlier ones in iteration order. Extension
directories are visited in sorted order so the outcome does not depend on
the filesystem.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Optional, Tuple

from buildserver.core import (
    EXTERNAL_COMPONENT_JSON,
    EXTERNAL_COMPONENTS_JSON,
    EXTERNAL_COMPS_DIR,
    SIMPLE_COMPONENTS_JSON,
    SIMPLE_COMPONENTS_TXT,
)

logger = logging.getLogger(__name__)


def _name_type_pairs(items: Iterable[Any], *, source: Path) -> Iterator[Tuple[str, str]]:
    for item in items:
        if not isinstance(item, dict) or "name" not in item or "type" not in item:
            raise ValueError(f"component descriptor without name/type in {source}")
        yield str(item["name"]), str(item["type"])


@lru_cache(maxsize=4)
def load_simple_components(path: Path = SIMPLE_COMPONENTS_JSON) -> Tuple[Tuple[str, str], ...]:
    """Built-in (name, type) pairs. Cached; the bundled file is read-only."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"component catalog must be a JSON array: {path}")
    return tuple(_name_type_pairs(data, source=Path(path)))


@lru_cache(maxsize=4)
def all_component_types(path: Path = SIMPLE_COMPONENTS_TXT) -> FrozenSet[str]:
    """Every built-in component type (companion builds include all of them)."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return frozenset(ln.strip() for ln in lines if ln.strip())


def external_component_dirs(assets_dir: Path) -> Iterator[Path]:
    ext_root = Path(assets_dir) / EXTERNAL_COMPS_DIR
    if not ext_root.is_dir():
        return
    for child in sorted(ext_root.iterdir(), key=lambda p: p.name):
        if child.is_dir():
            yield child


def read_extension_descriptors(ext_dir: Path) -> Iterator[Tuple[str, str]]:
    """(name, type) pairs declared by one extension package directory."""
    single = ext_dir / EXTERNAL_COMPONENT_JSON
    if single.exists():
        data = json.loads(single.read_text(encoding="utf-8"))
        yield from _name_type_pairs([data], source=single)
        return

    multi = ext_dir / EXTERNAL_COMPONENTS_JSON
    if multi.exists():
        data = json.loads(multi.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"{multi} must contain a JSON array")
        yield from _name_type_pairs(data, source=multi)


def create_name_type_map(
    assets_dir: Optional[Path],
    *,
    catalog: Optional[Iterable[Tuple[str, str]]] = None,
) -> Dict[str, str]:
    """Merge the built-in catalog with extension descriptors under *assets_dir*."""
    name_type: Dict[str, str] = {}
    for name, ctype in (load_simple_components() if catalog is None else catalog):
        name_type[name] = ctype

    if assets_dir is None:
        return name_type

    for ext_dir in external_component_dirs(assets_dir):
        for name, ctype in read_extension_descriptors(ext_dir):
            previous = name_type.get(name)
            if previous is not None and previous != ctype:
                logger.info("component %s: %s overrides %s", name, ctype, previous)
            name_type[name] = ctype
    return name_type
