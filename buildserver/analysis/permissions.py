"""buildserver.analysis.permissions

Storage scope -> platform permission expansion.

A fixed, read-only table. Unknown scopes contribute nothing.
"""

from __future__ import annotations

from typing import Dict, Iterable, Set, Tuple

READ_MEDIA_AUDIO = "android.permission.READ_MEDIA_AUDIO"
READ_MEDIA_IMAGES = "android.permission.READ_MEDIA_IMAGES"
READ_MEDIA_VIDEO = "android.permission.READ_MEDIA_VIDEO"
READ_EXTERNAL_STORAGE = "android.permission.READ_EXTERNAL_STORAGE"
WRITE_EXTERNAL_STORAGE = "android.permission.WRITE_EXTERNAL_STORAGE"

SCOPE_PERMISSIONS: Dict[str, Tuple[str, ...]] = {
    # broad media access
    "Shared": (
        READ_MEDIA_AUDIO,
        READ_MEDIA_IMAGES,
        READ_MEDIA_VIDEO,
        READ_EXTERNAL_STORAGE,
        WRITE_EXTERNAL_STORAGE,
    ),
    # legacy storage access
    "Legacy": (
        READ_EXTERNAL_STORAGE,
        WRITE_EXTERNAL_STORAGE,
    ),
}


def permissions_for_scope(scope: str) -> Tuple[str, ...]:
    return SCOPE_PERMISSIONS.get(scope, ())


def permissions_for_scopes(scopes: Iterable[str]) -> Set[str]:
    out: Set[str] = set()
    for scope in scopes:
        out.update(permissions_for_scope(scope))
    return out
