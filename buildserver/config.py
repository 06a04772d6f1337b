"""buildserver.config

Build server configuration (tool locations, limits, logging).

Why this exists
---------------
Every task that shells out needs to agree on *where* the external toolchain
lives (aapt, aapt2, zipalign, apksigner, bundletool, d8, the YAIL compiler)
and on process-wide limits. Reading those from scattered environment
variables inside each task drifts quickly, so they are resolved once into a
:class:`BuildServerConfig` and handed to every build.

Sources, lowest precedence first:

1. dataclass defaults
2. an optional YAML file (``yaml.safe_load``)
3. ``BUILDSERVER_<FIELD>`` environment variables
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from buildserver.core import DEFAULT_CHILD_PROCESS_RAM_MB

ENV_PREFIX = "BUILDSERVER_"

_PATH_FIELDS = {
    "tmp_root",
    "runtime_dir",
    "android_jar",
    "bundletool_jar",
    "d8_jar",
    "yail_compiler_jar",
}
_INT_FIELDS = {"child_process_ram_mb", "min_sdk", "target_sdk"}
_FLOAT_FIELDS = {"build_timeout_seconds"}


@dataclass(frozen=True)
class BuildServerConfig:
    """Resolved, read-only build server settings."""

    # Parent directory for per-build workspaces.
    tmp_root: Path = Path(tempfile.gettempdir())

    # Runtime files (component jars, aars, native libs, assets).
    runtime_dir: Optional[Path] = None
    android_jar: Optional[Path] = None

    # External tools
    java: str = "java"
    keytool: Optional[str] = None
    aapt: str = "aapt"
    aapt2: str = "aapt2"
    zipalign: str = "zipalign"
    apksigner: str = "apksigner"
    jarsigner: str = "jarsigner"
    bundletool_jar: Optional[Path] = None
    d8_jar: Optional[Path] = None
    yail_compiler_jar: Optional[Path] = None

    # Limits
    child_process_ram_mb: int = DEFAULT_CHILD_PROCESS_RAM_MB
    build_timeout_seconds: Optional[float] = None

    min_sdk: int = 21
    target_sdk: int = 34

    log_level: str = "INFO"

    def keytool_path(self) -> str:
        """Locate the key-tool binary (explicit setting, then JAVA_HOME)."""
        if self.keytool:
            return self.keytool
        java_home = os.environ.get("JAVA_HOME")
        if java_home:
            return str(Path(java_home) / "bin" / "keytool")
        return "keytool"

    # ----------------------------
    # Conversions
    # ----------------------------

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> "BuildServerConfig":
        raw = dict(raw or {})
        known = {f.name for f in fields(BuildServerConfig)}
        unknown = sorted(k for k in raw if k not in known)
        if unknown:
            raise ValueError(f"Unknown build server config keys: {unknown}")

        kwargs: Dict[str, Any] = {}
        for key, value in raw.items():
            kwargs[key] = _coerce(key, value)
        return BuildServerConfig(**kwargs)

    def with_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "BuildServerConfig":
        environ = os.environ if environ is None else environ
        updates: Dict[str, Any] = {}
        for f in fields(self):
            val = environ.get(ENV_PREFIX + f.name.upper())
            if val is None or val == "":
                continue
            updates[f.name] = _coerce(f.name, val)
        return replace(self, **updates) if updates else self


def _coerce(key: str, value: Any) -> Any:
    if value is None:
        return None
    if key in _PATH_FIELDS:
        return Path(str(value)).expanduser()
    if key in _INT_FIELDS:
        return int(value)
    if key in _FLOAT_FIELDS:
        v = float(value)
        return v if v > 0 else None
    return str(value)


# ----------------------------
# YAML IO
# ----------------------------

def load_config(path: Optional[str | Path] = None, *, environ: Optional[Mapping[str, str]] = None) -> BuildServerConfig:
    """Load config from an optional YAML file, then apply env overrides."""
    if path is None:
        return BuildServerConfig().with_env_overrides(environ)

    import yaml

    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Build server config not found: {p}")
    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Build server config must be a mapping at top level: {p}")
    return BuildServerConfig.from_dict(raw).with_env_overrides(environ)
