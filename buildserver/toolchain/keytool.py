"""buildserver.toolchain.keytool

Signing keystore generation via the JDK ``keytool`` binary.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from buildserver.core import (
    KEYSTORE_ALIAS,
    KEYSTORE_COUNTRY,
    KEYSTORE_ORGANIZATION,
    KEYSTORE_PASSWORD,
    KEYSTORE_VALIDITY_DAYS,
)

from .cmd import run_cmd

logger = logging.getLogger(__name__)


def quotify_user_name(user_name: str) -> str:
    """Wrap *user_name* in double quotes, escaping embedded quotes as ``\\"``."""
    if user_name is None:
        raise ValueError("user_name must not be None")
    return '"' + user_name.replace('"', '\\"') + '"'


def keytool_command(keytool: str, keystore: Path, user_name: str) -> List[str]:
    dname = f"CN={quotify_user_name(user_name)}, O={KEYSTORE_ORGANIZATION}, C={KEYSTORE_COUNTRY}"
    return [
        keytool,
        "-genkey",
        "-keystore", str(Path(keystore).resolve()),
        "-alias", KEYSTORE_ALIAS,
        "-keyalg", "RSA",
        "-dname", dname,
        "-validity", str(KEYSTORE_VALIDITY_DAYS),
        "-storepass", KEYSTORE_PASSWORD,
        "-keypass", KEYSTORE_PASSWORD,
    ]


def create_keystore(
    user_name: str,
    project_root: Path,
    keystore_file_name: str,
    *,
    keytool: str = "keytool",
) -> Optional[Path]:
    """Generate a keystore under *project_root*.

    Returns the keystore path, or ``None`` when keytool failed or produced an
    empty file. A missing keytool binary is treated the same way.
    """
    keystore = Path(project_root) / keystore_file_name
    keystore.parent.mkdir(parents=True, exist_ok=True)
    cmd = keytool_command(keytool, keystore, user_name)
    try:
        res = run_cmd(cmd)
    except OSError as e:
        logger.error("keytool could not be started (%s): %s", keytool, e)
        return None

    if res.exit_code != 0:
        logger.error("keytool exited with %s: %s", res.exit_code, res.stderr.strip()[:500])
        return None
    if not keystore.exists() or keystore.stat().st_size == 0:
        logger.error("keytool produced no keystore at %s", keystore)
        return None
    return keystore.resolve()
