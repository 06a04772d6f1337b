"""buildserver.publish

Copy build outputs out of the workspace before it is deleted.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional, Tuple

from buildserver.core import BUILD_DEPLOY_DIR
from buildserver.errors import ArtifactMissingWarning

logger = logging.getLogger(__name__)


def expected_artifact(project_root: Path, output_name: str) -> Path:
    return Path(project_root) / BUILD_DEPLOY_DIR / output_name


def publish_artifacts(
    project_root: Path,
    output_dir: Path,
    output_name: str,
    *,
    keystore_path: Optional[Path] = None,
    keystore_created: bool = False,
) -> Tuple[Optional[Path], Optional[Path]]:
    """Copy the artifact (and a keystore made by this build) to *output_dir*.

    Returns ``(artifact, keystore)`` in the output directory, each ``None``
    when not copied. A missing artifact is logged as an
    :class:`ArtifactMissingWarning` and is not an error; without an artifact
    the keystore is not published either. Copy failures (``OSError``)
    propagate.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    src = expected_artifact(project_root, output_name)
    if not src.is_file():
        logger.warning(
            "%s: pipeline succeeded but no artifact at %s/%s",
            ArtifactMissingWarning.__name__,
            BUILD_DEPLOY_DIR,
            output_name,
        )
        return None, None

    artifact = Path(shutil.copy2(src, out / src.name))
    logger.info("published %s", artifact)

    keystore: Optional[Path] = None
    if keystore_created and keystore_path is not None and Path(keystore_path).is_file():
        keystore = Path(shutil.copy2(keystore_path, out / Path(keystore_path).name))
        logger.info("published new keystore %s", keystore)

    return artifact, keystore
