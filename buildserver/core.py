# buildserver/core.py
"""buildserver.core

Process-wide constants shared by every build.

Everything here is read-only after import, so concurrent builds can share it
without coordination.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, FrozenSet

ROOT_DIR = Path(__file__).resolve().parents[1]
PACKAGE_DIR = Path(__file__).resolve().parent
RESOURCES_DIR = PACKAGE_DIR / "resources"

# Bundled resources
SIMPLE_COMPONENTS_JSON = RESOURCES_DIR / "simple_components.json"
SIMPLE_COMPONENTS_TXT = RESOURCES_DIR / "simple_components.txt"
COMPONENT_BUILD_INFO_JSON = RESOURCES_DIR / "component_build_info.json"

# Project layout (relative to the extracted project root)
PROJECT_DIRECTORY = "youngandroidproject"
PROJECT_PROPERTIES_FILE = f"{PROJECT_DIRECTORY}/project.properties"
KEYSTORE_FILE_NAME = "android.keystore"
BUILD_DIR = "build"
BUILD_TMP_DIR = f"{BUILD_DIR}/tmp"
BUILD_DEPLOY_DIR = f"{BUILD_DIR}/deploy"

EXTERNAL_COMPS_DIR = "external_comps"
EXTERNAL_COMPONENT_JSON = "component.json"
EXTERNAL_COMPONENTS_JSON = "components.json"
EXTERNAL_BUILD_INFOS_JSON = "component_build_infos.json"

# Descriptor / source extensions
FORM_PROPERTIES_EXTENSION = ".scm"
CODEBLOCKS_SOURCE_EXTENSION = ".bky"
YAIL_EXTENSION = ".yail"

# Target formats
APK_EXTENSION = "apk"
AAB_EXTENSION = "aab"
BUILD_FORMATS: FrozenSet[str] = frozenset({APK_EXTENSION, AAB_EXTENSION})

# Compiler output handling
MAX_COMPILER_MESSAGE_LENGTH = 160

# Workspace allocation
TEMP_DIR_ATTEMPTS = 10000

# Defaults
DEFAULT_CHILD_PROCESS_RAM_MB = 2048

# Keystore generation. The validity must run past October 22, 2033 for store
# distribution; 10000 days is the platform recommendation.
KEYSTORE_ALIAS = "AndroidKey"
KEYSTORE_PASSWORD = "android"
KEYSTORE_VALIDITY_DAYS = 10000
KEYSTORE_ORGANIZATION = "AppInventor for Android"
KEYSTORE_COUNTRY = "US"

# User-facing messages
MSG_ZIP_PROBLEM = "Problems processing zip file."
MSG_PROPERTIES_PROBLEM = "Problems reading project properties."
MSG_SERVER_ERROR = "Server error performing build"

FORMAT_LABELS: Dict[str, str] = {
    APK_EXTENSION: "Android package",
    AAB_EXTENSION: "Android app bundle",
}
