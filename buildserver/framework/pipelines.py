"""buildserver.framework.pipelines

Pipeline definitions (ordered task lists), one per target format.

This is intentionally small and declarative. The order encodes the
dependencies between tasks (manifest before resource merge, resource merge
before class generation, class generation before packaging, packaging before
signing) and is never changed at run time.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

from buildserver.core import AAB_EXTENSION, APK_EXTENSION

_PREPARE: Tuple[str, ...] = (
    "read_build_info",
    "load_component_info",
    "prepare_app_icon",
    "xml_config",
    "create_manifest",
    "attach_native_libs",
    "attach_aar_libs",
    "attach_comp_assets",
    "merge_resources",
    "setup_libs",
)

_COMPILE: Tuple[str, ...] = (
    "generate_classes",
    "run_multidex",
)

PIPELINES: Dict[str, List[str]] = {
    # Installable package: aapt resources, then build/align/sign the APK.
    APK_EXTENSION: [
        *_PREPARE,
        "run_aapt",
        *_COMPILE,
        "run_apk_builder",
        "run_zip_align",
        "run_apk_signer",
    ],

    # Store bundle: aapt2 resources, then bundletool.
    AAB_EXTENSION: [
        *_PREPARE,
        "run_aapt2",
        *_COMPILE,
        "run_bundletool",
    ],
}


def pipeline_for(build_format: str) -> List[str]:
    try:
        return list(PIPELINES[build_format])
    except KeyError:
        raise KeyError(f"No pipeline for build format: {build_format}") from None
