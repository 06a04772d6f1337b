"""buildserver.tasks.keys

Central definitions for TaskEnv keys.

Tasks communicate by reading/writing intermediate values in a
:class:`~buildserver.framework.env.TaskEnv`. Hardcoding string keys in every
task lets small typos silently break the pipeline, so they live here.
"""


class EnvKeys:
    # read_build_info / load_component_info
    BUILD_INFO = "build_info"
    PERMISSIONS = "permissions"
    LIBRARIES = "libraries"
    AAR_LIBRARIES = "aar_libraries"
    NATIVE_LIBS = "native_libs"
    COMPONENT_ASSETS = "component_assets"
    ACTIVITIES = "activities"

    # resources
    APP_ICON = "app_icon"
    STYLES = "styles"
    MANIFEST = "manifest"
    NATIVE_LIBS_DIR = "native_libs_dir"
    AAR_RES_DIRS = "aar_res_dirs"
    AAR_JARS = "aar_jars"
    ASSETS_DIR = "assets_dir"
    MERGED_RES = "merged_res"
    CLASSPATH = "classpath"

    # resource packaging
    RESOURCES_AP = "resources_ap"
    R_JAVA_DIR = "r_java_dir"

    # compile
    CLASSES_DIR = "classes_dir"
    DEX_DIR = "dex_dir"

    # packaging
    UNSIGNED_APK = "unsigned_apk"
    ALIGNED_APK = "aligned_apk"
    ARTIFACT = "artifact"
