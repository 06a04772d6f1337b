"""buildserver.tasks

Importing this package registers every build task.

(Decorator-based registration requires module import.)
"""

from . import aapt, attach, build_info, compile, manifest, package, resources  # noqa: F401
