"""buildserver.toolchain

Everything that starts an external process lives here.
"""

from .cmd import CmdResult, run_cmd, which_or_raise
from .keytool import create_keystore, keytool_command, quotify_user_name

__all__ = [
    "CmdResult",
    "run_cmd",
    "which_or_raise",
    "create_keystore",
    "keytool_command",
    "quotify_user_name",
]
