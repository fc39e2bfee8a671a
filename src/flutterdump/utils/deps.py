"""External tool dependency checker."""

from __future__ import annotations

import os
import platform
import shutil
from pathlib import Path

from flutterdump.exceptions import ToolNotFoundError

# Install hints for required tools
TOOL_INSTALL_HINTS: dict[str, str] = {
    "flutter": (
        "https://docs.flutter.dev/get-started/install (add flutter/bin to PATH "
        "or set FLUTTER_ROOT)"
    ),
}

FLUTTER_ROOT_ENV_VARS = ("FLUTTER_ROOT", "FLUTTER_HOME")


def get_flutter_command() -> str:
    """Resolve the ``flutter`` executable.

    ``FLUTTER_ROOT``/``FLUTTER_HOME`` take precedence (``<root>/bin/flutter``);
    otherwise the command on PATH is used.
    """
    is_windows = platform.system() == "Windows"

    for env_var in FLUTTER_ROOT_ENV_VARS:
        flutter_home = os.environ.get(env_var)
        if flutter_home:
            flutter_bin = Path(flutter_home) / "bin" / "flutter"
            if is_windows:
                return f"{flutter_bin}.bat"
            return str(flutter_bin)

    return "flutter.bat" if is_windows else "flutter"


def check_tool(tool: str) -> bool:
    """Check if a tool is available on PATH (or at an absolute path)."""

    if os.path.isabs(tool):
        return Path(tool).is_file()

    return shutil.which(tool) is not None


def require(*tools: str) -> None:
    """Require that all specified tools are available.

    Args:
        *tools: Names (or absolute paths) of tools that must be available.

    Raises:
        ToolNotFoundError: If any tool is not found.
    """
    for tool in tools:
        if not check_tool(tool):
            name = Path(tool).stem
            raise ToolNotFoundError(tool, TOOL_INSTALL_HINTS.get(name))
