"""Executable discovery for pagebuild.

Some capabilities (script transpilation) are delegated to Node tools that
may be installed globally or in the project's ``node_modules``.

Functions:
    find_executable: Locate an executable in PATH or node_modules.
"""

from __future__ import annotations

import shutil
from pathlib import Path


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Find an executable, preferring the project's local node_modules.

    Args:
        name: Executable name (e.g. 'babel').
        project_root: Optional project root holding node_modules/.bin.

    Returns:
        Full path to the executable if found, None otherwise.

    Examples:
        >>> find_executable('babel', Path('/my/project'))
        '/my/project/node_modules/.bin/babel'
    """
    if project_root is not None:
        local = project_root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)
    return shutil.which(name)
