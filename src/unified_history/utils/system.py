"""System utility checks."""

from __future__ import annotations

import os
from pathlib import Path


def check_store_location(path: str | Path) -> tuple[bool, str]:
    """Check that the store file can be created or appended to."""
    resolved = Path(path).expanduser()
    if resolved.exists():
        if not resolved.is_file():
            return False, f"Not a regular file: {resolved}"
        if not os.access(resolved, os.W_OK):
            return False, f"Store is read-only: {resolved}"
        return True, str(resolved)

    parent = resolved.parent
    while not parent.exists():
        if parent.parent == parent:
            return False, f"No existing parent directory for {resolved}"
        parent = parent.parent
    if not parent.is_dir():
        return False, f"Not a directory: {parent}"
    if not os.access(parent, os.W_OK | os.X_OK):
        return False, f"Directory not writable: {parent}"
    return True, str(resolved)
