"""Filesystem helpers."""

from __future__ import annotations

import os
from pathlib import Path
from tempfile import mkstemp


def atomic_write_text(
    path: Path, text: str, encoding: str = "utf-8", errors: str = "strict"
) -> None:
    """Write ``text`` to a temp file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = mkstemp(prefix=path.name + ".tmp", dir=path.parent)
    tmp_path = Path(tmp)
    try:
        with os.fdopen(fd, "w", encoding=encoding, errors=errors, newline="\n") as f:
            _ = f.write(text)

        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o777)
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)
