"""Atomic file replacement shared by the fixer and the cache."""

import os
import shutil
import tempfile
from pathlib import Path


def atomic_write(path: str | Path, data: bytes, keep_mode: bool = True) -> None:
    """Replace ``path`` with ``data`` via a sibling temp file and os.replace.

    Readers see either the old or the new content, never a partial write.
    """
    target = Path(path)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if keep_mode and target.exists():
            shutil.copymode(target, tmp_name)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
