"""Filesystem helpers: atomic replacement and guarded removal.

Atomic writes go through a temp file in the destination directory, are
flushed and fsynced, then installed with ``os.replace``. Removal refuses any
path that canonicalises outside the workspace root.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path


def atomic_write(path: Path, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """Atomically write ``data`` to ``path``; the target is never half written."""
    target = Path(path)
    parent = target.parent
    parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(parent)
    )
    temp_path = Path(temp_name)
    payload = data.encode(encoding) if isinstance(data, str) else data
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
    except BaseException:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def is_within(child: Path, parent: Path) -> bool:
    """Return True when ``child`` equals ``parent`` or lies beneath it."""
    try:
        Path(child).relative_to(parent)
    except ValueError:
        return False
    return True


def safe_remove_tree(path: Path, workspace_root: Path) -> None:
    """Remove a file or directory tree that lies strictly inside the workspace.

    Symlinks are unlinked without following them.

    Raises
    ------
    ValueError
        If ``path`` is the workspace root itself or lies outside it.
    FileNotFoundError
        If ``path`` does not exist.
    """
    root = Path(workspace_root).resolve()
    target = Path(path)
    candidate = target.parent.resolve() / target.name
    if candidate == root or not is_within(candidate, root):
        raise ValueError(f"Refusing to remove path outside workspace root: {target}")

    if target.is_symlink():
        target.unlink()
        return
    if not target.exists():
        raise FileNotFoundError(target)
    if not is_within(target.resolve(), root):
        raise ValueError(f"Refusing to remove path outside workspace root: {target}")

    if target.is_dir():
        shutil.rmtree(target)
    else:
        target.unlink()
