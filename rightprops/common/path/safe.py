# rightprops/common/path/safe.py
from __future__ import annotations

import os
from pathlib import Path


def resolve_root(root: Path | str) -> Path:
    """Resolve a lookup root to an absolute path (relative paths are taken from the cwd)."""
    return Path(root).expanduser().absolute()


def ensure_directory(path: Path | str) -> Path:
    """
    Resolve 'path' and validate that it exists, is a directory and can be listed.
    Raises FileNotFoundError / NotADirectoryError / PermissionError otherwise.
    """
    p = resolve_root(path)
    if not p.exists():
        raise FileNotFoundError(f"The path you provided, `{p}`, does not exist.")
    if not p.is_dir():
        raise NotADirectoryError(f"The path you provided, `{p}`, isn't a folder.")
    try:
        with os.scandir(p):
            pass
    except PermissionError as e:
        raise PermissionError(f"The path you provided, `{p}`, can't be read.") from e
    return p


def extension_of(path: Path | str) -> str:
    """Lower-case extension without the dot ("" if none)."""
    return Path(path).suffix.lstrip(".").lower()
