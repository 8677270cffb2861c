"""
File and directory utilities for the blob store.
"""

import re
from pathlib import Path


def ensure_directory_exists(path: str | Path) -> Path:
    """
    Create the directory (and any missing parents) if it does not exist.

    Returns:
        Resolved Path of the directory.
    """
    p = Path(path).resolve()
    p.mkdir(parents=True, exist_ok=True)
    return p


def sanitize_file_name(file_name: str) -> str:
    """Keep letters, digits, dot, underscore and hyphen; cap at 128 chars."""
    clean = re.sub(r"[^a-zA-Z0-9._-]", "_", (file_name or "upload.bin").strip())
    return clean[:128] or "upload.bin"


def resolve_inside(root: str | Path, relative: str) -> Path:
    """
    Join *relative* onto *root* and refuse paths that escape it.

    Raises:
        ValueError: If the resolved path is outside *root*.
    """
    base = Path(root).resolve()
    target = (base / relative).resolve()
    if target != base and base not in target.parents:
        raise ValueError(f"Path escapes storage root: {relative}")
    return target
