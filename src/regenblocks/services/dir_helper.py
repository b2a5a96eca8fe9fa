"""Directory helpers for generator output locations."""

import shutil
from pathlib import Path
from typing import Optional


def create_clean_dir(path: Path) -> None:
    """Create path, or empty it if it already exists.

    The directory itself is kept rather than deleted and recreated.
    """
    if not path.exists():
        path.mkdir(parents=True)
        return
    clean_dir(path)


def create_dir_path(path: Path) -> None:
    """Create path and any missing parents."""
    if not str(path):
        raise ValueError(f"Invalid path {path!r}")
    path.mkdir(parents=True, exist_ok=True)


def clean_dir(path: Path) -> None:
    """Delete every file and subdirectory inside path."""
    for entry in path.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


def find_parent_dir(dir_name: str, start: Optional[Path] = None) -> Path:
    """Find a directory named dir_name in start or one of its ancestors.

    Args:
        dir_name: Name of the directory to look for
        start: Directory to start from (default: current directory)

    Returns:
        Path to the first match, searching upwards

    Raises:
        FileNotFoundError: If the filesystem root is reached without a match
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / dir_name
        if candidate.is_dir():
            return candidate
    raise FileNotFoundError(f"Parent directory {dir_name} not found")
