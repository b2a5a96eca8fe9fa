"""File reading and writing for generated sources.

Generated files are written atomically (temp file, fsync, rename) and only
when their content changed, so unchanged outputs keep their timestamps and
build tools do not see spurious modifications.
"""

import os
from pathlib import Path

import structlog

logger = structlog.get_logger()


def read_lines(path: Path) -> list[str]:
    """Read a text file as a list of lines without line terminators.

    Raises:
        FileNotFoundError: If path does not exist
    """
    if not path.exists():
        raise FileNotFoundError(f"File '{path}' not found")
    return path.read_text(encoding="utf-8").splitlines()


def atomic_write(path: Path, content: str) -> None:
    """
    Atomically write content to file with temp-file-rename pattern.

    Args:
        path: Target file path
        content: Content to write

    Raises:
        OSError: On file I/O errors
        PermissionError: On permission errors
    """
    # Same directory keeps the rename on one filesystem
    temp_path = path.parent / f".{path.name}.tmp.{os.getpid()}"

    try:
        temp_path.write_text(content, encoding="utf-8")

        with open(temp_path, "r+", encoding="utf-8") as f:
            f.flush()
            os.fsync(f.fileno())

        temp_path.replace(path)

        logger.debug("atomic_write_success", path=str(path), size=len(content))

    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        logger.error("atomic_write_failed", path=str(path), error=str(e))
        raise


def write_if_changed(path: Path, content: str) -> bool:
    """Write content unless the file already holds exactly that content.

    Returns:
        True if the file was written, False if it was already up to date
    """
    if path.exists() and path.read_text(encoding="utf-8") == content:
        logger.debug("write_skipped_unchanged", path=str(path))
        return False
    atomic_write(path, content)
    logger.info("file_written", path=str(path))
    return True
