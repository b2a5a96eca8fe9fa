"""Deletion of stale generated files.

A generator that writes a group of files records what already exists in its
output directories, marks every file it (re)writes, and finally deletes
whatever was not marked: outputs of types or resources that no longer exist.
"""

import threading
import time
from pathlib import Path
from typing import Optional

from regenblocks.utils.logging import get_logger

logger = get_logger(__name__)

DELETE_ATTEMPTS = 5
DELETE_RETRY_DELAY = 0.1


class FileCleaner:
    """Tracks existing output files and deletes the ones not marked as written.

    Safe to share between generation passes running on different threads.

    Example:
        >>> with FileCleaner(output_dir, "*.cs") as cleaner:
        ...     for resource in resources:
        ...         path = write_resource(resource)
        ...         cleaner.mark(path)
        # Unmarked *.cs files under output_dir are deleted here
    """

    def __init__(self, output_dir: Optional[Path] = None, file_filter: str = "*"):
        self._lock = threading.Lock()
        self._existing_files: set[Path] = set()
        if output_dir is not None:
            self.add(output_dir, file_filter)

    def __enter__(self) -> "FileCleaner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Keep the old outputs if generation failed part way
        if exc_type is None:
            self.delete_unmarked_files()

    @property
    def existing_files(self) -> set[Path]:
        with self._lock:
            return set(self._existing_files)

    def add(self, output_dir: Path, file_filter: str = "*") -> None:
        """Record files matching file_filter under output_dir (recursively)."""
        if not output_dir.is_dir():
            return
        found = {path.resolve() for path in output_dir.rglob(file_filter) if path.is_file()}
        with self._lock:
            self._existing_files.update(found)
        logger.debug("file_cleaner_scanned", directory=str(output_dir), files=len(found))

    def mark(self, file_path: Path) -> None:
        """Keep file_path: it was written by this generation run."""
        with self._lock:
            self._existing_files.discard(file_path.resolve())

    def delete_unmarked_files(self) -> list[Path]:
        """Delete every recorded file that was not marked.

        Returns:
            The deleted files

        Raises:
            OSError: If a file still can't be deleted after several attempts
        """
        with self._lock:
            stale = sorted(self._existing_files)
            self._existing_files.clear()
        for path in stale:
            _delete_file(path)
        if stale:
            logger.info("stale_files_deleted", count=len(stale))
        return stale


def _delete_file(path: Path) -> None:
    for attempt in range(1, DELETE_ATTEMPTS + 1):
        try:
            path.unlink(missing_ok=True)
            logger.debug("stale_file_deleted", path=str(path))
            return
        except OSError as e:
            logger.warning("stale_file_delete_retry", path=str(path), attempt=attempt, error=str(e))
            time.sleep(DELETE_RETRY_DELAY)
    raise OSError(f"Cant delete file {path}")
