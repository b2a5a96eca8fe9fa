"""File, directory and diagnostics services used around the block editor."""

from regenblocks.services.diagnostics import ConversionError, ConversionLog
from regenblocks.services.dir_helper import clean_dir, create_clean_dir, create_dir_path, find_parent_dir
from regenblocks.services.file_cleaner import FileCleaner
from regenblocks.services.file_operations import atomic_write, read_lines, write_if_changed

__all__ = [
    "ConversionError",
    "ConversionLog",
    "FileCleaner",
    "atomic_write",
    "clean_dir",
    "create_clean_dir",
    "create_dir_path",
    "find_parent_dir",
    "read_lines",
    "write_if_changed",
]
