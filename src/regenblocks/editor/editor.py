"""Editor for files made of marker-delimited blocks.

A CodeEditor owns one block tree and the configuration shared by its
blocks. Typical regeneration flow:

    >>> existing = CodeEditor()
    >>> existing.load(Path("Patient.cs"))
    >>> generated = CodeEditor()
    >>> generated.blocks.find("GeneratedFields", create=True).append_line("int id;")
    >>> existing.merge("Generated.*", generated)
    >>> existing.save()

Blocks whose names match the pattern are replaced with the generated content;
all other (hand-edited) blocks are kept.
"""

from pathlib import Path
from typing import Iterable, Optional

from regenblocks.editor.context import EditorContext
from regenblocks.editor.macros import MacroExpander, MacroRegistry, MacroValue
from regenblocks.editor.nested import NestedBlock
from regenblocks.models.config import EditorConfig
from regenblocks.services.file_operations import read_lines, write_if_changed
from regenblocks.utils.logging import get_logger

logger = get_logger(__name__)


class CodeEditor:
    """Block tree of one file plus its delimiters and user macros.

    Attributes:
        blocks: Root block (anonymous)
        macros: User macro registry
        save_path: Path used by save() when none is given
    """

    def __init__(
        self,
        block_start: str = "//+",
        block_end: str = "//-",
        block_start_term: str = "",
        block_end_term: str = "",
        ignore_macros_in_quoted_strings: bool = True,
    ):
        self.macros = MacroRegistry()
        self._context = EditorContext(
            block_start=block_start,
            block_start_term=block_start_term,
            block_end=block_end,
            block_end_term=block_end_term,
            expander=MacroExpander(self.macros, ignore_macros_in_quoted_strings),
        )
        self.blocks = NestedBlock(self._context, "")
        self.save_path: Optional[Path] = None

    @classmethod
    def from_config(cls, config: EditorConfig) -> "CodeEditor":
        """Create an editor with the delimiters and macros of config.

        Note that debug_call_sites sets the process-wide debug flag.
        """
        editor = cls(
            block_start=config.delimiters.start,
            block_end=config.delimiters.end,
            block_start_term=config.delimiters.start_term,
            block_end_term=config.delimiters.end_term,
            ignore_macros_in_quoted_strings=config.ignore_macros_in_quoted_strings,
        )
        for name, value in config.macros.items():
            editor.add_user_macro(name, value)
        if config.debug_call_sites:
            cls.set_debug_flag(True)
        return editor

    @staticmethod
    def set_debug_flag(enabled: bool) -> None:
        """Turn call-site comments on generated code lines on or off, process-wide."""
        NestedBlock.debug_flag = enabled

    # Delimiter settings live on the shared context so every block sees them

    @property
    def context(self) -> EditorContext:
        return self._context

    @property
    def block_start(self) -> str:
        return self._context.block_start

    @block_start.setter
    def block_start(self, value: str) -> None:
        self._context.block_start = value

    @property
    def block_start_term(self) -> str:
        return self._context.block_start_term

    @block_start_term.setter
    def block_start_term(self, value: str) -> None:
        self._context.block_start_term = value

    @property
    def block_end(self) -> str:
        return self._context.block_end

    @block_end.setter
    def block_end(self, value: str) -> None:
        self._context.block_end = value

    @property
    def block_end_term(self) -> str:
        return self._context.block_end_term

    @block_end_term.setter
    def block_end_term(self, value: str) -> None:
        self._context.block_end_term = value

    @property
    def ignore_macros_in_quoted_strings(self) -> bool:
        return self._context.expander.ignore_macros_in_quoted_strings

    @ignore_macros_in_quoted_strings.setter
    def ignore_macros_in_quoted_strings(self, value: bool) -> None:
        self._context.expander.ignore_macros_in_quoted_strings = value

    # ------------------------------------------------------------------
    # Load / save

    def load(self, path: Path) -> None:
        """Load the block tree from a file and remember it as save_path.

        Lines are kept exactly as read (no margin is added).

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        lines = read_lines(path)
        self.load_lines(lines, add_margin=False)
        self.save_path = path
        logger.info("editor_loaded", path=str(path), lines=len(lines))

    def load_lines(self, lines: Iterable[str], add_margin: bool = True) -> None:
        """Replace the block tree with the blocks parsed from lines."""
        self.blocks.load(lines, add_margin)

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the rendered text to path (default: save_path) if it changed.

        Returns:
            The path written (or left untouched because it was current)
        """
        if path is None:
            path = self.save_path
        if path is None:
            raise ValueError("No save path given and none remembered from load()")
        self.save_path = path
        written = write_if_changed(path, self.blocks.all_text())
        logger.info("editor_saved", path=str(path), changed=written)
        return path

    def lines(self) -> list[str]:
        return self.blocks.all_lines()

    def __str__(self) -> str:
        return self.blocks.all_text()

    # ------------------------------------------------------------------
    # Macros

    def try_get_user_macro(self, name: str) -> Optional[MacroValue]:
        return self.macros.get(name)

    def try_add_user_macro(self, name: str, value: MacroValue) -> bool:
        """Add a user macro unless the name is already registered.

        Returns:
            False if a macro of that name already exists (nothing changed)

        Raises:
            ValueError: If name is empty or doesn't start with upper case
        """
        return self.macros.try_add(name, value)

    def add_user_macro(self, name: str, value: MacroValue) -> None:
        """Add a user macro, overwriting any existing macro of the same name."""
        self.macros.add(name, value)

    # ------------------------------------------------------------------
    # Merge

    def merge(self, pattern: str, merge_from: "CodeEditor") -> None:
        """Merge blocks of merge_from whose names match pattern into this editor."""
        self.blocks.merge(pattern, merge_from.blocks)

    def merge_named_children(self, pattern: str, merge_from: "CodeEditor") -> None:
        self.blocks.merge_named_children(pattern, merge_from.blocks)
