"""Named and anonymous container blocks.

A NestedBlock is the node of a block tree. It is created either by parsing
marker-delimited text:

    //+ Usings
    using System;
    //- Usings

or programmatically by a generator (append_block, find(create=True),
start_block). Rendering writes the marker lines back around the children,
except for anonymous blocks and blocks whose name starts with '*'.
"""

import inspect
import re
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Union

from regenblocks.editor.blocks import TextBlock, join_lines
from regenblocks.editor.context import EditorContext
from regenblocks.editor.exceptions import (
    AmbiguousNameMatchError,
    DuplicateBlockNameError,
    InvalidMergeStructureError,
    MalformedDelimiterError,
    MissingBlockError,
    RegenBlocksError,
)

INDENT_ONE_LEVEL = "    "

# Column of the call-site comment appended to code lines in debug mode
COMMENT_COL = 140

# append_comment breaks at the first space past this column
COMMENT_WRAP = 60

Block = Union[TextBlock, "NestedBlock"]


def to_lines(text: str) -> list[str]:
    """Split text into lines. An empty string is one empty line."""
    return text.replace("\r\n", "\n").split("\n")


class ChildBlocks:
    """Ordered children of a NestedBlock plus the index of the named ones.

    Both views are updated together by every mutating method, so a named
    child is always present in the ordered list and vice versa.
    """

    def __init__(self) -> None:
        self._items: list[Block] = []
        self._named: dict[str, "NestedBlock"] = {}

    def append(self, block: Block) -> Block:
        """Append a child.

        Raises:
            DuplicateBlockNameError: If a sibling already has the block's name
        """
        if isinstance(block, NestedBlock) and block.name:
            if block.name in self._named:
                raise DuplicateBlockNameError(block.name)
            self._named[block.name] = block
        self._items.append(block)
        return block

    def get(self, name: str) -> Optional["NestedBlock"]:
        return self._named.get(name)

    def remove_where(self, predicate: Callable[[Block], bool]) -> list[Block]:
        """Remove every child for which predicate is true.

        Returns:
            The removed children, in their original order
        """
        kept: list[Block] = []
        removed: list[Block] = []
        for block in self._items:
            (removed if predicate(block) else kept).append(block)
        self._items = kept
        self._named = {
            block.name: block
            for block in kept
            if isinstance(block, NestedBlock) and block.name
        }
        return removed

    def clear(self) -> None:
        self._items.clear()
        self._named.clear()

    def last(self) -> Optional[Block]:
        return self._items[-1] if self._items else None

    @property
    def named(self) -> list["NestedBlock"]:
        return list(self._named.values())

    def __iter__(self) -> Iterator[Block]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> Block:
        return self._items[index]


class NestedBlock:
    """Container block holding text blocks and further nested blocks.

    Attributes:
        name: Block name; empty for anonymous blocks
        children: Ordered children with their name index
        end_line: Literal line that closed the block ('//- Name')
        base_margin: Margin captured from the start line
        indent_margin: Extra indentation pushed by indent()/unindent()
        macro_inhibit: While > 0, appended lines are not macro-expanded
        context: Shared delimiter and macro configuration (not owned)
    """

    # Process-wide: suffix generated code lines with the generator call site
    debug_flag: bool = False

    def __init__(self, context: EditorContext, name: str = ""):
        self.context = context
        self.name = name.strip()
        self.children = ChildBlocks()
        self._start_line = ""
        self.end_line = ""
        self.base_margin = ""
        self.indent_margin = ""
        self.macro_inhibit = 0

    def __repr__(self) -> str:
        return f"NestedBlock({self.name!r})"

    # ------------------------------------------------------------------
    # State

    @property
    def start_line(self) -> str:
        """Literal line that opened the block ('//+ Name')."""
        return self._start_line

    @start_line.setter
    def start_line(self, value: str) -> None:
        self._start_line = value
        position = value.find(self.context.block_start)
        self.base_margin = value[:position] if position >= 0 else ""

    @property
    def margin_string(self) -> str:
        return self.base_margin + self.indent_margin

    @property
    def margin_length(self) -> int:
        return len(self.base_margin) + len(self.indent_margin)

    @property
    def is_empty(self) -> bool:
        return all(child.is_empty for child in self.children)

    @property
    def named_blocks(self) -> list["NestedBlock"]:
        return self.children.named

    @property
    def has_named_blocks(self) -> bool:
        return bool(self.children.named)

    @property
    def has_text_blocks(self) -> bool:
        """True if any child is a text block or an anonymous block."""
        return len(self.children) > len(self.children.named)

    @property
    def code(self) -> list[str]:
        """Mutable lines of this block's single text block.

        Creates the text block if the block is empty.

        Raises:
            RegenBlocksError: If the block holds anything but one text block
        """
        if len(self.children) == 0:
            return self.children.append(TextBlock()).code
        if len(self.children) == 1 and isinstance(self.children[0], TextBlock):
            return self.children[0].code
        raise RegenBlocksError(f"Invalid block access: '{self.name}' is not a single text block")

    def clear(self) -> None:
        """Remove all children."""
        self.children.clear()

    def copy(self, context: Optional[EditorContext] = None) -> "NestedBlock":
        """Deep copy of this block, optionally rebound to another context."""
        clone = NestedBlock(context or self.context, self.name)
        clone._start_line = self._start_line
        clone.end_line = self.end_line
        clone.base_margin = self.base_margin
        clone.indent_margin = self.indent_margin
        for child in self.children:
            if isinstance(child, TextBlock):
                clone.children.append(child.copy())
            else:
                clone.children.append(child.copy(clone.context))
        return clone

    # ------------------------------------------------------------------
    # Margins

    def indent_marker_lines(self, indent: int) -> "NestedBlock":
        """Re-indent the start and end marker lines to the given level."""
        margin = INDENT_ONE_LEVEL * indent
        self.start_line = f"{margin}{self.start_line.strip()}"
        self.end_line = f"{margin}{self.end_line.strip()}"
        return self

    def set_base_margin(self, indent_level: int) -> "NestedBlock":
        self.base_margin = INDENT_ONE_LEVEL * indent_level
        return self

    def set_indent(self, indent_level: int) -> "NestedBlock":
        self.indent_margin = INDENT_ONE_LEVEL * indent_level
        return self

    def indent(self) -> "NestedBlock":
        self.indent_margin += INDENT_ONE_LEVEL
        return self

    def unindent(self) -> "NestedBlock":
        if len(self.indent_margin) < len(INDENT_ONE_LEVEL):
            raise ValueError(f"Block '{self.name}' is not indented")
        self.indent_margin = self.indent_margin[: -len(INDENT_ONE_LEVEL)]
        return self

    # ------------------------------------------------------------------
    # Parsing

    def load(self, lines: Union[str, Iterable[str]], add_margin: bool = False) -> None:
        """Replace the children with the blocks parsed from lines.

        Args:
            lines: Raw lines (or a single text that is split into lines)
            add_margin: Prefix every literal line with this block's margin

        Raises:
            MalformedDelimiterError: If a start marker lacks its terminator,
                or an end marker closes no open block
            DuplicateBlockNameError: If sibling blocks share a name
            MacroSyntaxError: If a literal line holds a malformed macro
        """
        if isinstance(lines, str):
            lines = to_lines(lines)
        self.children.clear()
        self._parse(iter(lines), add_margin, top_level=True)

    def _parse(self, lines: Iterator[str], add_margin: bool, top_level: bool) -> None:
        # `lines` is shared with the recursive calls, so a nested block
        # consumes its body from the same stream as its parent.
        context = self.context
        text_block: Optional[TextBlock] = None

        for line in lines:
            stripped = line.strip()

            if stripped.startswith(context.block_start):
                name = stripped[len(context.block_start):].strip()
                if context.block_start_term:
                    if not name.endswith(context.block_start_term):
                        raise MalformedDelimiterError(
                            line, "Invalid termination for block start"
                        )
                    name = name[: -len(context.block_start_term)].strip()

                block = NestedBlock(context, name)
                block.start_line = line
                self.children.append(block)
                block._parse(lines, add_margin, top_level=False)
                text_block = None

            elif stripped.startswith(context.block_end):
                if top_level:
                    raise MalformedDelimiterError(line, "Unmatched block end")
                self.end_line = line
                return

            else:
                if text_block is None:
                    text_block = TextBlock()
                    self.children.append(text_block)
                line = self._process_line(line)
                if add_margin:
                    line = f"{self.margin_string}{line}"
                text_block.code.extend(to_lines(line))

    def reload(self) -> None:
        """Expand macros again in every text line of this subtree.

        Resolves references that were left unexpanded because their macro
        was not yet registered when the lines were loaded.
        """
        for child in self.children:
            if isinstance(child, TextBlock):
                expanded: list[str] = []
                for line in child.code:
                    expanded.extend(to_lines(self._process_line(line)))
                child.set(expanded)
            else:
                child.reload()

    def _process_line(self, line: str) -> str:
        return self.context.expander.expand(line, self.macro_inhibit)

    # ------------------------------------------------------------------
    # Lookup

    def find(self, block_name: str, create: bool = False) -> Optional["NestedBlock"]:
        """Find a named child, optionally creating it at the end.

        Returns:
            The child, or None if absent and create is False
        """
        block = self.children.get(block_name)
        if block is None and create:
            block = self.append_block(block_name)
        return block

    def find_required(self, block_name: str) -> "NestedBlock":
        """Find a named child.

        Raises:
            MissingBlockError: If there is no such child
        """
        block = self.children.get(block_name)
        if block is None:
            raise MissingBlockError(block_name)
        return block

    def replace(
        self,
        block_name: str,
        code: Union[str, Iterable[str]],
        add_margin: bool = False,
    ) -> bool:
        """Replace the content of a named child with parsed code.

        Returns:
            False if there is no child of that name (nothing is changed)
        """
        block = self.children.get(block_name)
        if block is None:
            return False
        block.load(code, add_margin)
        return True

    def match_name(self, pattern: str) -> bool:
        """Return True if pattern matches the block name exactly once.

        Empty matches are not counted.

        Raises:
            AmbiguousNameMatchError: If pattern matches more than once
        """
        count = sum(1 for m in re.finditer(pattern, self.name) if m.end() > m.start())
        if count > 1:
            raise AmbiguousNameMatchError(self.name, pattern)
        return count == 1

    # ------------------------------------------------------------------
    # Construction

    def append_block(self, block_name: str = "") -> "NestedBlock":
        """Append a new child block with marker lines at the current margin."""
        block = NestedBlock(self.context, block_name)
        block.start_line = self.context.start_marker(self.margin_string, block.name)
        block.end_line = self.context.end_marker(self.margin_string, block.name)
        self.children.append(block)
        return block

    def append_child(self, block: Block) -> Block:
        """Append an existing text or nested block as the last child."""
        return self.children.append(block)

    def insert_block(self, block: "NestedBlock") -> "NestedBlock":
        """Append block, rewriting its marker lines for this block's margin."""
        if block.name:
            block.start_line = self.context.start_marker(self.margin_string, block.name)
            block.end_line = self.context.end_marker(self.margin_string, block.name)
        else:
            block.start_line = ""
            block.end_line = ""
        self.children.append(block)
        return self

    def start_block(self, block_name: str = "") -> "BlockBuilder":
        """Append a new child and return a builder scoped to it.

        Example:
            >>> with parent.start_block("Fields") as fields:
            ...     fields.append_line("int x;")
        """
        return BlockBuilder(self, self.append_block(block_name))

    def append_raw(self, text: str) -> "NestedBlock":
        """Append text verbatim (no margin, no macros) to the trailing text block."""
        current = self.children.last()
        if not isinstance(current, TextBlock):
            current = self.children.append(TextBlock())
        current.code.extend(to_lines(text))
        return self

    def append_line(self, line: str, margin: Optional[str] = None) -> "NestedBlock":
        if margin is None:
            margin = self.margin_string
        return self.append_raw(self._process_line(f"{margin}{line}"))

    def append_unique_line(self, line: str, margin: Optional[str] = None) -> "NestedBlock":
        """Append a line unless it is already present, ignoring surrounding whitespace.

        A line that expands to several lines is skipped only when the same
        run of lines already appears in the block.
        """
        if margin is None:
            margin = self.margin_string
        formatted = self._process_line(f"{margin}{line}")
        wanted = [part.strip() for part in to_lines(formatted)]
        existing = [part.strip() for part in self.lines()]
        for start in range(len(existing) - len(wanted) + 1):
            if existing[start:start + len(wanted)] == wanted:
                return self
        return self.append_raw(formatted)

    def append_lines(self, prefix: str, lines: Iterable[str]) -> "NestedBlock":
        for line in lines:
            self.append_line(f"{prefix}{line}")
        return self

    def append_comment(self, text: Optional[str], prefix: str = "// ") -> "NestedBlock":
        """Append text as comment lines, wrapping long lines.

        Macro references in the comment are not expanded.
        """
        if text is None:
            return self
        self.macro_inhibit += 1
        try:
            for chunk in _wrap_comment(text, COMMENT_WRAP):
                self.append_line(f"{prefix}{chunk}")
        finally:
            self.macro_inhibit -= 1
        return self

    def append_comments(self, *lines: str, prefix: str = "// ") -> "NestedBlock":
        self.macro_inhibit += 1
        try:
            for line in lines:
                self.append_line(f"{prefix}{line}")
        finally:
            self.macro_inhibit -= 1
        return self

    def append_code(self, code_line: str) -> "NestedBlock":
        """Append a generated code line at the current margin.

        With debug_flag set, the line ends in a comment naming the file
        and line of the generator code that appended it.
        """
        line = f"{self.margin_string}{code_line}"
        if NestedBlock.debug_flag:
            file_name, line_number = _call_site()
            line = f"{line}%col:{COMMENT_COL}%// {file_name}:{line_number}"
        return self.append_raw(self._process_line(line))

    def blank_line(self) -> "NestedBlock":
        return self.append_code("")

    def open_brace(self) -> "NestedBlock":
        self.append_code("{")
        return self.indent()

    def close_brace(self, term: str = "") -> "NestedBlock":
        self.unindent()
        return self.append_code(f"}}{term}")

    def call(self, code: Callable[["NestedBlock"], None]) -> "NestedBlock":
        code(self)
        return self

    def when(
        self,
        condition: bool,
        code: Callable[["NestedBlock"], None],
        otherwise: Optional[Callable[["NestedBlock"], None]] = None,
    ) -> "NestedBlock":
        if condition:
            code(self)
        elif otherwise is not None:
            otherwise(self)
        return self

    # ------------------------------------------------------------------
    # Merge, clear, purge

    def merge(self, pattern: str, merge_from: "NestedBlock") -> "NestedBlock":
        """Merge merge_from into this block.

        If this block's name matches pattern, its content is replaced by the
        content of merge_from: text and anonymous children are copied in, and
        named children are merged into the same-named local children. If the
        name does not match, only same-named children are merged (see
        merge_named_children).

        A name matches when pattern finds exactly one non-empty match in it
        (match_name). Empty matches are never counted, so ".*" matches
        "Foo" once and never matches the anonymous root "".

        Raises:
            InvalidMergeStructureError: If a matching target or its source
                holds both named children and text/anonymous children
            AmbiguousNameMatchError: If pattern matches a name more than once
        """
        if not self.match_name(pattern):
            return self.merge_named_children(pattern, merge_from)

        if self.has_named_blocks and self.has_text_blocks:
            raise InvalidMergeStructureError(self.name, "target")
        if merge_from.has_named_blocks and merge_from.has_text_blocks:
            raise InvalidMergeStructureError(merge_from.name, "source")

        if self.has_text_blocks:
            self.clear()

        for merge_block in merge_from.children:
            if isinstance(merge_block, NestedBlock) and merge_block.name:
                local = self.find(merge_block.name)
                if local is not None:
                    local.merge(pattern, merge_block)
            elif isinstance(merge_block, TextBlock):
                self.children.append(merge_block.copy())
            else:
                self.children.append(merge_block.copy(self.context))
        return self

    def merge_named_children(self, pattern: str, merge_from: "NestedBlock") -> "NestedBlock":
        """Merge each named child of merge_from into the same-named local child.

        Source children without a local counterpart, and all unnamed source
        content, are ignored.
        """
        for merge_block in merge_from.children.named:
            local = self.find(merge_block.name)
            if local is not None:
                local.merge(pattern, merge_block)
        return self

    def clear_matching(self, pattern: str) -> "NestedBlock":
        """Empty the text of this block and its named descendants whose names match.

        Structure is kept: only text blocks are emptied, and recursion stops
        at the first named block whose name does not match.
        """
        if not self.match_name(pattern):
            return self
        for child in self.children:
            if isinstance(child, TextBlock):
                child.clear()
        for block in self.children.named:
            block.clear_matching(pattern)
        return self

    def purge_unused_children(self, used_blocks: Iterable[str]) -> list["NestedBlock"]:
        """Remove named children whose names are not in used_blocks.

        Returns:
            The removed blocks
        """
        used = set(used_blocks)
        return self.children.remove_where(
            lambda block: isinstance(block, NestedBlock)
            and bool(block.name)
            and block.name not in used
        )

    # ------------------------------------------------------------------
    # Rendering

    def _has_markers(self) -> bool:
        return bool(self.name.strip()) and not self.name.startswith("*")

    def lines(self) -> list[str]:
        """Rendered lines of all children."""
        result: list[str] = []
        for child in self.children:
            result.extend(child.all_lines())
        return result

    def all_lines(self) -> list[str]:
        """Rendered lines including this block's own marker lines."""
        if not self._has_markers():
            return self.lines()
        return [self.start_line, *self.lines(), self.end_line]

    def text(self) -> str:
        return join_lines(self.lines())

    def all_text(self) -> str:
        return join_lines(self.all_lines())


class BlockBuilder:
    """Scope returned by NestedBlock.start_block.

    Used as a context manager, it yields the new child and hands control
    back to the parent when the with-block exits, including on error.
    Once ended, the scope no longer gives access to the child.
    """

    def __init__(self, parent: NestedBlock, block: NestedBlock):
        self.parent = parent
        self._block = block
        self.closed = False

    @property
    def block(self) -> NestedBlock:
        if self.closed:
            raise RegenBlocksError(f"Block scope '{self._block.name}' is already closed")
        return self._block

    def __enter__(self) -> NestedBlock:
        return self.block

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.closed:
            self.end()

    def end(self) -> NestedBlock:
        """Close the scope and return the parent block.

        Raises:
            RegenBlocksError: If the scope was already closed
        """
        if self.closed:
            raise RegenBlocksError(f"Block scope '{self._block.name}' is already closed")
        self.closed = True
        return self.parent



def _wrap_comment(text: str, width: int) -> list[str]:
    """Split text at newlines and at the first space past width."""
    chunks = []
    while text:
        length = 0
        chunk = ""
        while length < len(text):
            c = text[length]
            length += 1
            if c == "\r":
                continue
            if c == "\n":
                break
            chunk += c
            if c == " " and length > width:
                break
        chunks.append(chunk.rstrip())
        text = text[length:]
    return chunks


def _call_site() -> tuple[str, int]:
    """File name and line number of the first caller outside this module."""
    frame = inspect.currentframe()
    try:
        while frame is not None and frame.f_code.co_filename == __file__:
            frame = frame.f_back
        if frame is None:
            return "<unknown>", 0
        return Path(frame.f_code.co_filename).name, frame.f_lineno
    finally:
        del frame
