"""Block tree, parser, macro interpreter and merge."""

from regenblocks.editor.blocks import TextBlock
from regenblocks.editor.context import EditorContext
from regenblocks.editor.editor import CodeEditor
from regenblocks.editor.exceptions import (
    AmbiguousNameMatchError,
    DuplicateBlockNameError,
    InvalidMergeStructureError,
    MacroSyntaxError,
    MalformedDelimiterError,
    MissingBlockError,
    RegenBlocksError,
    UnterminatedMacroError,
)
from regenblocks.editor.macros import MacroExpander, MacroRegistry
from regenblocks.editor.nested import BlockBuilder, ChildBlocks, NestedBlock

__all__ = [
    "AmbiguousNameMatchError",
    "BlockBuilder",
    "ChildBlocks",
    "CodeEditor",
    "DuplicateBlockNameError",
    "EditorContext",
    "InvalidMergeStructureError",
    "MacroExpander",
    "MacroRegistry",
    "MacroSyntaxError",
    "MalformedDelimiterError",
    "MissingBlockError",
    "NestedBlock",
    "RegenBlocksError",
    "TextBlock",
    "UnterminatedMacroError",
]
