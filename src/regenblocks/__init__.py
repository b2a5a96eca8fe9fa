"""regenblocks - Regenerate marked regions of source files.

A source file is parsed into a tree of blocks delimited by marker comments:

    //+ GeneratedFields
    int id;
    //- GeneratedFields

Generators rebuild blocks programmatically (with a small %Macro% language for
text substitution and column alignment) and merge the regenerated tree back
into the existing file, replacing generated blocks and keeping hand edits.

Example:
    >>> from regenblocks import CodeEditor
    >>> editor = CodeEditor()
    >>> editor.load_lines(["//+ Fields", "int x;", "//- Fields"])
    >>> editor.blocks.find("Fields").lines()
    ['int x;']
"""

__version__ = "0.1.0"

from regenblocks.editor import (
    BlockBuilder,
    CodeEditor,
    MacroExpander,
    MacroRegistry,
    NestedBlock,
    TextBlock,
)

__all__ = [
    "BlockBuilder",
    "CodeEditor",
    "MacroExpander",
    "MacroRegistry",
    "NestedBlock",
    "TextBlock",
    "__version__",
]
