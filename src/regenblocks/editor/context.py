"""Configuration shared by every block of one editor."""

from dataclasses import dataclass, field

from regenblocks.editor.macros import MacroExpander


@dataclass
class EditorContext:
    """Delimiter tokens and macro state shared across a block tree.

    Blocks hold a reference to the context, never to the editor that owns
    the tree.

    Attributes:
        block_start: Token that opens a block (e.g. "//+ Name")
        block_start_term: Required suffix after a block start name, if any
        block_end: Token that closes a block (e.g. "//- Name")
        block_end_term: Suffix written after a block end name, if any
        expander: Macro expander (with its user macro registry)
    """

    block_start: str = "//+"
    block_start_term: str = ""
    block_end: str = "//-"
    block_end_term: str = ""
    expander: MacroExpander = field(default_factory=MacroExpander)

    def start_marker(self, margin: str, name: str) -> str:
        return f"{margin}{self.block_start} {name}{self.block_start_term}"

    def end_marker(self, margin: str, name: str) -> str:
        return f"{margin}{self.block_end} {name}{self.block_end_term}"
