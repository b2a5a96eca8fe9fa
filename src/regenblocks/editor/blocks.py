"""Literal text blocks.

A block tree holds two kinds of node: TextBlock (a run of literal lines) and
NestedBlock (a named or anonymous container, see regenblocks.editor.nested).
"""

from dataclasses import dataclass, field


def join_lines(lines: list[str]) -> str:
    """Join lines with a newline terminator after every line."""
    return "".join(f"{line}\n" for line in lines)


@dataclass
class TextBlock:
    """Ordered run of literal lines.

    Attributes:
        code: The lines, in output order. Lines never contain newlines.
    """

    code: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.code

    def clear(self) -> None:
        """Remove all lines, keeping the block itself in place."""
        self.code.clear()

    def lines(self) -> list[str]:
        return list(self.code)

    def all_lines(self) -> list[str]:
        # Text blocks have no delimiter lines of their own
        return list(self.code)

    def text(self) -> str:
        return join_lines(self.code)

    def all_text(self) -> str:
        return join_lines(self.code)

    def set(self, lines: list[str]) -> None:
        """Replace the content with lines."""
        self.code[:] = lines

    def copy(self) -> "TextBlock":
        return TextBlock(code=list(self.code))
