"""Exceptions raised by the block tree and macro interpreter."""


class RegenBlocksError(Exception):
    """Base class for all block editing errors."""


class MalformedDelimiterError(RegenBlocksError):
    """Raised when a block marker line cannot be parsed.

    Either a start line lacks the configured start terminator, or an end
    marker appears where no block is open.

    Attributes:
        line: The offending marker line
        message: Human-readable error message
    """

    def __init__(self, line: str, message: str = "Invalid block delimiter"):
        self.line = line
        self.message = message
        super().__init__(f"{message}: '{line}'")


class DuplicateBlockNameError(RegenBlocksError):
    """Raised when two sibling blocks share a name.

    Attributes:
        name: The duplicated block name
    """

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate block name '{name}'")


class AmbiguousNameMatchError(RegenBlocksError):
    """Raised when a block name matches a pattern more than once."""

    def __init__(self, name: str, pattern: str):
        self.name = name
        self.pattern = pattern
        super().__init__(
            f"Name '{name}' matched expression '{pattern}' multiple times"
        )


class InvalidMergeStructureError(RegenBlocksError):
    """Raised when a merge target or source mixes named and unnamed children.

    Attributes:
        name: Name of the offending block
        role: "target" or "source"
    """

    def __init__(self, name: str, role: str):
        self.name = name
        self.role = role
        super().__init__(
            f"Block '{name}' can not be a merge {role} when it contains "
            f"both named blocks and unnamed/text blocks"
        )


class MissingBlockError(RegenBlocksError):
    """Raised by find_required when the named block does not exist."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Required block '{name}' not found")


class MacroSyntaxError(RegenBlocksError):
    """Raised for a malformed macro reference or an unusable macro value."""


class UnterminatedMacroError(MacroSyntaxError):
    """Raised when a line ends inside a %...% macro token.

    Attributes:
        line: The line being expanded
    """

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"Unterminated macro in line '{line}'")
