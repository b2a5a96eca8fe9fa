"""Macro expansion for generated text lines.

A macro reference has the form ``%Name[:arg[:arg...]]%``. Names starting
with a lower-case letter are system macros (built into the expander, e.g.
``%col:40%``); all others are user macros resolved against a MacroRegistry.

Unknown macros of either kind are re-emitted unchanged, so a first generation
pass can leave references for a later pass to resolve.

Example:
    >>> registry = MacroRegistry()
    >>> registry.add("Type", "Patient")
    >>> MacroExpander(registry).expand("class %Type%%col:20%// generated")
    'class Patient       // generated'
"""

from typing import Callable, Iterator, Sequence, Union

from regenblocks.editor.exceptions import MacroSyntaxError, UnterminatedMacroError

MacroValue = Union[str, Sequence[str]]

# fn(text_built_so_far, args) -> new text_built_so_far
SystemMacro = Callable[[str, list[str]], str]


def column_macro(text: str, args: list[str]) -> str:
    """Pad text with spaces up to the requested column."""
    if len(args) != 1:
        raise MacroSyntaxError(
            f"Invalid col value count (expected one, got {len(args)})"
        )
    try:
        column = int(args[0])
    except ValueError as e:
        raise MacroSyntaxError(f"Invalid col macro value '{args[0]}'") from e
    return text.ljust(column)


class MacroRegistry:
    """User macro values keyed by name.

    A value is either a single string or a sequence of strings. Names must
    start with an upper-case letter so they never collide with system macros.
    """

    def __init__(self) -> None:
        self._values: dict[str, MacroValue] = {}

    def try_add(self, name: str, value: MacroValue) -> bool:
        """Register a macro unless one of the same name already exists.

        Returns:
            True if added, False if the name was already registered

        Raises:
            ValueError: If name is empty or does not start with upper case
        """
        if not name:
            raise ValueError("Invalid null or empty user macro name")
        if not name[0].isupper():
            raise ValueError(
                f"Invalid user macro name {name}. "
                f"All user macros must start with upper case letter"
            )
        if name in self._values:
            return False
        self._values[name] = value
        return True

    def add(self, name: str, value: MacroValue) -> None:
        """Register a macro, overwriting any existing value."""
        self._values.pop(name, None)
        self.try_add(name, value)

    def get(self, name: str) -> MacroValue | None:
        return self._values.get(name)

    def names(self) -> list[str]:
        return list(self._values)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)


class MacroExpander:
    """Expands macro references within single lines.

    Attributes:
        registry: User macro values
        ignore_macros_in_quoted_strings: When True, '%' between double quotes
            is literal
    """

    def __init__(
        self,
        registry: MacroRegistry | None = None,
        ignore_macros_in_quoted_strings: bool = True,
    ):
        self.registry = registry if registry is not None else MacroRegistry()
        self.ignore_macros_in_quoted_strings = ignore_macros_in_quoted_strings
        self._system_macros: dict[str, SystemMacro] = {"col": column_macro}
        # User macros whose values are being expanded, outermost first
        self._active: list[str] = []

    def register_system_macro(self, name: str, macro: SystemMacro) -> None:
        """Add or replace a system macro. Names are matched case-insensitively."""
        if not name or not name[0].islower():
            raise ValueError(f"System macro name '{name}' must start with lower case")
        self._system_macros[name.lower()] = macro

    def expand(self, line: str, inhibit: int = 0) -> str:
        """Expand every macro reference in line.

        Args:
            line: Text to expand
            inhibit: While greater than zero, '%' is copied literally

        Returns:
            The expanded line

        Raises:
            UnterminatedMacroError: If the line ends inside a macro token
            MacroSyntaxError: If a macro reference is malformed, or a user
                macro value refers back to itself
        """
        out = ""
        index = 0
        quoted = False

        while index < len(line):
            c = line[index]
            index += 1

            if c == '"':
                if self.ignore_macros_in_quoted_strings:
                    quoted = not quoted
                out += c
            elif c == "\\":
                if index >= len(line):
                    out += c
                    break
                c = line[index]
                index += 1
                if c != "%":
                    out += "\\"
                out += c
            elif c == "%":
                if inhibit > 0 or quoted:
                    out += c
                else:
                    out, index = self._expand_token(line, index, out)
            else:
                out += c

        return out

    def _expand_token(self, line: str, index: int, out: str) -> tuple[str, int]:
        """Read one %...% token starting after its opening '%'."""
        tokens: list[str] = []
        current = ""

        while True:
            if index >= len(line):
                raise UnterminatedMacroError(line)
            c = line[index]
            index += 1

            if c == "\\":
                if index >= len(line):
                    raise UnterminatedMacroError(line)
                c = line[index]
                index += 1
                if c != "%":
                    current += "\\"
                current += c
            elif c == ":":
                tokens.append(current)
                current = ""
            elif c == "%":
                tokens.append(current)
                break
            else:
                current += c

        name, args = tokens[0], tokens[1:]
        if not name:
            raise MacroSyntaxError(f"Empty macro name in line '{line}'")

        if name[0].islower():
            return self._expand_system(out, name, args), index
        return self._expand_user(out, name, args), index

    def _expand_system(self, out: str, name: str, args: list[str]) -> str:
        macro = self._system_macros.get(name.lower().strip())
        if macro is None:
            return out + _raw_macro(name, args)
        return macro(out, args)

    def _expand_user(self, out: str, name: str, args: list[str]) -> str:
        if name not in self.registry:
            return out + _raw_macro(name, args)

        prefix = ""
        suffix = ""
        leading_blank = False
        expand = True

        for modifier in args:
            key, has_value, value = modifier.partition("=")
            if key == "":
                continue
            elif key == "lb":
                leading_blank = True
            elif key in ("prefix", "suffix"):
                if not has_value:
                    raise MacroSyntaxError(f"Macro modifier '{key}' requires a value")
                if key == "prefix":
                    prefix = value
                else:
                    suffix = value
            elif key == "noexpand":
                expand = False
            elif key == "expand":
                expand = True
            else:
                raise MacroSyntaxError(f"Invalid user macro value {modifier}")

        if expand and name in self._active:
            chain = " -> ".join([*self._active[self._active.index(name):], name])
            raise MacroSyntaxError(f"Recursive macro reference: {chain}")

        self._active.append(name)
        try:
            for element in _macro_elements(name, self.registry.get(name)):
                full_value = f"{prefix}{element}{suffix}"
                if leading_blank:
                    out += "\n"
                if expand:
                    full_value = self.expand(full_value)
                out += full_value
        finally:
            self._active.pop()

        return out


def _raw_macro(name: str, args: list[str]) -> str:
    """Rebuild the original %name:arg...% text of an unresolved macro."""
    return "%" + ":".join([name, *args]) + "%"


def _macro_elements(name: str, value: object) -> Iterator[str]:
    if isinstance(value, str):
        yield value
        return
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        yield from value
        return
    raise MacroSyntaxError(f"Invalid macro type {type(value).__name__} for '{name}'")
