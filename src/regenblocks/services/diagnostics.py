"""User-facing conversion messages collected during a generation run.

Generators report problems in their input (as opposed to structural errors
in the block tree, which raise) through a ConversionLog. Messages are
de-duplicated, logged, and can be printed to the console or formatted into a
summary at the end of the run.
"""

from typing import Callable, Iterable, Optional, Union

from rich.console import Console

from regenblocks.utils.logging import get_logger

logger = get_logger(__name__)

# listener(class_name, method, msg)
StatusListener = Callable[[str, str, str], None]

Messages = Union[str, Iterable[str]]


class ConversionError(Exception):
    """Raised by a generator when a conversion can not continue.

    Attributes:
        file_name: Input file being converted, if known
        method_name: Generator method that failed, if known
    """

    def __init__(self, message: str = "", file_name: str = "", method_name: str = ""):
        self.file_name = file_name
        self.method_name = method_name
        super().__init__(message)


class ConversionLog:
    """Collects error, warning and info messages for one conversion.

    Attributes:
        skip_duplicates: Ignore a message already recorded in the same channel
        errors: Recorded error messages, in order
        warnings: Recorded warning messages, in order
        info: Recorded informational messages, in order
    """

    def __init__(self, skip_duplicates: bool = True):
        self.skip_duplicates = skip_duplicates
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.info: list[str] = []
        self._error_listeners: list[StatusListener] = []
        self._warning_listeners: list[StatusListener] = []
        self._info_listeners: list[StatusListener] = []

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def has_info(self) -> bool:
        return bool(self.info)

    def on_error(self, listener: StatusListener) -> None:
        self._error_listeners.append(listener)

    def on_warning(self, listener: StatusListener) -> None:
        self._warning_listeners.append(listener)

    def on_info(self, listener: StatusListener) -> None:
        self._info_listeners.append(listener)

    def console_logging(
        self,
        log_errors: bool = True,
        log_warnings: bool = True,
        log_info: bool = False,
        console: Optional[Console] = None,
    ) -> None:
        """Print new messages to the console as they are recorded."""
        console = console or Console(stderr=True)

        def printer(style: str, prefix: str) -> StatusListener:
            def show(class_name: str, method: str, msg: str) -> None:
                console.print(
                    f"{prefix}:[{class_name}.{method}]: {msg}", style=style, markup=False, soft_wrap=True
                )
            return show

        if log_errors:
            self.on_error(printer("red", "error"))
        if log_warnings:
            self.on_warning(printer("yellow", "warning"))
        if log_info:
            self.on_info(printer("white", "information"))

    def error(self, class_name: str, method: str, msgs: Messages) -> None:
        for msg in _as_messages(msgs):
            if self._record(self.errors, msg):
                logger.error("conversion_error", source=f"{class_name}.{method}", message=msg)
                self._notify(self._error_listeners, class_name, method, msg)

    def warn(self, class_name: str, method: str, msgs: Messages) -> None:
        for msg in _as_messages(msgs):
            if self._record(self.warnings, msg):
                logger.warning("conversion_warning", source=f"{class_name}.{method}", message=msg)
                self._notify(self._warning_listeners, class_name, method, msg)

    def inform(self, class_name: str, method: str, msgs: Messages) -> None:
        for msg in _as_messages(msgs):
            if self._record(self.info, msg):
                logger.info("conversion_info", source=f"{class_name}.{method}", message=msg)
                self._notify(self._info_listeners, class_name, method, msg)

    def _record(self, channel: list[str], msg: str) -> bool:
        """Add a trimmed message to channel. Returns False if it was skipped."""
        msg = msg.strip()
        if not msg:
            return False
        if self.skip_duplicates and msg in channel:
            return False
        channel.append(msg)
        return True

    @staticmethod
    def _notify(listeners: list[StatusListener], class_name: str, method: str, msg: str) -> None:
        for listener in listeners:
            listener(class_name, method, msg.strip())

    def clear_messages(self) -> None:
        self.errors.clear()
        self.warnings.clear()
        self.info.clear()

    def filter_messages(self, *filters: str) -> None:
        """Drop every message containing any of the filter substrings."""
        self.filter_error_messages(*filters)
        self.filter_warning_messages(*filters)
        self.filter_info_messages(*filters)

    def filter_error_messages(self, *filters: str) -> None:
        self.errors[:] = _without(self.errors, filters)

    def filter_warning_messages(self, *filters: str) -> None:
        self.warnings[:] = _without(self.warnings, filters)

    def filter_info_messages(self, *filters: str) -> None:
        self.info[:] = _without(self.info, filters)

    def format_messages(self) -> str:
        """Format all recorded messages as numbered sections.

        Returns:
            The formatted text, or "" if nothing was recorded
        """
        sections = [
            ("**** Errors *****", self.errors),
            ("**** Warnings *****", self.warnings),
            ("**** Informational *****", self.info),
        ]
        lines: list[str] = []
        for title, msgs in sections:
            if not msgs:
                continue
            lines.append(title)
            for number, msg in enumerate(msgs, start=1):
                first, *rest = msg.splitlines() or [""]
                lines.append(f"{number:02d}. {first}")
                lines.extend(f"  {line}" for line in rest)
        return "".join(f"{line}\n" for line in lines)


def _as_messages(msgs: Messages) -> list[str]:
    if isinstance(msgs, str):
        return [msgs]
    return list(msgs)


def _without(msgs: list[str], filters: Iterable[str]) -> list[str]:
    filters = list(filters)
    return [msg for msg in msgs if not any(f in msg for f in filters)]
