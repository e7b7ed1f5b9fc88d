"""
Log formatters.

Records are rendered as:

    [12:34:56,789] [I] message          [key:value] [1234] [/cluster]

Extra fields are padded to a fixed rule width so that structured fields line
up across consecutive lines. The process id is always shown because lines
from the primary and its workers interleave on the same console.
"""

import collections
import logging
from typing import Any

from .colors import ColorManager
from .config import LogConfig
from .constants import LogConstants


def _extra_items(record: logging.LogRecord) -> list[tuple[str, Any]]:
    """Return extra fields attached by Logger, sorted unless ordered."""
    extra = getattr(record, "__cluster__extra", None)
    if not extra:
        return []
    keys = list(extra.keys())
    if not isinstance(extra, collections.OrderedDict):
        keys.sort()
    return [(k, extra[k]) for k in keys]


def _render_value(value: Any) -> str:
    if isinstance(value, BaseException):
        return value.__class__.__name__
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


class PreFormatter(logging.Formatter):
    """Standard formatter with optional sub-second timestamp precision."""

    def __init__(self, fmt: str, micros: bool) -> None:
        self._micros = micros
        super().__init__(fmt)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        s = super().formatTime(record)
        if self._micros:
            micros = int((record.created % 1) * 1000000) % 1000
            s += f".{micros:03d}"
        return s


class LogFormatter(logging.Formatter):
    """
    Console formatter with structured extra fields and optional colors.

    Message text and extra values are escaped for %-formatting before the
    format string is built, so user data containing "%" is rendered as-is.
    """

    def __init__(self, config: LogConfig):
        super().__init__()
        self._config = config
        self._pre_formatter = PreFormatter(LogConstants.DEFAULT_FORMAT, config.micros)

    @property
    def config(self) -> LogConfig:
        return self._config

    def format(self, record: logging.LogRecord) -> str:
        width = self._calculate_width(record)
        if self._config.colors:
            fmt = self._format_colored(record, width)
        else:
            fmt = self._format_plain(record, width)

        self._pre_formatter._fmt = fmt
        self._pre_formatter._style._fmt = fmt
        return self._pre_formatter.format(record)

    def _calculate_width(self, record: logging.LogRecord) -> int:
        """Calculate display width of the "[time] [L] message" prefix."""
        timestamp_len = 27 if self._config.micros else 23
        return 1 + timestamp_len + 4 + 1 + 2 + len(record.getMessage())

    def _rule(self, width: int) -> str:
        rule = (
            LogConstants.MICRO_RULE_WIDTH
            if self._config.micros
            else LogConstants.DEFAULT_RULE_WIDTH
        )
        return " " * max(1, rule - width)

    def _format_plain(self, record: logging.LogRecord, width: int) -> str:
        fmt = LogConstants.DEFAULT_FORMAT + self._rule(width)
        for key, value in _extra_items(record):
            fmt += f"[{key}:{_escape(_render_value(value))}] "
        fmt += "[%(process)d] [%(name)s]"
        return fmt

    def _format_colored(self, record: logging.LogRecord, width: int) -> str:
        col = ColorManager.get_color_for_level(record.levelno)
        bold = ColorManager.create_bold_color(col)
        col += "m"
        reset = ColorManager.RESET

        fmt = col + "[%(asctime)s] [" + bold + "%(levelname).1s" + reset + col + "] "
        fmt += bold + "%(message)s" + reset + col + self._rule(width)
        for key, value in _extra_items(record):
            fmt += f"{key}[{bold}{_escape(_render_value(value))}{reset}{col}] "

        gray = ColorManager.create_gray_level(9)
        fmt += gray + "m[%(process)d] [%(name)s]" + reset
        return fmt


def _escape(text: str) -> str:
    """Escape % so values survive logging's %-style substitution."""
    return text.replace("%", "%%")
