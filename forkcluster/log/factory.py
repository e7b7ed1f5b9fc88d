"""
Factory for creating and configuring loggers.
"""

import collections
import logging
import sys
from typing import Any, TextIO, cast

from .config import LogConfig
from .formatters import LogFormatter
from .logger import Logger


class LoggerFactory:
    """Factory for creating and configuring loggers."""

    @staticmethod
    def create(
        name: str,
        config: LogConfig,
        extra: dict[str, Any] | collections.OrderedDict | None = None,
        stream: TextIO | None = None,
    ) -> Logger:
        """
        Create a logger with the specified configuration.

        Returns the existing logger if one with this name was already created.

        Args:
            name: Logger name
            config: Logger configuration
            extra: Pre-populated extra fields to include in all log records
            stream: Output stream (default: sys.stdout)

        Returns:
            Configured logger instance

        Example:
            >>> lg = LoggerFactory.create("/cluster", config, extra={"role": "primary"})
            >>> lg.info("primary 1234 is running")
            [2026-10-19 12:34:56,789] [I] primary 1234 is running  [role:primary] [1234] [/cluster]
        """
        existing = logging.root.manager.loggerDict.get(name)
        if isinstance(existing, Logger):
            existing.trace2("logger already exists", extra={"logger": name})
            return existing

        lg = Logger(name, config, extra)
        lg.addHandler(LoggerFactory._console_handler(config, stream))
        lg.propagate = False
        lg.parent = logging.root

        # Register in loggerDict so later lookups return the same instance
        logging.root.manager.loggerDict[name] = lg

        lg.trace2(
            "created logger",
            extra={"level": logging.getLevelName(lg.level), "micros": config.micros},
        )
        return lg

    @staticmethod
    def derive(
        parent: Logger, name: str, extra: dict[str, Any] | None = None
    ) -> Logger:
        """
        Create a child logger sharing the parent's configuration.

        The child name is appended to the parent's ("/cluster" + "worker" gives
        "/cluster/worker") and parent extra fields are inherited.
        """
        full_name = parent.name.rstrip("/") + "/" + name
        merged = {**parent.extra, **(extra or {})}
        stream = None
        if parent.handlers:
            stream = cast(logging.StreamHandler, parent.handlers[0]).stream
        return LoggerFactory.create(full_name, parent.config, merged, stream=stream)

    @staticmethod
    def _console_handler(config: LogConfig, stream: TextIO | None) -> logging.Handler:
        handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
        if config.level is not False:
            handler.setLevel(config.level)
        handler.setFormatter(LogFormatter(config))
        return handler
