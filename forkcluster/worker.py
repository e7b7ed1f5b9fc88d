"""
Worker-side helpers.

A forked worker dies on SIGTERM by default. Workers that need to finish the
current unit of work first can run their loop inside a WorkerContext, which
turns SIGTERM/SIGINT into a ``running = False`` flag.
"""

from __future__ import annotations

import os
import signal
from types import FrameType
from typing import Any

from .log import Logger, LoggerFactory
from .runtime import worker_id_from


def current_worker_id() -> int | None:
    """Return this worker's id (1-based), or None outside a worker."""
    return worker_id_from()


class WorkerContext:
    """
    Context manager for worker loops.

    Example:
        def serve():
            with WorkerContext(lg) as ctx:
                while ctx.running:
                    handle(queue.get(timeout=1.0))

        bootstrap(serve)

    Args:
        lg: Parent logger; the context logs through a "worker" child of it
        handle_signals: Whether to install signal handlers (default: True).
            Set to False when the worker runs a framework that handles its
            own signals (e.g., uvicorn).
    """

    def __init__(self, lg: Logger, handle_signals: bool = True) -> None:
        extra = {} if self.worker_id is None else {"worker": self.worker_id}
        self._lg = LoggerFactory.derive(lg, "worker", extra=extra)
        self._handle_signals = handle_signals
        self._running = True
        self._original_handlers: dict[signal.Signals, Any] = {}

    @property
    def running(self) -> bool:
        """Returns False after SIGTERM or SIGINT is received."""
        return self._running

    @property
    def worker_id(self) -> int | None:
        return current_worker_id()

    @property
    def lg(self) -> Logger:
        return self._lg

    def stop(self) -> None:
        """Ask the worker loop to finish."""
        self._running = False

    def __enter__(self) -> WorkerContext:
        if self._handle_signals:
            for signum in (signal.SIGTERM, signal.SIGINT):
                self._original_handlers[signum] = signal.signal(
                    signum, self._handle_stop_signal
                )
        self._lg.debug("worker started", extra={"pid": os.getpid()})
        return self

    def __exit__(self, *args: object) -> None:
        for signum, handler in self._original_handlers.items():
            signal.signal(signum, handler)
        self._original_handlers.clear()
        self._lg.debug("worker stopped", extra={"pid": os.getpid()})

    def _handle_stop_signal(self, signum: int, frame: FrameType | None) -> None:
        """Handle SIGTERM/SIGINT by setting running to False."""
        sig_name = signal.Signals(signum).name
        self._lg.debug(f"received {sig_name}, stopping")
        self._running = False
