"""
Shutdown manager for the cluster primary.

Binds SIGINT and SIGTERM to a one-shot shutdown routine: log, send SIGTERM
to every registered worker, then terminate the primary with status 0.

The primary does not wait for workers to acknowledge termination before it
exits. Workers may still be running when the primary disappears.
"""

import signal
from types import FrameType

from .log import Logger
from .runtime import ProcessRuntime

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownManager:
    """
    Manages shutdown signal handling for a supervising primary.

    Usage:
        manager = ShutdownManager(runtime, lg)
        manager.register_signal_handlers()

        # Later, check state:
        if manager.is_shutting_down():
            ...
    """

    def __init__(self, runtime: ProcessRuntime, lg: Logger) -> None:
        self._runtime = runtime
        self._lg = lg
        self._shutting_down = False
        self._terminated = False
        self._signal: signal.Signals | None = None

    def register_signal_handlers(self) -> None:
        """Register the shutdown routine for SIGINT and SIGTERM."""
        for signum in SHUTDOWN_SIGNALS:
            self._runtime.register_signal(signum, self._handle_signal)

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        """
        Handle shutdown signal by running the shutdown sequence.

        Args:
            signum: Signal number (SIGINT=2, SIGTERM=15)
            frame: Current stack frame (unused)
        """
        if self._shutting_down:
            self._lg.trace(
                "ignoring repeated shutdown signal",
                extra={"signal": signal.Signals(signum).name},
            )
            return

        self._signal = signal.Signals(signum)
        self.shutdown()

    def shutdown(self) -> None:
        """Terminate all workers, then the primary. Later calls do nothing."""
        if self._shutting_down:
            return
        self._shutting_down = True
        workers = self._runtime.workers()
        self._lg.info(
            "shutting down gracefully...",
            extra={
                "signal": self._signal.name if self._signal else "none",
                "workers": len(workers),
            },
        )

        for handle in workers:
            self._lg.debug(
                "terminating worker",
                extra={"pid": handle.pid, "worker": handle.worker_id},
            )
            self._runtime.kill(handle, signal.SIGTERM)

        self._terminated = True
        self._runtime.terminate(0)

    def is_shutting_down(self) -> bool:
        """Check if shutdown is in progress."""
        return self._shutting_down

    def is_terminated(self) -> bool:
        """Check if the primary has been asked to terminate."""
        return self._terminated

    @property
    def received_signal(self) -> signal.Signals | None:
        """Signal that triggered shutdown, or None if not signal-driven."""
        return self._signal
