"""
Cluster bootstrap: primary/worker role split with lifecycle management.

A single call decides what the current process does:

- clustering disabled: run the entry function here and return
- running inside a forked worker: run the entry function here and return
- otherwise (primary): validate the worker count, fork the workers, log
  their exits, and install the SIGINT/SIGTERM shutdown routine

Example:
    from forkcluster import bootstrap

    def serve():
        ...

    if __name__ == "__main__":
        cluster = bootstrap(serve, {"workers": 4})
        cluster.wait()
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any

from .config import ClusterConfig
from .log import LogConfig, Logger, LoggerFactory
from .runtime import OsRuntime, ProcessRuntime, Role, WorkerHandle
from .shutdown import ShutdownManager

EntryFn = Callable[[], Any]
ConfigLike = ClusterConfig | Mapping[str, Any]

DEFAULT_LOGGER_NAME = "/cluster"


class ClusterState(str, Enum):
    """Operating mode of the current process."""

    UNSTARTED = "unstarted"
    PRIMARY_SUPERVISING = "primary_supervising"
    WORKER_RUNNING = "worker_running"
    DIRECT_RUNNING = "direct_running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _exit_code(code: Any) -> int:
    """Map a SystemExit code to a process exit status."""
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


class ClusterBootstrap:
    """
    Forks a fixed number of workers from the primary process.

    Workers are not respawned when they exit; each exit is only logged.
    Validation runs before any side effect, so an invalid worker count
    leaves no child processes and no signal handlers behind.

    Args:
        entry: Zero-argument function, sync or async, run in each worker
        config: ClusterConfig or mapping of options (default: all cores)
        runtime: Process runtime (default: OsRuntime())
        lg: Logger for lifecycle events (default: "/cluster" at info level)
    """

    def __init__(
        self,
        entry: EntryFn,
        config: ConfigLike | None = None,
        runtime: ProcessRuntime | None = None,
        lg: Logger | None = None,
    ) -> None:
        if config is None:
            config = ClusterConfig()
        elif not isinstance(config, ClusterConfig):
            config = ClusterConfig.from_dict(config)

        self._entry = entry
        self._config = config
        self._runtime: ProcessRuntime = runtime if runtime is not None else OsRuntime()
        self._lg = lg or LoggerFactory.create(
            DEFAULT_LOGGER_NAME, LogConfig.from_params("info")
        )
        self._shutdown = ShutdownManager(self._runtime, self._lg)
        self._state = ClusterState.UNSTARTED

    @property
    def config(self) -> ClusterConfig:
        return self._config

    @property
    def runtime(self) -> ProcessRuntime:
        return self._runtime

    @property
    def lg(self) -> Logger:
        return self._lg

    @property
    def state(self) -> ClusterState:
        if self._shutdown.is_terminated():
            return ClusterState.TERMINATED
        if self._shutdown.is_shutting_down():
            return ClusterState.SHUTTING_DOWN
        return self._state

    def workers(self) -> list[WorkerHandle]:
        """Live workers as seen by the runtime's registry."""
        return self._runtime.workers()

    def run(self) -> None:
        """Run the role decision once for the current process."""
        if not self._config.enabled:
            self._state = ClusterState.DIRECT_RUNNING
            self._invoke()
        elif self._runtime.role is Role.WORKER:
            self._state = ClusterState.WORKER_RUNNING
            self._invoke()
        else:
            self._supervise()

    def _invoke(self) -> None:
        result = self._entry()
        if inspect.isawaitable(result):
            asyncio.run(_await(result))

    def _supervise(self) -> None:
        parallelism = self._runtime.parallelism
        count = self._config.validate(parallelism)

        self._lg.info(
            f"primary {self._runtime.pid} is running",
            extra={"workers": count, "cores": parallelism},
        )

        # Both observers go in before the first fork so no worker event is missed
        self._runtime.on_exit(self._on_worker_exit)
        self._shutdown.register_signal_handlers()
        self._state = ClusterState.PRIMARY_SUPERVISING

        for _ in range(count):
            handle = self._runtime.fork(self._run_worker)
            self._lg.debug(
                "forked worker", extra={"pid": handle.pid, "worker": handle.worker_id}
            )

    def _run_worker(self) -> int:
        """Body of a forked child: re-enter as a worker and report exit status."""
        try:
            self.run()
        except SystemExit as e:
            return _exit_code(e.code)
        except KeyboardInterrupt:
            return 130
        except Exception as e:
            self._lg.error(
                "worker entry failed",
                extra={"pid": self._runtime.pid, "exception": e},
                exc_info=True,
            )
            return 1
        return 0

    def _on_worker_exit(self, handle: WorkerHandle, code: int) -> None:
        self._lg.warning(
            f"worker {handle.pid} died",
            extra={"worker": handle.worker_id, "exit_code": code},
        )

    def wait(self, poll_interval: float = 0.5) -> None:
        """
        Block the primary until all workers have exited or shutdown begins.

        Returns immediately when this process is not supervising.
        """
        while (
            self.state is ClusterState.PRIMARY_SUPERVISING and self._runtime.workers()
        ):
            self._runtime.pause(poll_interval)

    def shutdown(self) -> None:
        """Run the shutdown sequence without waiting for a signal."""
        self._shutdown.shutdown()


def bootstrap(
    entry: EntryFn,
    config: ConfigLike | None = None,
    *,
    runtime: ProcessRuntime | None = None,
    lg: Logger | None = None,
) -> ClusterBootstrap:
    """
    Run ``entry`` under a cluster of forked workers.

    In the primary this returns as soon as the workers are forked and the
    handlers are installed; the primary itself never runs ``entry``.

    Args:
        entry: Zero-argument function, sync or async
        config: ClusterConfig, or a mapping such as {"workers": 4, "enabled": True}
        runtime: Process runtime (default: OsRuntime())
        lg: Logger for lifecycle events

    Returns:
        The ClusterBootstrap, so the primary can wait() on its workers

    Raises:
        InvalidWorkerCountError: If the worker count is outside [1, cores]
    """
    cluster = ClusterBootstrap(entry, config, runtime=runtime, lg=lg)
    cluster.run()
    return cluster
