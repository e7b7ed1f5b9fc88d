"""
Process runtime capabilities used by the cluster bootstrap.

The bootstrap never touches os.fork or the signal module directly; it goes
through a ProcessRuntime. OsRuntime is the POSIX implementation. Tests
inject their own runtime so no real process is forked.
"""

from __future__ import annotations

import functools
import logging
import os
import signal
import sys
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import FrameType
from typing import Any, NoReturn, Protocol

# Set in every forked worker as "<worker_id>:<pid>"
WORKER_ID_ENV = "FORKCLUSTER_WORKER_ID"

# Held across fork-and-register so no handler sees a half-registered worker
_FORK_BLOCKED = {signal.SIGCHLD, signal.SIGINT, signal.SIGTERM}

SignalHandler = Callable[[int, FrameType | None], Any]
ExitHandler = Callable[["WorkerHandle", int], None]


class Role(str, Enum):
    """Role of the current process within a cluster."""

    PRIMARY = "primary"
    WORKER = "worker"


@functools.cache
def detect_parallelism() -> int:
    """
    Return the number of CPU cores available to this process.

    Computed once per process and cached. CPU affinity is respected where
    the platform exposes it, so a process pinned to 2 of 8 cores reports 2.
    """
    count: int | None
    if hasattr(os, "process_cpu_count"):
        count = os.process_cpu_count()
    elif hasattr(os, "sched_getaffinity"):
        count = len(os.sched_getaffinity(0))
    else:
        count = os.cpu_count()
    return count or 1


def worker_marker(worker_id: int) -> str:
    """Marker value identifying worker ``worker_id`` in the current process."""
    return f"{worker_id}:{os.getpid()}"


def worker_id_from(environ: Mapping[str, str] | None = None) -> int | None:
    """
    Return the worker id recorded for this process, or None.

    The marker carries the pid of the worker it was written for, so a marker
    inherited by another process (a subprocess started from a worker) is
    ignored.
    """
    env = os.environ if environ is None else environ
    value = env.get(WORKER_ID_ENV)
    if not value:
        return None

    worker_id, _, pid = value.partition(":")
    try:
        if int(pid) != os.getpid():
            return None
        return int(worker_id)
    except ValueError:
        return None


def detect_role(environ: Mapping[str, str] | None = None) -> Role:
    """Return WORKER inside a forked worker, PRIMARY otherwise."""
    return Role.PRIMARY if worker_id_from(environ) is None else Role.WORKER


def _join_threads() -> None:
    """Wait for non-daemon threads, as interpreter shutdown would."""
    current = threading.current_thread()
    while True:
        pending = [
            t for t in threading.enumerate() if t is not current and not t.daemon
        ]
        if not pending:
            return
        for thread in pending:
            thread.join()


@dataclass(frozen=True)
class WorkerHandle:
    """Reference to a forked worker process."""

    pid: int
    worker_id: int


class ProcessRuntime(Protocol):
    """OS capabilities consumed by ClusterBootstrap."""

    @property
    def parallelism(self) -> int: ...

    @property
    def role(self) -> Role: ...

    @property
    def pid(self) -> int: ...

    def fork(self, child: Callable[[], int]) -> WorkerHandle: ...

    def on_exit(self, handler: ExitHandler) -> None: ...

    def register_signal(self, signum: int, handler: SignalHandler) -> None: ...

    def workers(self) -> list[WorkerHandle]: ...

    def kill(self, handle: WorkerHandle, signum: int = signal.SIGTERM) -> None: ...

    def terminate(self, code: int) -> NoReturn: ...

    def pause(self, timeout: float) -> None: ...


class OsRuntime:
    """
    POSIX process runtime built on os.fork and signals.

    Owns the registry of live workers. Workers are added when forked and
    removed when reaped by the SIGCHLD handler; nothing else mutates the
    registry.

    Args:
        parallelism: Core count override (default: detect_parallelism())
        environ: Environment used for role detection (default: os.environ)
    """

    def __init__(
        self,
        parallelism: int | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._parallelism = (
            parallelism if parallelism is not None else detect_parallelism()
        )
        self._role = detect_role(environ)
        self._workers: dict[int, WorkerHandle] = {}
        self._exit_handlers: list[ExitHandler] = []
        self._next_worker_id = 1
        self._sigchld_installed = False

    @property
    def parallelism(self) -> int:
        return self._parallelism

    @property
    def role(self) -> Role:
        return self._role

    @property
    def pid(self) -> int:
        return os.getpid()

    def workers(self) -> list[WorkerHandle]:
        return list(self._workers.values())

    def fork(self, child: Callable[[], int]) -> WorkerHandle:
        """
        Fork a worker process.

        In the parent, registers and returns the new worker's handle. In the
        child, resets inherited supervisor state, runs ``child``, waits for
        the non-daemon threads it started and exits with the status it
        returned. The child never returns from this call.

        SIGCHLD, SIGINT and SIGTERM are blocked until the new worker is
        registered, so neither the reaper nor the shutdown routine can run
        against a registry that is missing it.
        """
        worker_id = self._next_worker_id
        self._next_worker_id += 1

        signal.pthread_sigmask(signal.SIG_BLOCK, _FORK_BLOCKED)
        try:
            pid = os.fork()
            if pid == 0:
                self._run_child(worker_id, child)
            handle = WorkerHandle(pid=pid, worker_id=worker_id)
            self._workers[pid] = handle
        finally:
            signal.pthread_sigmask(signal.SIG_UNBLOCK, _FORK_BLOCKED)
        return handle

    def _run_child(self, worker_id: int, child: Callable[[], int]) -> NoReturn:
        code = 1
        try:
            self._reset_child(worker_id)
            code = child()
            _join_threads()
        finally:
            # atexit handlers registered by the primary are not run here
            logging.shutdown()
            sys.stdout.flush()
            sys.stderr.flush()
            os._exit(code)

    def _reset_child(self, worker_id: int) -> None:
        """Drop supervisor state inherited from the primary."""
        os.environ[WORKER_ID_ENV] = worker_marker(worker_id)
        self._role = Role.WORKER
        self._workers.clear()
        self._exit_handlers.clear()
        self._sigchld_installed = False

        signal.signal(signal.SIGCHLD, signal.SIG_DFL)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)
        signal.signal(signal.SIGINT, signal.default_int_handler)
        signal.pthread_sigmask(signal.SIG_UNBLOCK, _FORK_BLOCKED)

    def on_exit(self, handler: ExitHandler) -> None:
        """Register a callback invoked with (handle, exit_code) per reaped worker."""
        self._exit_handlers.append(handler)
        if not self._sigchld_installed:
            signal.signal(signal.SIGCHLD, self._reap)
            self._sigchld_installed = True

    def _reap(self, signum: int, frame: FrameType | None) -> None:
        # Only our own workers are waited on; other children of the primary
        # (e.g. subprocess.run) stay with their owners.
        for pid in list(self._workers):
            # An exit handler may have been interrupted by a nested SIGCHLD
            # that already reaped this pid
            if pid not in self._workers:
                continue
            try:
                reaped, status = os.waitpid(pid, os.WNOHANG)
            except ChildProcessError:
                reaped, status = pid, 0
            if reaped == 0:
                continue

            handle = self._workers.pop(pid, None)
            if handle is None:
                continue
            code = os.waitstatus_to_exitcode(status)
            for handler in list(self._exit_handlers):
                handler(handle, code)

    def register_signal(self, signum: int, handler: SignalHandler) -> None:
        signal.signal(signum, handler)

    def kill(self, handle: WorkerHandle, signum: int = signal.SIGTERM) -> None:
        os.kill(handle.pid, signum)

    def terminate(self, code: int) -> NoReturn:
        sys.exit(code)

    def pause(self, timeout: float) -> None:
        # Signal handlers run while sleeping; sleep resumes afterwards
        time.sleep(timeout)
