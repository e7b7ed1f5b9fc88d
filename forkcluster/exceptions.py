"""
Exception hierarchy for forkcluster.

All cluster errors inherit from ClusterError so callers can catch every
framework failure with a single except clause. Failures raised by the OS
(fork exhaustion, signal delivery, kill errors) are not wrapped and surface
as the original OSError.
"""

from typing import Any


class ClusterError(Exception):
    """
    Base exception for all forkcluster errors.

    Example:
        try:
            bootstrap(serve)
        except ClusterError as e:
            lg.error("cluster startup failed", extra={"exception": e})
    """

    def __init__(self, message: str, **context: Any) -> None:
        """
        Initialize the exception with a message and optional context.

        Args:
            message: Human-readable error message
            **context: Additional context information (stored in self.context)
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """String representation with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ConfigError(ClusterError):
    """
    Configuration-related errors.

    Examples:
        - Worker count is not an integer
        - Unknown log level
    """

    pass


class InvalidWorkerCountError(ConfigError):
    """
    Raised when the requested worker count cannot be satisfied.

    The count must lie in [1, parallelism]. Raised before any worker is
    forked, so a failed bootstrap leaves no child processes behind.
    """

    def __init__(self, workers: int, parallelism: int) -> None:
        self.workers = workers
        self.parallelism = parallelism
        if workers < 1:
            message = f"invalid worker count {workers}: at least 1 worker is required"
        else:
            message = (
                f"invalid worker count {workers}: workers cannot be greater than "
                f"the number of CPUs (your CPU has {parallelism} cores)"
            )
        super().__init__(message)
