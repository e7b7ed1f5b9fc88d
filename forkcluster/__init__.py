from importlib.metadata import PackageNotFoundError, version

from .bootstrap import ClusterBootstrap, ClusterState, bootstrap
from .config import ClusterConfig
from .exceptions import ClusterError, ConfigError, InvalidWorkerCountError
from .runtime import (
    OsRuntime,
    ProcessRuntime,
    Role,
    WorkerHandle,
    detect_parallelism,
    detect_role,
)
from .shutdown import ShutdownManager
from .worker import WorkerContext, current_worker_id

# Version is read from package metadata (pyproject.toml)
try:
    __version__ = version("forkcluster")
except PackageNotFoundError:
    # Package not installed, use fallback (development mode)
    __version__ = "0.1.0-dev"

# Explicit public API
__all__ = [
    # Version
    "__version__",
    # Bootstrap
    "bootstrap",
    "ClusterBootstrap",
    "ClusterState",
    "ClusterConfig",
    # Runtime
    "OsRuntime",
    "ProcessRuntime",
    "Role",
    "WorkerHandle",
    "detect_parallelism",
    "detect_role",
    # Lifecycle
    "ShutdownManager",
    "WorkerContext",
    "current_worker_id",
    # Exceptions
    "ClusterError",
    "ConfigError",
    "InvalidWorkerCountError",
]
