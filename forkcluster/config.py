"""
Cluster configuration.

ClusterConfig is immutable once constructed. Callers build a fresh instance
per bootstrap call; nothing here is cached at module level.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .exceptions import ConfigError, InvalidWorkerCountError


@dataclass(frozen=True)
class ClusterConfig:
    """
    Immutable configuration for a cluster bootstrap.

    Attributes:
        enabled: Whether to fork workers at all. When False the entry
            function runs directly in the calling process.
        workers: Number of workers to fork. None means one worker per
            detected CPU core.
    """

    enabled: bool = True
    workers: int | None = None

    def __post_init__(self) -> None:
        # bool is an int subclass; reject it explicitly
        if self.workers is not None and (
            isinstance(self.workers, bool) or not isinstance(self.workers, int)
        ):
            raise ConfigError(
                "workers must be an integer", workers=repr(self.workers)
            )

    @staticmethod
    def _resolve_workers(workers: Any) -> int | None:
        """Resolve workers parameter to int or None."""
        if workers is None:
            return None
        if isinstance(workers, str):
            try:
                return int(workers.strip())
            except ValueError:
                raise ConfigError(
                    "workers must be an integer", workers=workers
                ) from None
        return workers  # type: ignore[no-any-return]

    @classmethod
    def from_params(
        cls, enabled: bool | str = True, workers: int | str | None = None
    ) -> ClusterConfig:
        """
        Create ClusterConfig from individual parameters.

        Args:
            enabled: Whether clustering is enabled
            workers: Worker count (int, numeric string, or None for auto)

        Returns:
            ClusterConfig instance
        """
        if isinstance(enabled, str):
            enabled = enabled.strip().lower() not in ("false", "no", "off", "0")
        return cls(enabled=bool(enabled), workers=cls._resolve_workers(workers))

    @classmethod
    def from_config(cls, config_dict: dict, section: str = "cluster") -> ClusterConfig:
        """
        Create ClusterConfig from an already-loaded configuration dictionary.

        Args:
            config_dict: Configuration dictionary
            section: Dotted path to the cluster section (default: "cluster")

        Returns:
            ClusterConfig instance

        Example:
            config = ClusterConfig.from_config({"cluster": {"workers": 2}})
        """
        current: Any = config_dict
        for part in section.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                current = {}
                break
        return cls.from_dict(current)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> ClusterConfig:
        """
        Create ClusterConfig from a flat mapping of options.

        Accepts "enabled" (alias "enable") and "workers" (alias "num_workers").
        """
        enabled = values.get("enabled", values.get("enable", True))
        workers = values.get("workers", values.get("num_workers"))
        return cls.from_params(enabled=enabled, workers=workers)

    def resolve_workers(self, parallelism: int) -> int:
        """Return the effective worker count for the given parallelism."""
        return parallelism if self.workers is None else self.workers

    def validate(self, parallelism: int) -> int:
        """
        Validate the worker count against the detected parallelism.

        Args:
            parallelism: Number of CPU cores available to this process

        Returns:
            Effective worker count

        Raises:
            InvalidWorkerCountError: If the count is outside [1, parallelism]
        """
        workers = self.resolve_workers(parallelism)
        if workers < 1 or workers > parallelism:
            raise InvalidWorkerCountError(workers, parallelism)
        return workers
