#!/usr/bin/env python3
"""
forkcluster CLI.

Usage:
    forkcluster run myapp.server:serve --workers 4
    forkcluster run myapp.server:serve --no-cluster
    forkcluster info
"""

import argparse
import importlib
import sys
from collections.abc import Callable, Sequence
from typing import Any, TextIO

import forkcluster
from forkcluster.bootstrap import ClusterBootstrap
from forkcluster.config import ClusterConfig
from forkcluster.exceptions import ClusterError, ConfigError
from forkcluster.log import LogConfig, LoggerFactory
from forkcluster.runtime import detect_parallelism, detect_role


def resolve_target(target: str) -> Callable[[], Any]:
    """
    Resolve "package.module:function" to a callable.

    Raises:
        ConfigError: If the target is malformed, missing, or not callable
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(
            "target must look like 'package.module:function'", target=target
        )

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"cannot import module '{module_name}'", error=str(e)) from e

    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise ConfigError(
                f"module '{module_name}' has no attribute '{attr}'"
            ) from None

    if not callable(obj):
        raise ConfigError(f"'{target}' is not callable")
    return obj  # type: ignore[no-any-return]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forkcluster", description="Run a function under forked workers"
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"forkcluster {forkcluster.__version__}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="fork workers that each run TARGET")
    run.add_argument("target", help="entry function as package.module:function")
    run.add_argument(
        "-w",
        "--workers",
        type=int,
        default=None,
        help="number of workers (default: one per CPU core)",
    )
    run.add_argument(
        "--no-cluster",
        action="store_true",
        help="run TARGET in this process without forking",
    )
    run.add_argument("--log-level", default="info", help="log level (default: info)")
    run.add_argument(
        "--no-colors", action="store_true", help="disable colored log output"
    )

    sub.add_parser("info", help="show detected parallelism and process role")
    return parser


def _cmd_run(args: argparse.Namespace) -> int:
    log_config = LogConfig.from_params(args.log_level, colors=not args.no_colors)
    lg = LoggerFactory.create("/cluster", log_config)

    entry = resolve_target(args.target)
    config = ClusterConfig(enabled=not args.no_cluster, workers=args.workers)

    cluster = ClusterBootstrap(entry, config, lg=lg)
    cluster.run()
    cluster.wait()
    return 0


def _cmd_info(out: TextIO) -> int:
    print(f"parallelism: {detect_parallelism()}", file=out)
    print(f"role: {detect_role().value}", file=out)
    return 0


def main(argv: Sequence[str] | None = None, out: TextIO | None = None) -> int:
    """Main entry point for the forkcluster CLI."""
    out = out if out is not None else sys.stdout
    args = _build_parser().parse_args(argv)

    try:
        if args.command == "info":
            return _cmd_info(out)
        return _cmd_run(args)
    except ClusterError as e:
        print(f"forkcluster: error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
