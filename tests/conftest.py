"""
Pytest configuration and shared fixtures.

This module provides central pytest configuration, custom markers,
and shared fixtures for the forkcluster test suite.
"""

import os
import sys

import pytest

from forkcluster.runtime import WORKER_ID_ENV

# =============================================================================
# Plugin Registration
# =============================================================================

pytest_plugins = [
    "tests.fixtures.logging",
    "tests.fixtures.runtime",
]


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (may use signals, real processes)"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests (full system integration)"
    )
    config.addinivalue_line("markers", "property: Property-based tests (hypothesis)")
    config.addinivalue_line("markers", "slow: Tests that take >1 second to run")
    config.addinivalue_line("markers", "posix: Tests that require os.fork")


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_worker_env(monkeypatch):
    """
    Ensure tests start in the primary role.
    """
    monkeypatch.delenv(WORKER_ID_ENV, raising=False)


# =============================================================================
# Test Collection Hooks
# =============================================================================


def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to add markers and skip conditions.

    Args:
        config: Pytest config object
        items: List of collected test items
    """
    skip_posix = pytest.mark.skip(reason="requires os.fork (POSIX only)")
    for item in items:
        # Add 'unit' marker to tests without other markers
        if not any(
            mark.name in ["integration", "e2e"] for mark in item.iter_markers()
        ):
            item.add_marker(pytest.mark.unit)

        if "posix" in item.keywords and (
            not hasattr(os, "fork") or sys.platform == "win32"
        ):
            item.add_marker(skip_posix)
