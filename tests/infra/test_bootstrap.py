"""
Tests for bootstrap.py.

Tests cluster bootstrap behavior including:
- Role dispatch (direct, worker, primary)
- Worker count validation before any side effect
- Forking and worker re-entry
- Exit observation (no respawn)
- Signal-driven shutdown
- Waiting for workers
"""

import asyncio
import signal
from unittest.mock import Mock

import pytest

from forkcluster import (
    ClusterBootstrap,
    ClusterConfig,
    ClusterState,
    InvalidWorkerCountError,
    bootstrap,
)
from forkcluster.runtime import Role
from tests.helpers.runtime import FakeRuntime

# =============================================================================
# Direct mode (clustering disabled)
# =============================================================================


@pytest.mark.unit
class TestDisabled:
    """Test bootstrap with clustering disabled."""

    def test_entry_called_once_without_forking(self, runtime, lg):
        """Test entry runs in-process exactly once and nothing is forked."""
        entry = Mock()

        cluster = bootstrap(entry, ClusterConfig(enabled=False), runtime=runtime, lg=lg)

        entry.assert_called_once_with()
        assert runtime.forked == []
        assert cluster.state is ClusterState.DIRECT_RUNNING

    def test_no_handlers_installed(self, runtime, lg):
        """Test disabled mode registers no signal or exit handlers."""
        bootstrap(Mock(), {"enabled": False}, runtime=runtime, lg=lg)

        assert runtime.signal_handlers == {}
        assert runtime.exit_handlers == []

    def test_worker_count_not_validated(self, runtime, lg):
        """Test disabled mode ignores an oversized worker count."""
        entry = Mock()

        config = ClusterConfig(enabled=False, workers=100)
        bootstrap(entry, config, runtime=runtime, lg=lg)

        entry.assert_called_once()

    def test_entry_exception_propagates(self, runtime, lg):
        """Test errors from the entry function reach the caller unchanged."""
        entry = Mock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            bootstrap(entry, {"enabled": False}, runtime=runtime, lg=lg)

    def test_async_entry_is_awaited(self, runtime, lg):
        """Test a coroutine entry function runs to completion."""
        calls = []

        async def entry():
            await asyncio.sleep(0)
            calls.append("done")

        bootstrap(entry, {"enabled": False}, runtime=runtime, lg=lg)

        assert calls == ["done"]


# =============================================================================
# Worker mode
# =============================================================================


@pytest.mark.unit
class TestWorkerRole:
    """Test bootstrap running inside a forked worker."""

    def test_entry_called_once_without_forking(self, worker_runtime, lg):
        """Test a worker runs entry and never forks grandchildren."""
        entry = Mock()

        cluster = bootstrap(entry, runtime=worker_runtime, lg=lg)

        entry.assert_called_once_with()
        assert worker_runtime.forked == []
        assert cluster.state is ClusterState.WORKER_RUNNING

    @pytest.mark.parametrize("workers", [1, 4, 100])
    def test_worker_count_ignored(self, worker_runtime, lg, workers):
        """Test a worker ignores the worker count, even an invalid one."""
        entry = Mock()

        bootstrap(entry, ClusterConfig(workers=workers), runtime=worker_runtime, lg=lg)

        entry.assert_called_once()
        assert worker_runtime.forked == []

    def test_no_handlers_installed(self, worker_runtime, lg):
        """Test a worker does not install supervisor handlers."""
        bootstrap(Mock(), runtime=worker_runtime, lg=lg)

        assert worker_runtime.signal_handlers == {}
        assert worker_runtime.exit_handlers == []


# =============================================================================
# Validation
# =============================================================================


@pytest.mark.unit
class TestValidation:
    """Test worker count validation in the primary."""

    def test_too_many_workers_fails_before_forking(self, runtime, lg, log_stream):
        """Test 100 workers on 4 cores fails with no side effects."""
        entry = Mock()

        with pytest.raises(InvalidWorkerCountError) as exc_info:
            bootstrap(entry, {"workers": 100}, runtime=runtime, lg=lg)

        message = str(exc_info.value)
        assert "100" in message
        assert "4 cores" in message
        entry.assert_not_called()
        assert runtime.forked == []
        assert runtime.signal_handlers == {}
        assert runtime.exit_handlers == []
        assert "is running" not in log_stream.getvalue()

    def test_zero_workers_rejected(self, runtime, lg):
        """Test a worker count below 1 is rejected."""
        with pytest.raises(InvalidWorkerCountError):
            bootstrap(Mock(), ClusterConfig(workers=0), runtime=runtime, lg=lg)

        assert runtime.forked == []

    def test_state_stays_unstarted_on_failure(self, runtime, lg):
        """Test a failed validation leaves the bootstrap unstarted."""
        config = ClusterConfig(workers=5)
        cluster = ClusterBootstrap(Mock(), config, runtime=runtime, lg=lg)

        with pytest.raises(InvalidWorkerCountError):
            cluster.run()

        assert cluster.state is ClusterState.UNSTARTED


# =============================================================================
# Primary mode
# =============================================================================


@pytest.mark.unit
class TestPrimary:
    """Test bootstrap in the primary process."""

    def test_default_forks_one_worker_per_core(self, runtime, lg, log_stream):
        """Test omitting config forks parallelism workers and logs the primary pid."""
        entry = Mock()

        cluster = bootstrap(entry, runtime=runtime, lg=lg)

        assert len(runtime.forked) == 4
        entry.assert_not_called()
        assert log_stream.getvalue().count("primary 1000 is running") == 1
        assert cluster.state is ClusterState.PRIMARY_SUPERVISING

    def test_omitted_config_matches_explicit_defaults(self, lg):
        """Test config=None behaves like enabled=True, workers=parallelism."""
        implicit = FakeRuntime(parallelism=3)
        explicit = FakeRuntime(parallelism=3)

        bootstrap(Mock(), runtime=implicit, lg=lg)
        config = ClusterConfig(enabled=True, workers=3)
        bootstrap(Mock(), config, runtime=explicit, lg=lg)

        assert implicit.forked == explicit.forked
        assert set(implicit.signal_handlers) == set(explicit.signal_handlers)

    @pytest.mark.parametrize("workers", [1, 2, 3, 4])
    def test_forks_exact_worker_count(self, runtime, lg, workers):
        """Test exactly the configured number of workers is forked."""
        bootstrap(Mock(), {"workers": workers}, runtime=runtime, lg=lg)

        assert len(runtime.forked) == workers
        assert [h.worker_id for h in runtime.forked] == list(range(1, workers + 1))

    def test_handlers_registered(self, runtime, lg):
        """Test exit observer and SIGINT/SIGTERM handlers are registered."""
        bootstrap(Mock(), {"workers": 2}, runtime=runtime, lg=lg)

        assert len(runtime.exit_handlers) == 1
        assert set(runtime.signal_handlers) == {signal.SIGINT, signal.SIGTERM}

    def test_handlers_registered_before_first_fork(self, lg):
        """Test no worker event can arrive before the observers exist."""
        seen = []

        class OrderedRuntime(FakeRuntime):
            def fork(self, child):
                seen.append((len(self.exit_handlers), len(self.signal_handlers)))
                return super().fork(child)

        bootstrap(Mock(), {"workers": 2}, runtime=OrderedRuntime(), lg=lg)

        assert seen == [(1, 2), (1, 2)]

    def test_fork_error_propagates(self, lg):
        """Test OS fork failures are not caught or translated."""

        class FailingRuntime(FakeRuntime):
            def fork(self, child):
                raise BlockingIOError("Resource temporarily unavailable")

        with pytest.raises(BlockingIOError):
            bootstrap(Mock(), runtime=FailingRuntime(), lg=lg)


# =============================================================================
# Forked children
# =============================================================================


@pytest.mark.unit
class TestForkedChild:
    """Test what a forked child runs."""

    def test_child_reenters_as_worker(self, runtime, lg):
        """Test a child runs entry once and forks nothing further."""
        entry = Mock()
        cluster = bootstrap(entry, {"workers": 2}, runtime=runtime, lg=lg)

        code = runtime.run_child(runtime.forked[0])

        assert code == 0
        entry.assert_called_once_with()
        assert len(runtime.forked) == 2
        assert cluster.state is ClusterState.WORKER_RUNNING

    def test_child_exception_becomes_exit_status_1(self, runtime, lg, log_stream):
        """Test an entry error is logged and reported as status 1."""
        entry = Mock(side_effect=ValueError("bad request"))
        bootstrap(entry, {"workers": 1}, runtime=runtime, lg=lg)

        code = runtime.run_child(runtime.forked[0])

        assert code == 1
        output = log_stream.getvalue()
        assert "worker entry failed" in output
        assert "ValueError" in output

    @pytest.mark.parametrize(
        "exit_code, expected", [(None, 0), (0, 0), (3, 3), ("fatal", 1)]
    )
    def test_child_system_exit_code(self, runtime, lg, exit_code, expected):
        """Test sys.exit() inside a worker maps to the child's exit status."""
        entry = Mock(side_effect=SystemExit(exit_code))
        bootstrap(entry, {"workers": 1}, runtime=runtime, lg=lg)

        assert runtime.run_child(runtime.forked[0]) == expected

    def test_child_keyboard_interrupt(self, runtime, lg):
        """Test Ctrl+C in a worker exits with status 130."""
        entry = Mock(side_effect=KeyboardInterrupt)
        bootstrap(entry, {"workers": 1}, runtime=runtime, lg=lg)

        assert runtime.run_child(runtime.forked[0]) == 130


# =============================================================================
# Worker exit observation
# =============================================================================


@pytest.mark.unit
class TestWorkerExit:
    """Test worker exit notifications."""

    def test_exit_logged_once_per_event(self, runtime, lg, log_stream):
        """Test each exit logs 'worker <pid> died' exactly once."""
        bootstrap(Mock(), {"workers": 2}, runtime=runtime, lg=lg)

        runtime.exit_worker(1001, code=0)
        runtime.exit_worker(1002, code=-9)

        output = log_stream.getvalue()
        assert output.count("worker 1001 died") == 1
        assert output.count("worker 1002 died") == 1
        assert "[exit_code:-9]" in output

    def test_no_respawn(self, runtime, lg):
        """Test a dead worker is not replaced."""
        bootstrap(Mock(), {"workers": 2}, runtime=runtime, lg=lg)

        runtime.exit_worker(1001)

        assert len(runtime.forked) == 2
        assert [h.pid for h in runtime.workers()] == [1002]


# =============================================================================
# Shutdown
# =============================================================================


@pytest.mark.unit
class TestShutdown:
    """Test signal-driven shutdown of the primary."""

    @pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
    def test_signal_terminates_workers_and_exits_zero(
        self, runtime, lg, log_stream, signum
    ):
        """Test shutdown logs, kills each worker once, and exits with 0."""
        cluster = bootstrap(Mock(), {"workers": 3}, runtime=runtime, lg=lg)

        with pytest.raises(SystemExit) as exc_info:
            runtime.send_signal(signum)

        assert exc_info.value.code == 0
        assert runtime.terminated_with == 0
        assert runtime.killed == [
            (1001, signal.SIGTERM),
            (1002, signal.SIGTERM),
            (1003, signal.SIGTERM),
        ]
        assert log_stream.getvalue().count("shutting down gracefully") == 1
        assert cluster.state is ClusterState.TERMINATED

    def test_only_live_workers_terminated(self, runtime, lg):
        """Test workers that already exited are not signalled."""
        bootstrap(Mock(), {"workers": 3}, runtime=runtime, lg=lg)
        runtime.exit_worker(1002)

        with pytest.raises(SystemExit):
            runtime.send_signal(signal.SIGTERM)

        assert [pid for pid, _ in runtime.killed] == [1001, 1003]

    def test_second_signal_ignored(self, runtime, lg):
        """Test a repeated signal does not re-run the shutdown sequence."""
        bootstrap(Mock(), {"workers": 2}, runtime=runtime, lg=lg)

        with pytest.raises(SystemExit):
            runtime.send_signal(signal.SIGINT)
        runtime.send_signal(signal.SIGTERM)

        assert len(runtime.killed) == 2

    def test_explicit_shutdown(self, runtime, lg):
        """Test shutdown() runs the same sequence without a signal."""
        cluster = bootstrap(Mock(), {"workers": 2}, runtime=runtime, lg=lg)

        with pytest.raises(SystemExit):
            cluster.shutdown()

        assert len(runtime.killed) == 2


# =============================================================================
# Waiting
# =============================================================================


@pytest.mark.unit
class TestWait:
    """Test ClusterBootstrap.wait()."""

    def test_returns_when_all_workers_exit(self, runtime, lg):
        """Test wait blocks until the worker registry is empty."""
        cluster = bootstrap(Mock(), {"workers": 2}, runtime=runtime, lg=lg)
        pending = [1001, 1002]
        runtime.on_pause = lambda: runtime.exit_worker(pending.pop(0))

        cluster.wait(poll_interval=0)

        assert runtime.pauses == 2
        assert runtime.workers() == []

    def test_returns_immediately_when_not_supervising(self, runtime, lg):
        """Test wait is a no-op in direct mode."""
        cluster = bootstrap(Mock(), {"enabled": False}, runtime=runtime, lg=lg)

        cluster.wait()

        assert runtime.pauses == 0

    def test_shutdown_signal_ends_wait(self, runtime, lg):
        """Test a shutdown signal during wait unwinds with SystemExit(0)."""
        cluster = bootstrap(Mock(), {"workers": 2}, runtime=runtime, lg=lg)
        runtime.on_pause = lambda: runtime.send_signal(signal.SIGTERM)

        with pytest.raises(SystemExit) as exc_info:
            cluster.wait(poll_interval=0)

        assert exc_info.value.code == 0


@pytest.mark.unit
def test_default_runtime_and_logger_created():
    """Test ClusterBootstrap builds an OsRuntime and /cluster logger by default."""
    from forkcluster.runtime import OsRuntime

    cluster = ClusterBootstrap(Mock(), ClusterConfig(enabled=False))

    assert isinstance(cluster.runtime, OsRuntime)
    assert cluster.runtime.role is Role.PRIMARY
    assert cluster.lg.name == "/cluster"
