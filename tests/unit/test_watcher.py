"""Tests for watch mode: rebuild scheduling, filtering and the watch loop."""

import threading
from unittest.mock import Mock, patch

import pytest
from watchfiles import Change

from dircli.errors import BuildError
from dircli.watcher import (
    GlobFilter,
    RebuildScheduler,
    RebuildState,
    run_watch_loop,
    watch,
    watch_root,
)


class BlockingBuild:
    """Build callable that blocks until released, counting invocations."""

    def __init__(self):
        self.calls = 0
        self.started = threading.Event()
        self.release = threading.Event()

    def __call__(self):
        self.calls += 1
        self.started.set()
        assert self.release.wait(timeout=5)


# ============================================================================
# SCHEDULER
# ============================================================================


class TestRebuildScheduler:
    """Tests for the IDLE/BUILDING state machine."""

    def test_idle_request_builds_once(self):
        build = Mock()
        scheduler = RebuildScheduler(build)

        assert scheduler.request() is True

        build.assert_called_once_with()
        assert scheduler.state == RebuildState.IDLE
        assert scheduler.pending is False

    def test_burst_while_idle_triggers_one_build(self):
        """Many events in one debounced batch -> exactly one build."""
        build = Mock()
        scheduler = RebuildScheduler(build)
        batch = {(Change.modified, f"/src/f{i}.py") for i in range(10)}

        run_watch_loop([batch], scheduler)
        scheduler.wait(timeout=5)

        assert build.call_count == 1

    def test_requests_during_build_coalesce_into_one(self):
        """Any number of requests during a build -> exactly one more build."""
        build = BlockingBuild()
        scheduler = RebuildScheduler(build)

        assert scheduler.submit() is True
        assert build.started.wait(timeout=5)
        assert scheduler.state == RebuildState.BUILDING

        for _ in range(5):
            assert scheduler.submit() is False
        assert scheduler.pending is True

        build.release.set()
        scheduler.wait(timeout=5)

        assert build.calls == 2
        assert scheduler.state == RebuildState.IDLE
        assert scheduler.pending is False

    def test_failed_build_does_not_stop_scheduler(self, caplog):
        build = Mock(side_effect=[BuildError("boom"), None])
        scheduler = RebuildScheduler(build)

        scheduler.request()
        scheduler.request()

        assert build.call_count == 2
        assert "Build failed: boom" in caplog.text
        assert scheduler.state == RebuildState.IDLE

    def test_unexpected_errors_propagate(self):
        build = Mock(side_effect=[RuntimeError("bug"), None])
        scheduler = RebuildScheduler(build)

        with pytest.raises(RuntimeError):
            scheduler.request()

        assert scheduler.state == RebuildState.IDLE
        assert scheduler.pending is False
        assert scheduler.request() is True
        assert build.call_count == 2

    def test_unexpected_worker_error_does_not_stop_scheduler(self, caplog):
        build = Mock(side_effect=[OSError("no space left"), None])
        scheduler = RebuildScheduler(build)

        assert scheduler.submit() is True
        scheduler.wait(timeout=5)

        assert scheduler.state == RebuildState.IDLE
        assert "Build failed unexpectedly" in caplog.text

        assert scheduler.submit() is True
        scheduler.wait(timeout=5)

        assert build.call_count == 2
        assert scheduler.state == RebuildState.IDLE

    def test_unexpected_error_still_runs_queued_rebuild(self):
        calls = []
        started = threading.Event()
        release = threading.Event()

        def build():
            calls.append(len(calls))
            if len(calls) == 1:
                started.set()
                assert release.wait(timeout=5)
                raise OSError("unit not writable")

        scheduler = RebuildScheduler(build)
        scheduler.submit()
        assert started.wait(timeout=5)
        scheduler.submit()
        release.set()
        scheduler.wait(timeout=5)

        assert calls == [0, 1]
        assert scheduler.state == RebuildState.IDLE
        assert scheduler.pending is False


# ============================================================================
# FILTER
# ============================================================================


class TestGlobFilter:
    """Tests for GlobFilter."""

    @pytest.fixture
    def watch_filter(self, tmp_path):
        return GlobFilter("src/**/*.py", tmp_path)

    def test_matches_nested(self, watch_filter, tmp_path):
        assert watch_filter(Change.modified, str(tmp_path / "src" / "db" / "seed.py"))

    def test_matches_top_level_under_double_star(self, watch_filter, tmp_path):
        assert watch_filter(Change.added, str(tmp_path / "src" / "top.py"))

    def test_rejects_other_extensions(self, watch_filter, tmp_path):
        assert not watch_filter(Change.modified, str(tmp_path / "src" / "notes.txt"))

    def test_rejects_temporary_units(self, tmp_path):
        watch_filter = GlobFilter("**/*.py", tmp_path)

        assert not watch_filter(Change.added, str(tmp_path / ".dircli-entry-abc123.py"))

    def test_rejects_default_ignored_dirs(self, watch_filter, tmp_path):
        assert not watch_filter(Change.modified, str(tmp_path / "src" / "__pycache__" / "x.py"))


class TestWatchRoot:
    """Tests for watch_root."""

    def test_static_prefix(self, tmp_path):
        (tmp_path / "src" / "db").mkdir(parents=True)

        assert watch_root("src/db/*.py", tmp_path) == tmp_path / "src" / "db"

    def test_missing_prefix_falls_back_to_existing_parent(self, tmp_path):
        assert watch_root("missing/**/*.py", tmp_path) == tmp_path


# ============================================================================
# LOOP
# ============================================================================


class TestWatchLoop:
    """Tests for run_watch_loop and watch."""

    def test_one_request_per_batch(self):
        scheduler = Mock()
        batches = [
            {(Change.modified, "/a.py")},
            set(),
            {(Change.added, "/b.py"), (Change.deleted, "/c.py")},
        ]

        assert run_watch_loop(batches, scheduler) == 2
        assert scheduler.submit.call_count == 2

    @patch("dircli.watcher.watch_changes")
    def test_watch_builds_first_then_per_batch(self, mock_changes, tmp_path):
        mock_changes.return_value = iter([{(Change.modified, str(tmp_path / "a.py"))}])
        build = Mock()

        watch("*.py", build, debounce_ms=50, cwd=tmp_path)

        assert build.call_count == 2
        kwargs = mock_changes.call_args.kwargs
        assert kwargs["debounce"] == 50
        assert isinstance(kwargs["watch_filter"], GlobFilter)

    @patch("dircli.watcher.watch_changes")
    def test_interrupt_propagates_after_build_finishes(self, mock_changes, tmp_path):
        def interrupted():
            yield {(Change.modified, str(tmp_path / "a.py"))}
            raise KeyboardInterrupt

        mock_changes.return_value = interrupted()
        build = Mock()

        with pytest.raises(KeyboardInterrupt):
            watch("*.py", build, cwd=tmp_path)

        assert build.call_count == 2

    @patch("dircli.watcher.watch_changes")
    def test_initial_crash_keeps_watching(self, mock_changes, tmp_path):
        mock_changes.return_value = iter([{(Change.modified, str(tmp_path / "a.py"))}])
        build = Mock(side_effect=[OSError("boom"), None])

        watch("*.py", build, cwd=tmp_path)

        assert build.call_count == 2
