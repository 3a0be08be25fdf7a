"""Watch mode: rebuild on file changes.

Philosophy:
- At most one build in flight, at most one queued behind it
- A burst of changes during a build collapses into a single follow-up build
- A failed build is logged; watching continues

Public API (the "studs"):
    RebuildScheduler: IDLE/BUILDING state machine with a pending flag
    GlobFilter: watchfiles filter for a glob, ignoring dircli's own temporary units
    run_watch_loop: feed change batches to a scheduler
    watch: wire run_watch_loop to watchfiles.watch
"""

import fnmatch
import logging
import threading
from collections.abc import Callable, Iterable
from enum import Enum
from pathlib import Path
from typing import Any

from watchfiles import Change, DefaultFilter
from watchfiles import watch as watch_changes

from dircli.errors import DircliError
from dircli.orchestrator import UNIT_PREFIX

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 200


class RebuildState(str, Enum):
    """Scheduler state."""

    IDLE = "idle"
    BUILDING = "building"


class RebuildScheduler:
    """Serialize rebuild requests.

    While IDLE a request starts a build. While BUILDING a request only sets
    ``pending``; when the build finishes and ``pending`` is set, it is cleared
    and exactly one more build runs.

    Args:
        build: Callable performing one full build
    """

    def __init__(self, build: Callable[[], Any]):
        self.build = build
        self.state = RebuildState.IDLE
        self.pending = False
        self.builds = 0
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None

    def _claim(self) -> bool:
        """Move IDLE -> BUILDING, or record a pending request."""
        with self._lock:
            if self.state == RebuildState.BUILDING:
                self.pending = True
                logger.debug("Build in progress; queued one rebuild")
                return False
            self.state = RebuildState.BUILDING
            return True

    def _release(self) -> bool:
        """Finish a build; True when a queued rebuild must run next."""
        with self._lock:
            if self.pending:
                self.pending = False
                return True
            self.state = RebuildState.IDLE
            return False

    def _reset(self) -> None:
        with self._lock:
            self.pending = False
            self.state = RebuildState.IDLE

    def _run(self, propagate: bool = True) -> None:
        """Build until no rebuild is pending.

        Errors other than DircliError are re-raised when ``propagate`` is set
        (the scheduler is reset to IDLE first); otherwise they are logged
        and treated as a failed build.
        """
        while True:
            self.builds += 1
            try:
                self.build()
            except DircliError as e:
                logger.error(f"Build failed: {e}")
            except Exception:
                if propagate:
                    self._reset()
                    raise
                logger.exception("Build failed unexpectedly")
            if not self._release():
                return

    def request(self, propagate: bool = True) -> bool:
        """Run a build in the calling thread, or queue one if a build is running.

        Args:
            propagate: Re-raise errors other than DircliError instead of logging them

        Returns:
            True if this call ran the build(s), False if it only queued one
        """
        if not self._claim():
            return False
        self._run(propagate)
        return True

    def submit(self) -> bool:
        """Like ``request`` but runs the build on a worker thread.

        Unexpected errors on the worker are logged; the scheduler keeps going.
        """
        if not self._claim():
            return False
        self._worker = threading.Thread(
            target=self._run, kwargs={"propagate": False}, name="dircli-rebuild"
        )
        self._worker.start()
        return True

    def wait(self, timeout: float | None = None) -> None:
        """Block until the current worker (if any) finishes."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)


class GlobFilter(DefaultFilter):
    """Accept changes to paths matching a glob pattern.

    Args:
        pattern: Glob relative to ``root`` (``**`` matches across directories)
        root: Directory the pattern is relative to
    """

    def __init__(self, pattern: str, root: Path | str | None = None):
        super().__init__()
        self.pattern = pattern
        self.root = Path(root or Path.cwd()).resolve()

    def matches(self, path: str) -> bool:
        candidate = Path(path)
        if candidate.name.startswith(UNIT_PREFIX):
            return False
        if Path(self.pattern).is_absolute():
            relative = candidate.resolve().as_posix()
        else:
            try:
                relative = candidate.resolve().relative_to(self.root).as_posix()
            except ValueError:
                relative = candidate.as_posix()
        if fnmatch.fnmatch(relative, self.pattern):
            return True
        # "src/**/*.py" should also match "src/top.py"
        return "**/" in self.pattern and fnmatch.fnmatch(
            relative, self.pattern.replace("**/", "")
        )

    def __call__(self, change: Change, path: str) -> bool:
        return super().__call__(change, path) and self.matches(path)


def watch_root(pattern: str, cwd: Path | str | None = None) -> Path:
    """Deepest directory of ``pattern`` that has no glob characters."""
    root = Path(cwd or Path.cwd())
    for part in Path(pattern).parts:
        if any(char in part for char in "*?["):
            break
        root = root / part
    while not root.is_dir() and root != root.parent:
        root = root.parent
    return root


def run_watch_loop(
    changes: Iterable[set[tuple[Change, str]]], scheduler: RebuildScheduler
) -> int:
    """Submit one rebuild per non-empty batch of changes.

    Args:
        changes: Debounced change batches (e.g. from ``watchfiles.watch``)
        scheduler: Scheduler to submit rebuilds to

    Returns:
        Number of batches that triggered a rebuild request
    """
    batches = 0
    for batch in changes:
        if not batch:
            continue
        batches += 1
        logger.info(f"Detected {len(batch)} change(s), rebuilding...")
        for change, path in sorted(batch, key=lambda item: item[1]):
            logger.debug(f"{change.name}: {path}")
        scheduler.submit()
    return batches


def watch(
    pattern: str,
    build: Callable[[], Any],
    debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    cwd: Path | str | None = None,
) -> None:
    """Build once, then rebuild whenever files matching ``pattern`` change.

    Runs until interrupted. An in-flight build finishes before returning.
    """
    root = watch_root(pattern, cwd)
    scheduler = RebuildScheduler(build)
    scheduler.request(propagate=False)

    logger.info(f"Watching {pattern} for changes (Ctrl+C to stop)")
    changes = watch_changes(
        root,
        watch_filter=GlobFilter(pattern, cwd),
        debounce=debounce_ms,
        raise_interrupt=True,
    )
    try:
        run_watch_loop(changes, scheduler)
    finally:
        scheduler.wait()


__all__ = [
    "DEFAULT_DEBOUNCE_MS",
    "GlobFilter",
    "RebuildScheduler",
    "RebuildState",
    "run_watch_loop",
    "watch",
    "watch_root",
]
