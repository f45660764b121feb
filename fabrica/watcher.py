"""Polling file watcher that re-runs the narrowest task for each change.

Each WatchBinding pairs globs with a task name:

    WatchBinding(src, ('assets/css/**/*.{css,pcss}',), 'styles')

Every poll tick the watcher snapshots the (mtime, size) of each
binding's files. A binding whose snapshot differs from the previous tick
gets one run of its task, no matter how many of its files changed.
Bindings are never batched together, and runs already in flight are
never cancelled.
"""

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple

from .assets.sources import discover, matches
from .logging import get_logger

logger = get_logger('watcher')

Snapshot = Dict[str, Tuple[float, int]]


@dataclass(frozen=True)
class WatchBinding:
    """Globs under root that trigger a task.

    Attributes:
        root: Directory the patterns are relative to
        patterns: Glob patterns
        task: Task name to run on change
    """
    root: Path
    patterns: Tuple[str, ...]
    task: str

    def matches(self, path) -> bool:
        """Check if an absolute or root-relative path is under the globs."""
        path = Path(path)
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(Path(self.root).resolve())
            except ValueError:
                return False
        rel = path.as_posix()
        return any(matches(pattern, rel) for pattern in self.patterns)

    def snapshot(self) -> Snapshot:
        state: Snapshot = {}
        for source in discover(self.root, self.patterns, self.task):
            try:
                stat = os.stat(source.path)
            except FileNotFoundError:
                # Deleted between discovery and stat; the next tick sees it
                continue
            state[source.path.as_posix()] = (stat.st_mtime, stat.st_size)
        return state


class Watcher:
    """Poll bindings and run their tasks on change.

    Args:
        bindings: Watch bindings, in priority order for tasks_for()
        runner: Coroutine function running a task by name
        poll_interval: Seconds between polls
    """

    def __init__(self, bindings: Sequence[WatchBinding],
                 runner: Callable[[str], Awaitable],
                 poll_interval: float = 0.5):
        self.bindings: List[WatchBinding] = list(bindings)
        self.runner = runner
        self.poll_interval = poll_interval
        self._snapshots: Optional[List[Snapshot]] = None
        self._in_flight: Set[asyncio.Task] = set()

    def tasks_for(self, path) -> List[str]:
        """Task names triggered by a change to path (in binding order)."""
        tasks = []
        for binding in self.bindings:
            if binding.task not in tasks and binding.matches(path):
                tasks.append(binding.task)
        return tasks

    def snapshot(self) -> List[Snapshot]:
        return [binding.snapshot() for binding in self.bindings]

    def poll_once(self) -> List[WatchBinding]:
        """Take a new snapshot and return the bindings that changed.

        The first call only records the baseline and returns nothing.
        """
        current = self.snapshot()
        previous, self._snapshots = self._snapshots, current
        if previous is None:
            return []
        return [
            binding for binding, before, after in zip(self.bindings, previous, current)
            if before != after
        ]

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def _run_binding(self, binding: WatchBinding) -> None:
        logger.info("change detected; running '%s'", binding.task)
        result = await self.runner(binding.task)
        for failure in getattr(result, 'failures', ()):
            logger.error("'%s' failed: %s", failure.task, failure.error)

    def _schedule(self, binding: WatchBinding) -> asyncio.Task:
        task = asyncio.ensure_future(self._run_binding(binding))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def run(self) -> None:
        """Poll until cancelled."""
        if self._snapshots is None:
            await asyncio.to_thread(self.poll_once)
        logger.info("watching %d binding(s) every %ss", len(self.bindings), self.poll_interval)

        while True:
            await asyncio.sleep(self.poll_interval)
            changed = await asyncio.to_thread(self.poll_once)
            for binding in changed:
                self._schedule(binding)
