"""Live-reload notifications.

Pipelines publish after writing; subscribers (a dev server, the watch
logger) receive ReloadEvents on an asyncio queue. Publishing never raises
and never blocks: a full queue drops the event.

Pipelines run in worker threads, so once the bus is bound to the event
loop with start(), events are handed over with call_soon_threadsafe.
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Set, Tuple

from .assets.sources import matches
from .logging import get_logger

logger = get_logger('reload')

DEFAULT_QUEUE_SIZE = 200

# Changes to these can be injected without a full page reload
INJECTABLE_EXTENSIONS = ('.css',)


@dataclass(frozen=True)
class ReloadEvent:
    """Something changed in the destinations.

    Attributes:
        asset_class: Asset class that wrote the files
        paths: Destination-relative paths written
        inject: True if the browser can apply the change in place
    """
    asset_class: str
    paths: Tuple[str, ...] = ()

    @property
    def inject(self) -> bool:
        return bool(self.paths) and all(p.endswith(INJECTABLE_EXTENSIONS) for p in self.paths)


EventQueue = asyncio.Queue


class ReloadBus:
    """Fan out reload events to subscribed queues."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self._queue_size = max(1, int(queue_size))
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._subscribers: Set[EventQueue] = set()

    def start(self, *, loop: asyncio.AbstractEventLoop) -> None:
        """Bind to the event loop that owns the subscriber queues."""
        self._loop = loop

    def stop(self) -> None:
        self._loop = None

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Tuple[EventQueue, Callable[[], None]]:
        """Return a queue of ReloadEvents and a function to unsubscribe."""
        queue: EventQueue = asyncio.Queue(maxsize=self._queue_size)
        with self._lock:
            self._subscribers.add(queue)

        def _unsubscribe() -> None:
            with self._lock:
                self._subscribers.discard(queue)

        return queue, _unsubscribe

    def _enqueue(self, queue: EventQueue, event: ReloadEvent) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("reload queue full; dropped %s event", event.asset_class)

    def publish(self, asset_class: str, paths: Sequence[str] = (),
                match: Optional[str] = None) -> Optional[ReloadEvent]:
        """Notify subscribers that asset_class wrote paths.

        Args:
            asset_class: Name of the publishing asset class
            paths: Destination-relative paths written
            match: Glob; only matching paths are announced, and nothing is
                published if none match

        Returns:
            The published event, or None if nothing was published
        """
        try:
            selected = tuple(p for p in paths if match is None or matches(match, p))
            if match is not None and not selected:
                return None
            event = ReloadEvent(asset_class, selected)

            with self._lock:
                queues = list(self._subscribers)
            loop = self._loop
            for queue in queues:
                if loop is not None and not loop.is_closed():
                    loop.call_soon_threadsafe(self._enqueue, queue, event)
                else:
                    self._enqueue(queue, event)

            logger.debug("reload %s (%s)", asset_class, 'inject' if event.inject else 'full')
            return event
        except Exception:
            # A broken subscriber must never fail the build
            logger.exception("reload notification for %s failed", asset_class)
            return None
