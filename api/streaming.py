"""SSE bridge: orchestrator tick thread → async event stream."""

import asyncio
import threading

from orgchart.event_bus import OrgchartEvent


class EventSSEBridge:
    """Broadcasts EventBus events to every connected SSE subscriber.

    Usage:
        bridge = EventSSEBridge(loop)
        events.subscribe(bridge.callback)
        # In async endpoint:
        queue = bridge.subscribe()
        event = await queue.get()

    Thread-safe: callback() is called from the orchestrator thread, while
    subscribe/unsubscribe are called from async request handlers.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, types: frozenset[str] | None = None):
        self._loop = loop
        self._types = types
        self._subscribers: list[asyncio.Queue[dict | None]] = []
        self._lock = threading.Lock()

    def callback(self, event: OrgchartEvent) -> None:
        """EventBus listener; hands the event to the loop thread."""
        if self._types is not None and event.type not in self._types:
            return
        payload = event.to_dict()
        with self._lock:
            for q in self._subscribers:
                self._loop.call_soon_threadsafe(self._offer, q, payload)

    @staticmethod
    def _offer(q: asyncio.Queue, payload: dict | None) -> None:
        # A subscriber that stopped reading loses events rather than blocking the rest
        if not q.full():
            q.put_nowait(payload)

    def subscribe(self) -> asyncio.Queue[dict | None]:
        """Create a new subscriber queue. ``None`` on the queue ends the stream."""
        q: asyncio.Queue[dict | None] = asyncio.Queue(maxsize=1000)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                pass

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def close(self) -> None:
        """Signal all subscribers to stop and clear the subscriber list."""
        with self._lock:
            for q in self._subscribers:
                self._loop.call_soon_threadsafe(q.put_nowait, None)
            self._subscribers.clear()
