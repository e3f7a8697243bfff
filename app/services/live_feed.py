"""
In-process live collection feeds.

Writers call ``notify(collection)`` after committing; each subscriber holds a
one-slot queue, so bursts of writes coalesce into a single re-read. Readers
always receive a full, freshly loaded snapshot, never a diff.
"""
import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Set

from ..utils.logging import get_logger

logger = get_logger(__name__)

_CLOSED = object()


class LiveFeedHub:
    """Fan-out of change notifications keyed by collection path"""

    def __init__(self):
        self._subscribers: Dict[str, Set[asyncio.Queue]] = defaultdict(set)
        self._closed = False

    def subscriber_count(self, collection: str) -> int:
        return len(self._subscribers.get(collection, ()))

    def notify(self, collection: str) -> None:
        """Signal every subscriber of ``collection`` that it changed"""
        for queue in list(self._subscribers.get(collection, ())):
            try:
                queue.put_nowait(collection)
            except asyncio.QueueFull:
                # A notification is already pending; the next read sees this change too
                pass

    @asynccontextmanager
    async def subscribe(self, collection: str) -> AsyncIterator[asyncio.Queue]:
        if self._closed:
            raise RuntimeError("Live feed hub is closed")

        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._subscribers[collection].add(queue)
        logger.debug(f"Subscribed to {collection} ({self.subscriber_count(collection)} active)")

        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(collection)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscribers[collection]

    async def snapshots(
        self,
        collection: str,
        loader: Callable[[], Awaitable[Any]]
    ) -> AsyncIterator[Any]:
        """Yield the current snapshot, then a fresh one after every change"""
        async with self.subscribe(collection) as queue:
            yield await loader()
            while True:
                signal: Optional[object] = await queue.get()
                if signal is _CLOSED:
                    return
                yield await loader()

    async def close(self) -> None:
        """End every open stream"""
        self._closed = True
        for subscribers in list(self._subscribers.values()):
            for queue in list(subscribers):
                while not queue.empty():
                    queue.get_nowait()
                queue.put_nowait(_CLOSED)
