"""
Filesystem watch subscriptions.

A subscription runs two tasks: a reader that moves events from the watch
stream into a queue, and a dispatcher that drains the queue and calls the
handler once per event, in arrival order. ``close()`` returns only after
the dispatcher has stopped, so the handler is never called after it.
"""

import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional

from remote_sandbox.types import FileEvent

logger = logging.getLogger(__name__)

_STOP = object()


class WatchSubscription:
    """
    Standing subscription to filesystem events.

    Usage:
        >>> sub = await sandbox.fs.watch("/app", lambda e: print(e.op, e.path))
        >>> ...
        >>> await sub.close()
    """

    def __init__(
        self,
        events: AsyncIterator[Dict[str, Any]],
        handler: Callable[[FileEvent], Any],
        path: str = "/",
    ):
        self.path = path
        self.delivered = 0
        self.error: Optional[BaseException] = None
        self._events = events
        self._handler = handler
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False
        self._reader: Optional[asyncio.Task] = None
        self._dispatcher: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start reading and dispatching; must be called from a running loop."""
        if self._reader is not None:
            return
        self._reader = asyncio.create_task(self._read())
        self._dispatcher = asyncio.create_task(self._dispatch())

    async def _read(self) -> None:
        try:
            async for raw in self._events:
                if self._closed:
                    break
                self._queue.put_nowait(FileEvent(**raw))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.error = e
            logger.error(f"Watch on '{self.path}' stopped: {e}")
        finally:
            self._queue.put_nowait(_STOP)

    async def _dispatch(self) -> None:
        while True:
            event = await self._queue.get()
            if event is _STOP or self._closed:
                break
            try:
                result = self._handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.warning(f"Watch handler failed on {event.op} {event.path}", exc_info=True)
            self.delivered += 1

    async def wait(self) -> None:
        """Wait until the stream ends and every queued event was delivered."""
        if self._dispatcher is not None:
            await asyncio.shield(self._dispatcher)

    async def close(self) -> None:
        """
        Stop the subscription.

        Events still queued are dropped. Once this returns no further
        handler call will start.
        """
        self._closed = True

        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)

        dispatcher = self._dispatcher
        if dispatcher is not None and dispatcher is not asyncio.current_task():
            if not dispatcher.done():
                self._queue.put_nowait(_STOP)
            await asyncio.gather(dispatcher, return_exceptions=True)

        logger.debug(f"Closed watch on '{self.path}' after {self.delivered} events")

    async def __aenter__(self) -> "WatchSubscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
