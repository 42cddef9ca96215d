import asyncio
import inspect
from datetime import datetime, timezone
from typing import Awaitable, Optional, TypeVar

from eventsource_client.shared.exceptions import StreamCancelled

T = TypeVar("T")

def make_client_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    Every client calls this once in __init__.
    Keys: events_received, connect_attempts, retry_count,
          last_event_at, connected_at.
    """
    return {
        "events_received": 0,
        "connect_attempts": 0,
        "retry_count": 0,
        "last_event_at": None,
        "connected_at": None,
    }

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def raise_if_cancelled(cancel: Optional[asyncio.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise StreamCancelled()

class CancelWatch:
    """
    Races awaits against one cancellation event.

    Without an event `run()` is a plain await. With one, the awaited work and a
    single long-lived `cancel.wait()` task race each other; that waiter is created on
    the first `run()` and reused until `close()`, so a read loop pays for one task per
    read instead of two. If the event wins, the pending work is cancelled and
    `StreamCancelled` is raised.
    """

    def __init__(self, cancel: Optional[asyncio.Event]):
        self.cancel = cancel
        self.waiter: Optional[asyncio.Future] = None

    def check(self) -> None:
        raise_if_cancelled(self.cancel)

    async def run(self, awaitable: Awaitable[T]) -> T:
        if self.cancel is None:
            return await awaitable
        if self.cancel.is_set():
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise StreamCancelled()

        if self.waiter is None:
            self.waiter = asyncio.ensure_future(self.cancel.wait())
        work = asyncio.ensure_future(awaitable)
        try:
            await asyncio.wait({work, self.waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not work.done():
                work.cancel()
                await asyncio.wait({work})

        if work.cancelled():
            raise StreamCancelled()
        return work.result()

    def close(self) -> None:
        if self.waiter is not None:
            self.waiter.cancel()
            self.waiter = None
