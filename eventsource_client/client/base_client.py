from abc import ABC, abstractmethod
import asyncio
from contextlib import aclosing
from typing import AsyncContextManager, AsyncIterator, Callable, Optional

from loguru import logger

from eventsource_client.shared.client_utils import make_client_stats, utc_now_iso
from eventsource_client.shared.events import SubscriberBus
from eventsource_client.shared.exceptions import StreamCancelled
from eventsource_client.shared.models import DecodedEvent, ReadyState

class BaseConnectionClient(ABC):
    """
    Drives one streaming run: CONNECTING -> OPEN -> CLOSED.

    Subclasses say how to open the line stream and how to decode it; this class owns
    the ready state, the subscriber buses and the guarantee that CLOSED is delivered
    on every exit path (end of stream, error, cancellation, early break).

    A single instance must not be streamed from two tasks at once.
    """
    protocol_name: str = "unknown"

    def __init__(self, client_id: str, debug: bool = False, diagnostics=None):
        self.client_id = client_id
        self.debug = debug
        self.diagnostics = diagnostics if diagnostics is not None else logger.bind(client_id=client_id)
        self.ready_state = ReadyState.INITIALIZING

        self.error_bus: SubscriberBus[Exception] = SubscriberBus("errors")
        self.event_bus: SubscriberBus[DecodedEvent] = SubscriberBus("events", on_failure=self._report_error)
        self.state_bus: SubscriberBus[ReadyState] = SubscriberBus("state", on_failure=self._report_error)

        self.stats = make_client_stats()
        self._is_running = False

    @property
    def events_received(self): return self.stats["events_received"]

    @property
    def connect_attempts(self): return self.stats["connect_attempts"]

    @property
    def retry_count(self): return self.stats["retry_count"]

    @property
    def is_running(self) -> bool:
        return self._is_running

    def set_callbacks(self, on_event=None, on_status_change=None, on_error=None):
        if on_event is not None:
            self.event_bus.subscribe(on_event)
        if on_status_change is not None:
            self.state_bus.subscribe(on_status_change)
        if on_error is not None:
            self.error_bus.subscribe(on_error)

    def on_event(self, callback) -> Callable[[], None]:
        return self.event_bus.subscribe(callback)

    def on_state_change(self, callback) -> Callable[[], None]:
        return self.state_bus.subscribe(callback)

    def on_error(self, callback) -> Callable[[], None]:
        return self.error_bus.subscribe(callback)

    async def _set_ready_state(self, state: ReadyState):
        self.ready_state = state
        logger.debug(f"protocol={self.protocol_name} client_id={self.client_id} state={state.name}")
        await self.state_bus.publish(state)

    async def _report_error(self, error: Exception):
        # Subscriber failures arrive here wrapped in SubscriberError.
        await self.error_bus.publish(error)

    @abstractmethod
    def open_lines(self, cancel: Optional[asyncio.Event]) -> AsyncContextManager[AsyncIterator[str]]:
        """Opens the transport and yields the body as text lines."""

    @abstractmethod
    def decode(self, lines: AsyncIterator[str], cancel: Optional[asyncio.Event]) -> AsyncIterator[DecodedEvent]:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    async def _lifecycle(self, cancel: Optional[asyncio.Event]) -> AsyncIterator[DecodedEvent]:
        await self._set_ready_state(ReadyState.CONNECTING)
        self._is_running = True
        try:
            async with self.open_lines(cancel) as lines:
                self.stats["connected_at"] = utc_now_iso()
                await self._set_ready_state(ReadyState.OPEN)
                async with aclosing(self.decode(lines, cancel)) as events:
                    async for event in events:
                        self.stats["events_received"] += 1
                        self.stats["last_event_at"] = utc_now_iso()
                        yield event
        except StreamCancelled:
            logger.info(f"protocol={self.protocol_name} client_id={self.client_id} event=cancelled")
        except Exception as e:
            await self._report_error(e)
            raise
        finally:
            self._is_running = False
            await self._set_ready_state(ReadyState.CLOSED)

    async def stream(self, cancel: Optional[asyncio.Event] = None) -> None:
        """
        Connects, then pushes every decoded event to the event subscribers until
        the stream ends or `cancel` is set. Connect and read failures propagate
        after CLOSED has been published.
        """
        if self.debug:
            self.diagnostics.info("Starting to stream events.")
        try:
            async with aclosing(self._lifecycle(cancel)) as events:
                async for event in events:
                    if self.debug:
                        self.diagnostics.info(f"Event received: {event.event_type}")
                    await self.event_bus.publish(event)
        except Exception as e:
            if self.debug:
                self.diagnostics.error(f"An error occurred: {e}")
            raise
        finally:
            if self.debug:
                self.diagnostics.info("Streaming has ended.")

    async def iter_events(self, cancel: Optional[asyncio.Event] = None) -> AsyncIterator[DecodedEvent]:
        """Pull-style view of `stream()`: the caller consumes the events directly."""
        async with aclosing(self._lifecycle(cancel)) as events:
            async for event in events:
                yield event

    def __aiter__(self) -> AsyncIterator[DecodedEvent]:
        return self.iter_events()

    async def aclose(self) -> None:
        await self.disconnect()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
