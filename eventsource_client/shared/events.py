"""
MODULE OVERVIEW:
The in-process notification bus used by the client to reach its subscribers.

WHAT IS HAPPENING HERE:
A client owns one bus per notification kind (events, ready-state changes, errors).
Publishing walks the subscribers in registration order and awaits each one inline,
so a consumer sees notifications in exactly the order the read loop produced them.
Subscribers may be plain functions or coroutine functions.

A subscriber that raises is isolated: the failure is logged and handed to the
bus' `on_failure` hook, and the remaining subscribers still run.
"""
import inspect
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar, Union

from loguru import logger

from eventsource_client.shared.exceptions import SubscriberError

T = TypeVar("T")
Subscriber = Callable[[T], Union[None, Awaitable[None]]]


class SubscriberBus(Generic[T]):
    def __init__(self, name: str, on_failure: Optional[Callable[[SubscriberError], Awaitable[None]]] = None):
        self.name = name
        self.on_failure = on_failure
        self._subscribers: List[Subscriber] = []

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def clear(self) -> None:
        self._subscribers.clear()

    async def publish(self, item: Any) -> None:
        # Snapshot so a subscriber may unsubscribe itself while being notified.
        for sub in list(self._subscribers):
            try:
                result = sub(item)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                failure = SubscriberError(sub, e)
                logger.error(f"bus={self.name} event=subscriber_error reason='{failure}'")
                if self.on_failure is not None:
                    await self.on_failure(failure)
