from typing import Any


class EventSourceError(Exception):
    """Base class for every error raised by the event source client."""


class ConnectError(EventSourceError):
    """No stream could be opened after the configured number of attempts."""

    def __init__(self, url: str, attempts: int, last_error: BaseException):
        super().__init__(f"Could not connect to {url} after {attempts} attempt(s): {last_error}")
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class BodyReadError(EventSourceError):
    """A pre-opened response body could not be read."""


class StreamCancelled(EventSourceError):
    """Raised at a suspension point once the cancellation event is set."""


class SubscriberError(EventSourceError):
    def __init__(self, subscriber: Any, error: BaseException):
        name = getattr(subscriber, "__qualname__", repr(subscriber))
        super().__init__(f"Subscriber {name} failed: {error!r}")
        self.subscriber = subscriber
        self.error = error
