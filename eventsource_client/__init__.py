"""Server-Sent Events client: connect with retry, decode `data:` blocks, publish lifecycle."""
from eventsource_client.client.connection import PreopenedBody, RemoteSource
from eventsource_client.client.decoder import decode_events
from eventsource_client.client.sse_client import EventSourceClient
from eventsource_client.shared.exceptions import (
    BodyReadError,
    ConnectError,
    EventSourceError,
    StreamCancelled,
    SubscriberError,
)
from eventsource_client.shared.models import ConnectionOptions, DecodedEvent, ReadyState

__all__ = [
    "BodyReadError",
    "ConnectError",
    "ConnectionOptions",
    "DecodedEvent",
    "EventSourceClient",
    "EventSourceError",
    "PreopenedBody",
    "ReadyState",
    "RemoteSource",
    "StreamCancelled",
    "SubscriberError",
    "decode_events",
]
