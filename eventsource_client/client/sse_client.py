"""
MODULE OVERVIEW:
The Server-Sent Events HTTP client implementation.

WHAT IS HAPPENING HERE:
The client is built from one of two sources:

    EventSourceClient(url, options)            # we make the request (and retry it)
    EventSourceClient.from_response(response)  # we read a response the caller opened

When it makes the request itself and no `http_client` is passed in, it creates an
HTTPX `AsyncClient` with no read timeout (SSE streams are long-lived) and closes it
in `aclose()`. A passed-in client or response is borrowed and left open.
"""
import asyncio
from contextlib import aclosing
from typing import AsyncIterator, Optional
from uuid import uuid4

import httpx

from eventsource_client.client.base_client import BaseConnectionClient
from eventsource_client.client.connection import PreopenedBody, RemoteSource, open_stream
from eventsource_client.client.decoder import decode_events
from eventsource_client.shared.config import settings
from eventsource_client.shared.models import ConnectionOptions, DecodedEvent

class EventSourceClient(BaseConnectionClient):
    protocol_name: str = "sse"

    def __init__(
        self,
        url: Optional[str] = None,
        options: Optional[ConnectionOptions] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        response: Optional[httpx.Response] = None,
        client_id: Optional[str] = None,
        retry_delay_s: Optional[float] = None,
        diagnostics=None,
    ):
        if (url is None) == (response is None):
            raise ValueError("Pass either a url or a pre-opened response, not both")

        self.options = options or ConnectionOptions()
        super().__init__(
            client_id or f"sse-{str(uuid4())[:4]}",
            debug=self.options.debug,
            diagnostics=diagnostics,
        )

        if response is not None:
            self.source = PreopenedBody(response)
        else:
            self.source = RemoteSource(url, self.options)
        self.retry_delay_s = settings.SSE_RETRY_DELAY_S if retry_delay_s is None else retry_delay_s

        self._owns_client = http_client is None and isinstance(self.source, RemoteSource)
        if self._owns_client:
            http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.SSE_CONNECT_TIMEOUT_S, read=None))
        self.client = http_client

    @classmethod
    def from_response(cls, response: httpx.Response, options: Optional[ConnectionOptions] = None, **kwargs):
        return cls(options=options, response=response, **kwargs)

    @property
    def url(self) -> Optional[str]:
        if isinstance(self.source, RemoteSource):
            return self.source.url
        return None

    async def disconnect(self) -> None:
        if self._owns_client and self.client is not None:
            await self.client.aclose()

    def open_lines(self, cancel: Optional[asyncio.Event]):
        return open_stream(
            self.client,
            self.source,
            cancel=cancel,
            retry_delay_s=self.retry_delay_s,
            diagnostics=self.diagnostics,
            stats=self.stats,
        )

    async def decode(self, lines: AsyncIterator[str], cancel: Optional[asyncio.Event]) -> AsyncIterator[DecodedEvent]:
        async with aclosing(decode_events(lines, cancel)) as events:
            async for event in events:
                if self.debug:
                    self.diagnostics.info(f"Raw event data: {event.data}")
                yield event
