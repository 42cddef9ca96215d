"""Shared fixtures: scripted HTTPX transports and a loguru capture sink."""

import asyncio
from typing import Callable, Iterable, List, Optional

import httpx
import pytest
from loguru import logger

TEST_URL = "http://test.local/events"


class ChunkStream(httpx.AsyncByteStream):
    """Response body that yields `chunks` and then, optionally, hangs until cancelled."""

    def __init__(self, chunks: Iterable[bytes], hang: bool = False):
        self.chunks = list(chunks)
        self.hang = hang
        self.exhausted = asyncio.Event()
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        self.exhausted.set()
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class ScriptedTransport(httpx.MockTransport):
    """Records every request; the handler decides the outcome per attempt."""

    def __init__(self, handler: Callable[[httpx.Request, int], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def dispatch(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request, len(self.requests))

        super().__init__(dispatch)


def sse_response(body: str = "", status_code: int = 200, stream: Optional[ChunkStream] = None) -> httpx.Response:
    headers = {"content-type": "text/event-stream"}
    if stream is not None:
        return httpx.Response(status_code, headers=headers, stream=stream)
    return httpx.Response(status_code, headers=headers, content=body.encode("utf-8"))


@pytest.fixture
def serve():
    """Builds an AsyncClient whose every request is answered by `handler`."""
    def factory(handler):
        transport = ScriptedTransport(handler)
        return httpx.AsyncClient(transport=transport), transport
    return factory


@pytest.fixture
def serve_body(serve):
    """An AsyncClient that answers every request with the same SSE body."""
    def factory(body: str):
        return serve(lambda request, attempt: sse_response(body))
    return factory


@pytest.fixture
def log_messages():
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


class Recorder:
    def __init__(self):
        self.events = []
        self.states = []
        self.errors = []

    def attach(self, client):
        client.set_callbacks(self.events.append, self.states.append, self.errors.append)
        return self

    @property
    def data(self):
        return [e.data for e in self.events]


@pytest.fixture
def recorder():
    return Recorder()
