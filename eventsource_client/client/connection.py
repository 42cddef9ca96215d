"""
MODULE OVERVIEW:
Opening the event stream, either by making the request ourselves or by borrowing a
response the caller already holds.

WHAT IS HAPPENING HERE:
`ConnectionSource` is one of two shapes and `open_stream()` dispatches on it:

- `RemoteSource`: build a request per attempt and send it with `stream=True`, so
  HTTPX returns as soon as the headers arrive and the body stays a live stream.
  A transport error or a non-2xx status counts as a failed attempt. Failed attempts
  are retried after a fixed delay until `max_retries` attempts have been made.
- `PreopenedBody`: no networking and no retry. The lines come straight from the
  borrowed response, which we never close because we never opened it.

Either way `open_stream()` is an async context manager, so the response we own is
closed exactly once on success, error or cancellation.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Union

import httpx
from loguru import logger

from eventsource_client.shared.client_utils import CancelWatch, raise_if_cancelled
from eventsource_client.shared.exceptions import BodyReadError, ConnectError, StreamCancelled
from eventsource_client.shared.models import ConnectionOptions

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
DEFAULT_STREAM_HEADERS = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}


@dataclass(frozen=True)
class RemoteSource:
    url: str
    options: ConnectionOptions


@dataclass(frozen=True)
class PreopenedBody:
    response: httpx.Response


ConnectionSource = Union[RemoteSource, PreopenedBody]


def request_headers(options: ConnectionOptions) -> dict[str, str]:
    """Caller headers minus any Content-Type, over the SSE defaults."""
    headers = {k: v for k, v in options.headers.items() if k.lower() != "content-type"}
    supplied = {k.lower() for k in headers}
    for name, value in DEFAULT_STREAM_HEADERS.items():
        if name.lower() not in supplied:
            headers[name] = value
    return headers


def build_request(http: httpx.AsyncClient, source: RemoteSource) -> httpx.Request:
    options = source.options
    headers = request_headers(options)
    content = None
    if options.payload:
        headers["Content-Type"] = JSON_CONTENT_TYPE
        content = options.payload.encode("utf-8")
    return http.build_request(options.method, source.url, headers=headers, content=content)


async def _send_once(http: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
    response = await http.send(request, stream=True)
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError:
        await response.aclose()
        raise
    return response


async def connect_with_retry(
    http: httpx.AsyncClient,
    source: RemoteSource,
    cancel: Optional[asyncio.Event] = None,
    retry_delay_s: float = 2.0,
    diagnostics=logger,
    stats: Optional[dict] = None,
) -> httpx.Response:
    """
    Sends the stream request, retrying failed attempts.

    Makes at most `source.options.max_retries` attempts and sleeps `retry_delay_s`
    between two attempts (never after the last one). Raises `ConnectError` chained
    from the final attempt's error once the attempts are used up, or
    `StreamCancelled` if `cancel` fires first.
    """
    options = source.options
    watch = CancelWatch(cancel)
    attempt = 0

    try:
        while True:
            watch.check()
            attempt += 1
            if stats is not None:
                stats["connect_attempts"] += 1
            try:
                request = build_request(http, source)
                if options.debug:
                    diagnostics.info(f"Request method: {request.method}")
                    diagnostics.info(f"Request URL: {request.url}")
                    diagnostics.info(
                        "Headers: " + ", ".join(f"{k}: {v}" for k, v in request_headers(options).items())
                    )
                    if options.payload:
                        diagnostics.info(f"Payload: {options.payload}")
                return await watch.run(_send_once(http, request))
            except StreamCancelled:
                raise
            except Exception as e:
                logger.warning(
                    f"url={source.url} attempt={attempt}/{options.max_retries} "
                    f"delay={retry_delay_s:.2f}s error='{e}'"
                )
                if options.debug:
                    diagnostics.error(f"Exception: {e}")
                if attempt >= options.max_retries:
                    raise ConnectError(source.url, attempt, e) from e
                if stats is not None:
                    stats["retry_count"] += 1

            await watch.run(asyncio.sleep(retry_delay_s))
    finally:
        watch.close()


def _check_body_readable(response: httpx.Response) -> None:
    # A fully read response replays its buffered content; anything else needs a
    # live, unconsumed async stream.
    try:
        response.content
        return
    except httpx.ResponseNotRead:
        pass
    if response.is_stream_consumed or response.is_closed:
        raise BodyReadError("The supplied response body was already consumed or closed")
    if not isinstance(response.stream, httpx.AsyncByteStream):
        raise BodyReadError("The supplied response body is not an async stream")


async def _preopened_lines(response: httpx.Response) -> AsyncIterator[str]:
    try:
        async for line in response.aiter_lines():
            yield line
    # RuntimeError: HTTPX refuses to iterate a sync stream asynchronously.
    except (httpx.StreamError, RuntimeError) as e:
        raise BodyReadError(f"Could not read the supplied response body: {e}") from e


@asynccontextmanager
async def open_stream(
    http: Optional[httpx.AsyncClient],
    source: ConnectionSource,
    cancel: Optional[asyncio.Event] = None,
    retry_delay_s: float = 2.0,
    diagnostics=logger,
    stats: Optional[dict] = None,
) -> AsyncIterator[AsyncIterator[str]]:
    """Yields the body of `source` as an async iterator of text lines."""
    if isinstance(source, PreopenedBody):
        raise_if_cancelled(cancel)
        _check_body_readable(source.response)
        yield _preopened_lines(source.response)
        return

    if http is None:
        raise ValueError("An HTTP client is required to open a remote source")

    response = await connect_with_retry(
        http, source, cancel=cancel, retry_delay_s=retry_delay_s, diagnostics=diagnostics, stats=stats
    )
    try:
        yield response.aiter_lines()
    finally:
        await response.aclose()
