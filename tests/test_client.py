"""Tests for EventSourceClient: lifecycle, subscribers, resources and diagnostics."""

import asyncio
from contextlib import aclosing

import httpx
import pytest

from conftest import TEST_URL, ChunkStream, sse_response
from eventsource_client.client.sse_client import EventSourceClient
from eventsource_client.shared.exceptions import BodyReadError, ConnectError, SubscriberError
from eventsource_client.shared.models import ConnectionOptions, ReadyState


def _client(http, **options):
    opts = ConnectionOptions(**options)
    return EventSourceClient(TEST_URL, opts, http_client=http, retry_delay_s=0.01)


class TestStreaming:
    @pytest.mark.asyncio
    async def test_receives_event_after_open(self, serve_body):
        http, _ = serve_body('data: {"message": "Hello"}\n\n')
        client = _client(http)
        timeline = []
        client.on_state_change(lambda state: timeline.append(state))
        client.on_event(lambda event: timeline.append(event))

        await client.stream()

        assert timeline[0] == ReadyState.CONNECTING
        assert timeline[1] == ReadyState.OPEN
        assert timeline[2].data == '{"message": "Hello"}'
        assert timeline[2].event_type == "message"
        assert timeline[3] == ReadyState.CLOSED
        assert len(timeline) == 4

    @pytest.mark.asyncio
    async def test_multiple_events_in_single_stream(self, serve_body, recorder):
        http, _ = serve_body(
            'event: customEvent1\ndata: {"message": "Event 1"}\n\n'
            'event: customEvent2\ndata: {"message": "Event 2"}\n\n'
        )
        client = _client(http)
        recorder.attach(client)

        await client.stream()

        assert recorder.data == ['{"message": "Event 1"}', '{"message": "Event 2"}']
        assert client.events_received == 2
        assert client.stats["last_event_at"] is not None

    @pytest.mark.asyncio
    async def test_initial_state_is_initializing(self, serve_body):
        http, _ = serve_body("")
        assert _client(http).ready_state == ReadyState.INITIALIZING

    @pytest.mark.asyncio
    async def test_post_with_payload(self, serve_body):
        http, transport = serve_body("")
        client = _client(
            http,
            method="POST",
            payload='{"query": "mutation { addEvent { id } }"}',
            headers={"Content-Type": "application/json", "Authorization": "Bearer test_token"},
        )

        await client.stream()

        assert len(transport.requests) == 1
        request = transport.requests[0]
        assert request.method == "POST"
        assert request.content == b'{"query": "mutation { addEvent { id } }"}'
        assert request.headers["authorization"] == "Bearer test_token"
        assert request.headers["content-type"] == "application/json; charset=utf-8"

    @pytest.mark.asyncio
    async def test_restream_restarts_from_connecting(self, serve_body, recorder):
        http, transport = serve_body("data: again\n\n")
        client = _client(http)
        recorder.attach(client)

        await client.stream()
        await client.stream()

        assert recorder.states == [
            ReadyState.CONNECTING, ReadyState.OPEN, ReadyState.CLOSED,
            ReadyState.CONNECTING, ReadyState.OPEN, ReadyState.CLOSED,
        ]
        assert recorder.data == ["again", "again"]
        assert len(transport.requests) == 2


class TestFailures:
    @pytest.mark.asyncio
    async def test_network_error_propagates_after_retries(self, serve, recorder):
        def handler(request, attempt):
            raise httpx.ConnectError("Network error", request=request)

        http, transport = serve(handler)
        client = _client(http, max_retries=3)
        recorder.attach(client)

        with pytest.raises(ConnectError) as exc_info:
            await client.stream()

        assert len(transport.requests) == 3
        assert isinstance(exc_info.value.last_error, httpx.ConnectError)
        assert recorder.states == [ReadyState.CONNECTING, ReadyState.CLOSED]
        assert recorder.errors == [exc_info.value]
        assert client.ready_state == ReadyState.CLOSED
        assert client.connect_attempts == 3
        assert client.retry_count == 2

    @pytest.mark.asyncio
    async def test_retry_until_success(self, serve, recorder):
        def handler(request, attempt):
            if attempt < 3:
                raise httpx.ReadTimeout("Timeout", request=request)
            return sse_response("data: finally\n\n")

        http, transport = serve(handler)
        client = _client(http, max_retries=3)
        recorder.attach(client)

        await client.stream()

        assert len(transport.requests) == 3
        assert recorder.data == ["finally"]
        assert recorder.states == [ReadyState.CONNECTING, ReadyState.OPEN, ReadyState.CLOSED]

    @pytest.mark.asyncio
    async def test_read_error_after_open_is_not_retried(self, serve, recorder):
        class BrokenStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"data: first\n\n"
                raise httpx.ReadError("connection reset")

        http, transport = serve(lambda request, attempt: sse_response(stream=BrokenStream()))
        client = _client(http, max_retries=3)
        recorder.attach(client)

        with pytest.raises(httpx.ReadError):
            await client.stream()

        assert len(transport.requests) == 1
        assert recorder.data == ["first"]
        assert recorder.states == [ReadyState.CONNECTING, ReadyState.OPEN, ReadyState.CLOSED]


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_mid_stream_discards_partial_block(self, serve, recorder):
        stream = ChunkStream([b"data: complete\n\n", b"data: partial\n"], hang=True)
        http, _ = serve(lambda request, attempt: sse_response(stream=stream))
        client = _client(http)
        recorder.attach(client)
        cancel = asyncio.Event()

        task = asyncio.create_task(client.stream(cancel))
        await asyncio.wait_for(stream.exhausted.wait(), timeout=2.0)
        cancel.set()
        await asyncio.wait_for(task, timeout=2.0)

        assert recorder.data == ["complete"]
        assert recorder.states[-1] == ReadyState.CLOSED
        assert recorder.errors == []
        assert stream.closed

    @pytest.mark.asyncio
    async def test_task_cancellation_still_closes(self, serve, recorder):
        stream = ChunkStream([b"data: one\n\n"], hang=True)
        http, _ = serve(lambda request, attempt: sse_response(stream=stream))
        client = _client(http)
        recorder.attach(client)

        task = asyncio.create_task(client.stream())
        await asyncio.wait_for(stream.exhausted.wait(), timeout=2.0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert recorder.states[-1] == ReadyState.CLOSED
        assert stream.closed
        assert not client.is_running


class TestSubscribers:
    @pytest.mark.asyncio
    async def test_failing_subscriber_is_isolated(self, serve_body, recorder):
        http, _ = serve_body("data: one\n\ndata: two\n\n")
        client = _client(http)

        def explode(event):
            raise ValueError("subscriber bug")

        client.on_event(explode)
        recorder.attach(client)

        await client.stream()

        assert recorder.data == ["one", "two"]
        assert recorder.states[-1] == ReadyState.CLOSED
        assert len(recorder.errors) == 2
        assert all(isinstance(e, SubscriberError) for e in recorder.errors)
        assert isinstance(recorder.errors[0].error, ValueError)

    @pytest.mark.asyncio
    async def test_async_subscribers_are_awaited_in_order(self, serve_body):
        http, _ = serve_body("data: a\n\ndata: b\n\n")
        client = _client(http)
        seen = []

        async def slow(event):
            await asyncio.sleep(0.01)
            seen.append(("slow", event.data))

        client.on_event(slow)
        client.on_event(lambda event: seen.append(("fast", event.data)))

        await client.stream()

        assert seen == [("slow", "a"), ("fast", "a"), ("slow", "b"), ("fast", "b")]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, serve_body):
        http, _ = serve_body("data: a\n\n")
        client = _client(http)
        seen = []
        unsubscribe = client.on_event(seen.append)
        unsubscribe()

        await client.stream()

        assert seen == []


class TestPullAdapter:
    @pytest.mark.asyncio
    async def test_async_iteration(self, serve_body, recorder):
        http, _ = serve_body("data: 1\n\ndata: 2\n\n")
        client = _client(http)
        recorder.attach(client)

        received = [event.data async for event in client]

        assert received == ["1", "2"]
        # Pulled events go to the caller, not to the push subscribers.
        assert recorder.events == []
        assert recorder.states == [ReadyState.CONNECTING, ReadyState.OPEN, ReadyState.CLOSED]

    @pytest.mark.asyncio
    async def test_early_break_closes(self, serve, recorder):
        stream = ChunkStream([b"data: 1\n\n", b"data: 2\n\n"], hang=True)
        http, _ = serve(lambda request, attempt: sse_response(stream=stream))
        client = _client(http)
        recorder.attach(client)

        async with aclosing(client.iter_events()) as events:
            async for event in events:
                assert event.data == "1"
                break

        assert recorder.states[-1] == ReadyState.CLOSED
        assert stream.closed


class TestPreopenedResponse:
    @pytest.mark.asyncio
    async def test_reads_supplied_response(self, recorder):
        response = sse_response("id: 1\ndata: Event 1\n\nid: 2\ndata: Event 2\n\n")
        client = EventSourceClient.from_response(response)
        recorder.attach(client)

        await client.stream()

        assert recorder.data == ["Event 1", "Event 2"]
        assert recorder.states == [ReadyState.CONNECTING, ReadyState.OPEN, ReadyState.CLOSED]
        assert client.client is None
        assert client.url is None

    @pytest.mark.asyncio
    async def test_unreadable_body_fails_once(self, recorder):
        response = sse_response(stream=ChunkStream([b"data: x\n\n"]))
        async for _ in response.aiter_raw():
            pass
        client = EventSourceClient.from_response(response, ConnectionOptions(max_retries=5))
        recorder.attach(client)

        with pytest.raises(BodyReadError):
            await client.stream()

        assert client.connect_attempts == 0
        assert recorder.states[-1] == ReadyState.CLOSED
        assert ReadyState.OPEN not in recorder.states
        assert recorder.states == [ReadyState.CONNECTING, ReadyState.CLOSED]

    def test_url_and_response_are_exclusive(self):
        with pytest.raises(ValueError):
            EventSourceClient(TEST_URL, response=sse_response(""))
        with pytest.raises(ValueError):
            EventSourceClient()


class TestResources:
    @pytest.mark.asyncio
    async def test_borrowed_http_client_left_open(self, serve_body):
        http, _ = serve_body("data: a\n\n")
        async with _client(http) as client:
            await client.stream()
        assert not http.is_closed
        await http.aclose()

    @pytest.mark.asyncio
    async def test_owned_http_client_closed(self):
        async with EventSourceClient(TEST_URL) as client:
            assert client.client is not None
        assert client.client.is_closed


class TestDiagnostics:
    @pytest.mark.asyncio
    async def test_debug_logs_request_and_raw_data(self, serve_body, log_messages):
        http, _ = serve_body("data: traced\n\n")
        client = _client(http, debug=True, payload='{"q": 1}', headers={"Authorization": "Bearer t"})

        await client.stream()

        assert "Request method: POST" in log_messages
        assert f"Request URL: {TEST_URL}" in log_messages
        assert any(m.startswith("Headers: ") and "Authorization: Bearer t" in m for m in log_messages)
        assert 'Payload: {"q": 1}' in log_messages
        assert "Raw event data: traced" in log_messages
        assert "Streaming has ended." in log_messages

    @pytest.mark.asyncio
    async def test_no_diagnostics_without_debug(self, serve_body, log_messages):
        http, _ = serve_body("data: quiet\n\n")
        await _client(http).stream()
        assert not any(m.startswith("Request method") or m.startswith("Raw event data") for m in log_messages)

    @pytest.mark.asyncio
    async def test_injected_diagnostics_sink(self, serve_body):
        class Sink:
            def __init__(self):
                self.records = []

            def info(self, message):
                self.records.append(("info", message))

            def error(self, message):
                self.records.append(("error", message))

        sink = Sink()
        http, _ = serve_body("data: x\n\n")
        client = EventSourceClient(
            TEST_URL, ConnectionOptions(debug=True), http_client=http, diagnostics=sink
        )

        await client.stream()

        assert ("info", "Starting to stream events.") in sink.records
        assert ("info", "Raw event data: x") in sink.records
        assert ("info", "Event received: message") in sink.records
