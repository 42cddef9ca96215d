"""
MODULE OVERVIEW:
The line-oriented `text/event-stream` decoder.

WHAT IS HAPPENING HERE:
We consume the body one line at a time instead of buffering chunks and splitting on
"\\n\\n". Every `data:` line is stripped of its prefix and surrounding whitespace and
appended to a pending block. A blank line closes the block and yields one
`DecodedEvent` of type "message". Other SSE fields (`event:`, `id:`, `retry:`) and
comments are skipped.

A block still pending when the stream ends is NOT emitted: an event only exists once
its terminating blank line has arrived. The same goes for a block pending when the
cancellation event fires.
"""
import asyncio
from typing import AsyncIterable, AsyncIterator, List, Optional

from eventsource_client.shared.client_utils import CancelWatch
from eventsource_client.shared.models import DecodedEvent

DATA_PREFIX = "data:"


def _flush(buffer: List[str]) -> DecodedEvent:
    data = "\n".join(buffer).rstrip("\n")
    buffer.clear()
    return DecodedEvent(event_type="message", data=data)


async def decode_events(
    lines: AsyncIterable[str],
    cancel: Optional[asyncio.Event] = None,
) -> AsyncIterator[DecodedEvent]:
    """
    Lazily turns a stream of text lines into `DecodedEvent`s.

    Raises `StreamCancelled` when `cancel` is set before (or while) a line is read;
    the partially accumulated block is dropped.
    """
    buffer: List[str] = []
    iterator = aiter(lines)
    watch = CancelWatch(cancel)

    try:
        while True:
            watch.check()
            line = await watch.run(anext(iterator, None))
            if line is None:
                break

            if line.startswith(DATA_PREFIX):
                buffer.append(line[len(DATA_PREFIX):].strip())
            elif not line.strip() and buffer:
                yield _flush(buffer)
    finally:
        watch.close()
