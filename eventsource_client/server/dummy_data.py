"""
MODULE OVERVIEW:
Event generators for the demo SSE server.

WHAT IS HAPPENING HERE:
`counter_events()` produces one numbered event per interval until the configured
duration elapses, then returns so the response ends and the client reaches CLOSED.
Items are dicts in the shape `sse_starlette` serialises into `id:`/`data:` lines.
"""
import asyncio
import json
from typing import Any, AsyncGenerator, Optional

from loguru import logger

async def counter_events(
    interval_s: float,
    duration_s: float,
    echo: Optional[Any] = None,
) -> AsyncGenerator[dict, None]:
    loop = asyncio.get_running_loop()
    start_time = loop.time()
    event_id = 1

    if echo is not None:
        yield {"id": "0", "data": json.dumps({"echo": echo})}

    while loop.time() - start_time < duration_s:
        yield {"id": str(event_id), "data": f"Event {event_id}"}
        event_id += 1
        await asyncio.sleep(interval_s)

    logger.debug(f"generator=counter events={event_id - 1} event=finished")
