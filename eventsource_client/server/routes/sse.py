from typing import Any

from fastapi import APIRouter, Body, Request
from loguru import logger
from sse_starlette.sse import EventSourceResponse

from eventsource_client.server.dummy_data import counter_events
from eventsource_client.shared.config import settings

router = APIRouter()

def _stream(request: Request, echo: Any = None) -> EventSourceResponse:
    logger.info(f"protocol=sse method={request.method} client={request.client} event=connect")
    return EventSourceResponse(
        counter_events(settings.DEMO_EVENT_INTERVAL_S, settings.DEMO_STREAM_DURATION_S, echo=echo)
    )

@router.get("/sse/stream")
async def sse_stream(request: Request):
    return _stream(request)

@router.post("/sse/stream")
async def sse_stream_with_payload(request: Request, payload: Any = Body(None)):
    """Same stream, but the first event echoes the JSON body back."""
    return _stream(request, echo=payload)
