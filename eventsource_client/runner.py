"""
CLI entrypoint for the event source client and its demo server.
"""
import asyncio
import sys
from typing import List, Optional

import httpx
import typer
from loguru import logger

from eventsource_client.client.sse_client import EventSourceClient
from eventsource_client.client.visualizer import Visualizer
from eventsource_client.shared.config import settings
from eventsource_client.shared.exceptions import EventSourceError
from eventsource_client.shared.models import ConnectionOptions, DecodedEvent, ReadyState

app = typer.Typer(help="Server-Sent Events client CLI")

DEFAULT_URL = f"http://127.0.0.1:{settings.PORT}/sse/stream"

def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())

def parse_headers(values: List[str]) -> dict:
    headers = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep:
            raise typer.BadParameter(f"Header must look like 'Name: value', got {value!r}")
        headers[name.strip()] = content.strip()
    return headers

def print_event(event: DecodedEvent):
    typer.echo(f"Received Event: {event.event_type}")
    typer.echo(f"Data: {event.data}")

def print_state(state: ReadyState):
    typer.echo(f"State Changed: {state.name}")

def cancel_after(duration: Optional[float]) -> asyncio.Event:
    cancel = asyncio.Event()
    if duration:
        asyncio.get_running_loop().call_later(duration, cancel.set)
    return cancel

@app.callback()
def main(log_level: str = typer.Option(settings.LOG_LEVEL, help="Log level for stderr output")):
    configure_logging(log_level)

@app.command()
def server():
    """Start the demo SSE server using Uvicorn."""
    import uvicorn
    typer.echo(f"Starting server on port {settings.PORT}...")
    uvicorn.run("eventsource_client.server.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())

@app.command()
def client(
    url: str = typer.Option(DEFAULT_URL, help="Event stream URL"),
    method: Optional[str] = typer.Option(None, help="HTTP method (default GET, or POST with a payload)"),
    payload: str = typer.Option("", help="JSON request body"),
    header: List[str] = typer.Option([], "--header", "-H", help="Extra header, 'Name: value'"),
    max_retries: int = typer.Option(settings.SSE_MAX_RETRIES, min=1, help="Connect attempts before giving up"),
    debug: bool = typer.Option(False, help="Log request and raw event diagnostics"),
    duration: Optional[float] = typer.Option(None, help="Stop after this many seconds"),
    dashboard: bool = typer.Option(True, "--dashboard/--plain", help="Rich dashboard or plain output"),
):
    """Stream events from URL and push them to the console."""
    options = ConnectionOptions(
        headers=parse_headers(header),
        payload=payload,
        method=method,
        debug=debug,
        max_retries=max_retries,
    )

    async def run():
        async with EventSourceClient(url, options) as c:
            cancel = cancel_after(duration)
            if dashboard:
                await Visualizer(c, title=url).run(cancel)
            else:
                c.set_callbacks(print_event, print_state)
                await c.stream(cancel)

    try:
        asyncio.run(run())
    except EventSourceError as e:
        typer.echo(f"Streaming failed: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass

@app.command()
def reuse(
    url: str = typer.Option(DEFAULT_URL, help="Event stream URL"),
    duration: Optional[float] = typer.Option(None, help="Stop after this many seconds"),
):
    """Open the response with HTTPX first, then hand its body to the client."""

    async def run():
        timeout = httpx.Timeout(settings.SSE_CONNECT_TIMEOUT_S, read=None)
        async with httpx.AsyncClient(timeout=timeout) as http:
            async with http.stream("GET", url, headers={"Accept": "text/event-stream"}) as response:
                response.raise_for_status()
                c = EventSourceClient.from_response(response)
                c.on_state_change(print_state)
                async for event in c.iter_events(cancel_after(duration)):
                    print_event(event)

    try:
        asyncio.run(run())
    except (EventSourceError, httpx.HTTPError) as e:
        typer.echo(f"Streaming failed: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass

if __name__ == "__main__":
    app()
