"""
MODULE OVERVIEW:
The Rich terminal dashboard for a streaming client.

WHAT IS HAPPENING HERE:
The dashboard subscribes to the client's event and state buses, runs `stream()` in a
background task and redraws the layout a few times per second until the task ends.
"""
import asyncio
from collections import deque
from datetime import datetime
from typing import Optional

from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from eventsource_client.client.base_client import BaseConnectionClient
from eventsource_client.shared.models import DecodedEvent, ReadyState

STATE_COLORS = {
    ReadyState.INITIALIZING: "white",
    ReadyState.CONNECTING: "yellow",
    ReadyState.OPEN: "green",
    ReadyState.CLOSED: "red",
}

class Visualizer:
    def __init__(self, client: BaseConnectionClient, title: str = "Server-Sent Events"):
        self.client = client
        self.title = title
        self.recent_events = deque(maxlen=10)
        self.timeline = deque(maxlen=5)
        self.last_error: Optional[str] = None

    def on_state_change(self, state: ReadyState):
        ts = datetime.now().strftime("%H:%M:%S")
        self.timeline.appendleft(f"[{ts}] State: {state.name}")

    def on_event(self, event: DecodedEvent):
        ts = datetime.now().strftime("%H:%M:%S")
        data = event.data[:60] + "..." if len(event.data) > 60 else event.data
        self.recent_events.appendleft((ts, event.event_type, data))

    def on_error(self, error: Exception):
        self.last_error = str(error)

    def generate_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main")
        )
        layout["main"].split_row(
            Layout(name="left", ratio=2),
            Layout(name="right", ratio=1)
        )
        layout["right"].split_column(
            Layout(name="stats"),
            Layout(name="timeline")
        )

        state = self.client.ready_state
        color = STATE_COLORS[state]
        layout["header"].update(Panel(f"[{color} bold]{self.title} | State: {state.name}[/]", style=color))

        table = Table(title="Live Event Feed", expand=True)
        table.add_column("Time", justify="left", style="cyan", no_wrap=True)
        table.add_column("Type", style="magenta")
        table.add_column("Data", style="green")
        for e in self.recent_events:
            table.add_row(*e)
        layout["left"].update(Panel(table, title="Feed"))

        stats_text = (
            f"Events Received: {self.client.events_received}\n"
            f"Connect Attempts: {self.client.connect_attempts}\n"
            f"Retries: {self.client.retry_count}"
        )
        if self.last_error:
            stats_text += f"\n[red]Error: {self.last_error}[/]"
        layout["stats"].update(Panel(stats_text, title="Connection Stats"))

        layout["timeline"].update(Panel("\n".join(self.timeline), title="Timeline"))
        return layout

    async def run(self, cancel: Optional[asyncio.Event] = None):
        self.client.set_callbacks(self.on_event, self.on_state_change, self.on_error)
        client_task = asyncio.create_task(self.client.stream(cancel))

        with Live(self.generate_layout(), refresh_per_second=4) as live:
            while not client_task.done():
                live.update(self.generate_layout())
                await asyncio.sleep(0.25)
            live.update(self.generate_layout())

        # Surfaces a connect failure to the caller.
        await client_task
