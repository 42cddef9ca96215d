"""
MODULE OVERVIEW:
The demo SSE server, a FastAPI application.

WHAT IS HAPPENING HERE:
A small counterpart for trying the client by hand: `/sse/stream` emits numbered
events for a fixed duration and then ends the response.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventsource_client.server.routes import sse

app = FastAPI(
    title="EventSource Demo Server",
    description="Numbered Server-Sent Events for exercising the client",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sse.router, tags=["Streams"])

@app.get("/healthz", tags=["Ops"])
async def health_check():
    return {"status": "ok"}
