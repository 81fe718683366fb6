"""FastAPI application for the chat relay.

Accepts WebSocket connections, hands each one to a ChatSession and serves
the browser client's static files from the configured public directory.
Serve with ``chatrelay serve`` or ``uvicorn --factory chatrelay.api.main:create_app``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import anyio
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from chatrelay import __version__
from chatrelay.api.websocket import Broadcaster
from chatrelay.chat.history import HistoryLog
from chatrelay.chat.registry import ConnectionRegistry
from chatrelay.chat.session import ChatSession
from chatrelay.config import RelayConfig

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    users: int
    messages: int


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    config: RelayConfig = app.state.config
    logger.info("Chat relay starting (public_dir=%s)", config.public_dir)

    yield

    logger.info(
        "Chat relay stopping (online=%d, messages=%d)",
        app.state.registry.count,
        len(app.state.history),
    )


async def websocket_endpoint(ws: WebSocket):
    """Chat WebSocket: one ChatSession per connection.

    The session is ANONYMOUS and unregistered until it logs in.  Whatever
    ends the loop, the session is removed and presence is re-broadcast.
    """
    await ws.accept()
    app = ws.app
    session = ChatSession(ws, app.state.registry, app.state.history, app.state.broadcaster)
    logger.debug("WebSocket client connected")

    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue
            await session.handle_frame(raw)
    except WebSocketDisconnect:
        pass
    finally:
        # Presence broadcast must finish even when the endpoint task is cancelled
        with anyio.CancelScope(shield=True):
            await session.disconnect()
        logger.debug("WebSocket client disconnected (online=%d)", app.state.registry.count)


async def health(request: Request) -> HealthResponse:
    state = request.app.state
    return HealthResponse(
        status="ok",
        version=__version__,
        users=state.registry.count,
        messages=len(state.history),
    )


# --- Exception handlers ---


async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": {"message": str(exc), "code": "VALIDATION_ERROR"}},
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {"message": "An internal error occurred", "code": "INTERNAL_ERROR"}
        },
    )


def create_app(config: Optional[RelayConfig] = None) -> FastAPI:
    """Build the relay application with fresh, empty shared state."""
    config = config or RelayConfig.from_env()

    app = FastAPI(
        title="chatrelay",
        description="Realtime chat relay: presence, history and message fan-out over WebSockets.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.registry = ConnectionRegistry()
    app.state.history = HistoryLog()
    app.state.broadcaster = Broadcaster(app.state.registry, send_timeout=config.send_timeout)

    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_api_websocket_route("/", websocket_endpoint)
    app.add_api_websocket_route("/ws", websocket_endpoint)
    app.add_api_route("/api/health", health, methods=["GET"], response_model=HealthResponse)

    # Mounted last so the WebSocket and API routes match first
    if config.public_dir.is_dir():
        app.mount("/", StaticFiles(directory=config.public_dir, html=True), name="public")
    else:
        logger.warning("Public directory %s not found, static files disabled", config.public_dir)

    return app

