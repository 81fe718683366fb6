"""Broadcast engine for the chat relay.

Delivers typed events to every logged-in WebSocket, or to a single one for
direct replies.  Each recipient is isolated: a send that fails or exceeds
the per-send timeout is logged and skipped, never propagated.

>>> from chatrelay.chat.registry import ConnectionRegistry
>>> Broadcaster(ConnectionRegistry()).send_timeout
5.0
"""

import asyncio
import logging
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from chatrelay.chat.protocol import DeliveryError, build_frame
from chatrelay.chat.registry import ConnectionRegistry
from chatrelay.config import DEFAULT_SEND_TIMEOUT

logger = logging.getLogger(__name__)


def is_writable(ws: WebSocket) -> bool:
    """True while both ends of the WebSocket are still connected."""
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class Broadcaster:
    """Fan-out over the connections held by a :class:`ConnectionRegistry`."""

    def __init__(self, registry: ConnectionRegistry, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        self.registry = registry
        self.send_timeout = send_timeout

    async def broadcast(self, msg_type: str, data: Any = None) -> int:
        """Send one event to every writable registered connection.

        The frame is encoded once and the same text goes to each recipient.
        Unwritable connections are skipped but stay registered; removal
        only happens through the disconnect path.  Returns the number of
        successful deliveries.
        """
        message = build_frame(msg_type, data)
        targets = [ws for ws in await self.registry.connections() if is_writable(ws)]
        if not targets:
            return 0

        results = await asyncio.gather(*(self._deliver(ws, message) for ws in targets))
        delivered = sum(results)
        logger.debug("Broadcast %s to %d/%d client(s)", msg_type, delivered, len(targets))
        return delivered

    async def unicast(self, ws: WebSocket, msg_type: str, data: Any = None) -> bool:
        """Send one event to a single connection, registered or not."""
        if not is_writable(ws):
            logger.debug("Skipped %s reply to closed client", msg_type)
            return False
        return await self._deliver(ws, build_frame(msg_type, data))

    async def _deliver(self, ws: WebSocket, message: str) -> bool:
        try:
            await self._send(ws, message)
        except DeliveryError as exc:
            logger.warning("%s", exc)
            return False
        return True

    async def _send(self, ws: WebSocket, message: str) -> None:
        try:
            await asyncio.wait_for(ws.send_text(message), timeout=self.send_timeout)
        except asyncio.TimeoutError as exc:
            raise DeliveryError(
                f"Send to {_peer(ws)} timed out after {self.send_timeout}s"
            ) from exc
        except Exception as exc:
            raise DeliveryError(f"Send to {_peer(ws)} failed: {exc}") from exc


def _peer(ws: WebSocket) -> str:
    client = getattr(ws, "client", None)
    if client is None:
        return "client"
    return f"{client.host}:{client.port}"
