"""Per-connection protocol handler for the chat relay.

A ChatSession starts ANONYMOUS and becomes LOGGED_IN after a successful
``login``; it stays there until the transport closes.  ``register`` only
validates a name and never writes to the registry, so a name that passed
``register`` can still lose at ``login``: login always re-checks.

Each inbound frame of one connection is handled to completion before the
next one is read.
"""

import enum
import logging
from typing import Any

from chatrelay.chat import protocol
from chatrelay.chat.history import HistoryLog
from chatrelay.chat.protocol import (
    ChatMessage,
    MessageIn,
    NameConflictError,
    Profile,
    ProtocolParseError,
    parse_frame,
    parse_payload,
)
from chatrelay.chat.registry import ConnectionRegistry, Identity

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    ANONYMOUS = "anonymous"
    LOGGED_IN = "logged_in"


class ChatSession:
    """Dispatches inbound frames of one connection against shared state."""

    def __init__(
        self,
        connection: Any,
        registry: ConnectionRegistry,
        history: HistoryLog,
        broadcaster,
    ):
        self.connection = connection
        self.registry = registry
        self.history = history
        self.broadcaster = broadcaster
        self.state = SessionState.ANONYMOUS
        self.identity: Identity | None = None

        self._handlers = {
            protocol.REGISTER: self._on_register,
            protocol.LOGIN: self._on_login,
            protocol.USERS: self._on_users,
            protocol.HISTORY: self._on_history,
            protocol.MESSAGE: self._on_message,
        }

    async def handle_frame(self, raw: str | bytes) -> None:
        """Process one raw inbound frame.

        Malformed frames and invalid payloads are logged and dropped with no
        reply; unknown event types are ignored.
        """
        try:
            msg = parse_frame(raw)
            handler = self._handlers.get(msg["type"])
            if handler is None:
                logger.debug("Ignoring unknown event type %r", msg["type"])
                return
            await handler(msg.get("data"))
        except ProtocolParseError as exc:
            logger.warning("Dropped frame: %s", exc)

    async def disconnect(self) -> None:
        """Forget this connection and tell everyone left who is online."""
        removed = await self.registry.remove(self.connection)
        if removed is not None:
            logger.info("%s left (online=%d)", removed.username, self.registry.count)
        self.identity = None
        await self.broadcaster.broadcast(protocol.USERS, await self._users_payload())

    # --- event handlers ---

    async def _on_register(self, data: Any) -> None:
        profile = parse_payload(Profile, data)
        if await self.registry.exists(profile.username):
            await self._reply_name_taken(profile.username)
            return
        await self.broadcaster.unicast(self.connection, protocol.REGISTER, profile.model_dump())

    async def _on_login(self, data: Any) -> None:
        profile = parse_payload(Profile, data)
        if self.state is SessionState.LOGGED_IN:
            logger.debug(
                "Ignoring login as %r, session already logged in as %r",
                profile.username,
                self.identity.username,
            )
            return

        try:
            identity = await self.registry.claim(self.connection, profile.username, profile.color)
        except NameConflictError as exc:
            await self._reply_name_taken(exc.username)
            return

        self.identity = identity
        self.state = SessionState.LOGGED_IN
        logger.info("%s logged in (online=%d)", identity.username, self.registry.count)
        await self.broadcaster.broadcast(protocol.ADD_USER, identity.model_dump())

    async def _on_users(self, data: Any) -> None:
        await self.broadcaster.unicast(self.connection, protocol.USERS, await self._users_payload())

    async def _on_history(self, data: Any) -> None:
        payload = [m.model_dump(mode="json") for m in self.history.snapshot()]
        await self.broadcaster.unicast(self.connection, protocol.HISTORY, payload)

    async def _on_message(self, data: Any) -> None:
        message = ChatMessage.from_inbound(parse_payload(MessageIn, data))
        self.history.append(message)
        await self.broadcaster.broadcast(protocol.MESSAGE, message.model_dump(mode="json"))

    # --- helpers ---

    async def _reply_name_taken(self, username: str) -> None:
        logger.info("Rejected taken username %r", username)
        await self.broadcaster.unicast(self.connection, protocol.ERROR, protocol.NAME_TAKEN_MESSAGE)

    async def _users_payload(self) -> list[dict]:
        return [identity.model_dump() for identity in await self.registry.list()]
