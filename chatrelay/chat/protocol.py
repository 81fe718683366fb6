"""JSON envelope protocol spoken between chat clients and the relay.

Pure functions and payload models, no I/O, no state. Every frame is a
compact JSON object ``{"type": ..., "data": ...}``.

>>> build_frame("users", [])
'{"type":"users","data":[]}'
>>> parse_frame('{"type":"history"}')
{'type': 'history'}
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

# Client -> server
REGISTER = "register"
LOGIN = "login"
USERS = "users"
HISTORY = "history"
MESSAGE = "message"

# Server -> client (in addition to register/users/history/message)
ERROR = "error"
ADD_USER = "add_user"

INBOUND_TYPES = frozenset({REGISTER, LOGIN, USERS, HISTORY, MESSAGE})

NAME_TAKEN_MESSAGE = "Username is already taken. please choose another one!"


class RelayError(Exception):
    """Base class for chat relay errors."""


class ProtocolParseError(RelayError):
    """Inbound frame is not a valid envelope or carries an invalid payload."""


class NameConflictError(RelayError):
    """Username is held by another active session."""

    def __init__(self, username: str):
        super().__init__(NAME_TAKEN_MESSAGE)
        self.username = username


class DeliveryError(RelayError):
    """A send to one recipient failed or timed out."""


# --- payload models ---


class Profile(BaseModel):
    """Display identity submitted with ``register`` and ``login``.

    Echoed back as submitted: no trimming, no length limits.

    >>> Profile(username="alice", color="red", extra=1).model_dump()
    {'username': 'alice', 'color': 'red'}
    """

    model_config = ConfigDict(extra="ignore")

    username: str
    color: str


class MessageIn(BaseModel):
    """Body of an inbound ``message`` event. Client-side ``time`` is ignored."""

    model_config = ConfigDict(extra="ignore")

    username: str
    color: str
    content: str


class ChatMessage(BaseModel):
    """A sent chat message. Immutable once created.

    >>> msg = ChatMessage(username="a", color="red", content="hi",
    ...                   time=datetime(2024, 1, 1, tzinfo=timezone.utc))
    >>> msg.model_dump(mode="json")["time"]
    '2024-01-01T00:00:00Z'
    """

    model_config = ConfigDict(frozen=True)

    username: str
    color: str
    content: str
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_inbound(cls, payload: MessageIn) -> "ChatMessage":
        """Stamp an inbound message with the server clock."""
        return cls(
            username=payload.username,
            color=payload.color,
            content=payload.content,
        )


# --- framing ---


def parse_frame(raw: str | bytes) -> dict:
    """Decode one inbound frame into its envelope dict.

    Raises ProtocolParseError for non-JSON text, non-object JSON, or a
    missing/non-string ``type``.

    >>> parse_frame('{"type":"login","data":{"username":"a"}}')["data"]
    {'username': 'a'}
    >>> parse_frame('nope')
    Traceback (most recent call last):
        ...
    chatrelay.chat.protocol.ProtocolParseError: Malformed frame: nope
    """
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError, RecursionError) as exc:
        text = raw if isinstance(raw, str) else repr(raw)
        raise ProtocolParseError(f"Malformed frame: {text[:100]}") from exc

    if not isinstance(msg, dict):
        raise ProtocolParseError("Frame is not a JSON object")
    if not isinstance(msg.get("type"), str):
        raise ProtocolParseError("Frame has no string 'type'")
    return msg


def build_frame(msg_type: str, data: Any = None) -> str:
    """Encode an outbound envelope as compact JSON.

    >>> build_frame("error", NAME_TAKEN_MESSAGE)[:24]
    '{"type":"error","data":"'
    """
    return json.dumps({"type": msg_type, "data": data}, separators=(",", ":"))


def parse_payload(model: type[BaseModel], data: Any) -> BaseModel:
    """Validate an envelope's ``data`` against a payload model.

    >>> parse_payload(Profile, {"username": "bob", "color": "blue"}).color
    'blue'
    """
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ProtocolParseError(
            f"Invalid {model.__name__} payload: {exc.error_count()} error(s)"
        ) from exc
