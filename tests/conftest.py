"""Shared fixtures for chatrelay tests."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock
from starlette.websockets import WebSocketState

from chatrelay.api.websocket import Broadcaster
from chatrelay.chat.history import HistoryLog
from chatrelay.chat.registry import ConnectionRegistry
from chatrelay.chat.session import ChatSession


def make_mock_ws(connected: bool = True):
    """Mock WebSocket with async send_text and Starlette connection states."""
    ws = MagicMock()
    ws.send_text = AsyncMock()
    state = WebSocketState.CONNECTED if connected else WebSocketState.DISCONNECTED
    ws.client_state = state
    ws.application_state = state
    return ws


def sent_frames(ws) -> list[dict]:
    """Decode every frame sent to a mock WebSocket, oldest first."""
    return [json.loads(call.args[0]) for call in ws.send_text.call_args_list]


@pytest.fixture
def mock_ws():
    """Factory for connected mock WebSockets."""
    return make_mock_ws


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def history():
    return HistoryLog()


@pytest.fixture
def broadcaster(registry):
    return Broadcaster(registry, send_timeout=1.0)


@pytest.fixture
def make_session(registry, history, broadcaster):
    """Factory for ChatSessions sharing one registry, history and broadcaster."""
    def _create(ws=None):
        return ChatSession(ws or make_mock_ws(), registry, history, broadcaster)
    return _create
