"""Append-only in-memory chat history.

Volatile: the log lives for the process lifetime and
is never trimmed.

>>> log = HistoryLog()
>>> len(log)
0
"""

import threading

from chatrelay.chat.protocol import ChatMessage


class HistoryLog:
    """Ordered sequence of sent messages, safe to use from any thread."""

    def __init__(self):
        self._messages: list[ChatMessage] = []
        self._lock = threading.Lock()

    def append(self, message: ChatMessage) -> None:
        with self._lock:
            self._messages.append(message)

    def snapshot(self) -> list[ChatMessage]:
        """Copy of the full history in send order.

        >>> log = HistoryLog()
        >>> log.append(ChatMessage(username="a", color="red", content="hi"))
        >>> [m.content for m in log.snapshot()]
        ['hi']
        """
        with self._lock:
            return list(self._messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
