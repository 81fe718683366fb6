"""Registry of logged-in chat connections.

Maps each live transport handle to the identity it logged in with. The
registry only holds a reference to the connection for addressing; closing
it is the transport listener's job.

>>> registry = ConnectionRegistry()
>>> registry.count
0
"""

import asyncio
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from chatrelay.chat.protocol import NameConflictError

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    """Username and color tag of a logged-in session."""

    model_config = ConfigDict(frozen=True)

    username: str
    color: str


class ConnectionRegistry:
    """Ordered ``connection -> Identity`` mapping guarded by an asyncio lock.

    Insertion order is registration order. Usernames are pairwise distinct
    as long as every write goes through :meth:`claim`.
    """

    def __init__(self):
        self._sessions: dict[Any, Identity] = {}
        self._lock = asyncio.Lock()

    async def exists(self, username: str) -> bool:
        """True iff some active session holds *username*."""
        async with self._lock:
            return self._exists(username)

    async def add(self, connection: Any, username: str, color: str) -> Identity:
        """Register *connection* without a uniqueness check.

        Callers that need the name to be unique use :meth:`claim`, which
        runs the check and the add in one critical section.
        """
        async with self._lock:
            return self._add(connection, username, color)

    async def claim(self, connection: Any, username: str, color: str) -> Identity:
        """Atomically check that *username* is free and register it.

        Raises NameConflictError if another session already holds it.
        """
        async with self._lock:
            if self._exists(username):
                raise NameConflictError(username)
            return self._add(connection, username, color)

    async def remove(self, connection: Any) -> Optional[Identity]:
        """Remove *connection*; a no-op for unknown connections.

        >>> import asyncio
        >>> asyncio.run(ConnectionRegistry().remove(object())) is None
        True
        """
        async with self._lock:
            identity = self._sessions.pop(connection, None)
        if identity is not None:
            logger.debug("Removed %s (total=%d)", identity.username, len(self._sessions))
        return identity

    async def connections(self) -> list[Any]:
        """Snapshot of registered transport handles, for broadcasting."""
        async with self._lock:
            return list(self._sessions)

    async def list(self) -> list[Identity]:
        """Snapshot of active identities in registration order."""
        async with self._lock:
            return list(self._sessions.values())

    def get(self, connection: Any) -> Optional[Identity]:
        return self._sessions.get(connection)

    @property
    def count(self) -> int:
        """Number of active identities.

        >>> ConnectionRegistry().count
        0
        """
        return len(self._sessions)

    # --- unlocked helpers, caller holds self._lock ---

    def _exists(self, username: str) -> bool:
        return any(i.username == username for i in self._sessions.values())

    def _add(self, connection: Any, username: str, color: str) -> Identity:
        identity = Identity(username=username, color=color)
        # Re-adding a known connection keeps its slot, so it never has two entries
        self._sessions[connection] = identity
        logger.debug("Added %s (total=%d)", username, len(self._sessions))
        return identity
