"""Runtime configuration for the chat relay, read from the environment."""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_PUBLIC_DIR = "public"
DEFAULT_SEND_TIMEOUT = 5.0


@dataclass(frozen=True)
class RelayConfig:
    """Listener and delivery settings.

    >>> RelayConfig().port
    8080
    >>> RelayConfig(port=0).validate()
    Traceback (most recent call last):
        ...
    ValueError: Port must be between 1 and 65535, got 0
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    public_dir: Path = Path(DEFAULT_PUBLIC_DIR)
    send_timeout: float = DEFAULT_SEND_TIMEOUT

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Build a config from ``CHATRELAY_*`` variables.

        Raises ValueError for unparseable or out-of-range values.
        """
        port = os.environ.get("CHATRELAY_PORT", str(DEFAULT_PORT))
        timeout = os.environ.get("CHATRELAY_SEND_TIMEOUT", str(DEFAULT_SEND_TIMEOUT))
        try:
            config = cls(
                host=os.environ.get("CHATRELAY_HOST", DEFAULT_HOST),
                port=int(port),
                public_dir=Path(os.environ.get("CHATRELAY_PUBLIC_DIR", DEFAULT_PUBLIC_DIR)),
                send_timeout=float(timeout),
            )
        except ValueError as e:
            raise ValueError(f"Invalid CHATRELAY_* setting: {e}") from e
        return config.validate()

    def override(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        public_dir: Optional[str] = None,
        send_timeout: Optional[float] = None,
    ) -> "RelayConfig":
        """Return a copy with the given non-None values replaced (CLI flags)."""
        changes = {}
        if host is not None:
            changes["host"] = host
        if port is not None:
            changes["port"] = port
        if public_dir is not None:
            changes["public_dir"] = Path(public_dir)
        if send_timeout is not None:
            changes["send_timeout"] = send_timeout
        return replace(self, **changes).validate()

    def validate(self) -> "RelayConfig":
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {self.port}")
        if self.send_timeout <= 0:
            raise ValueError(f"Send timeout must be positive, got {self.send_timeout}")
        return self
