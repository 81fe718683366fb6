"""Chat domain: wire protocol, connection registry, history and sessions."""
