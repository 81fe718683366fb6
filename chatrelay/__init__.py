"""
chatrelay - Realtime chat relay over WebSockets.

Clients register a display name, see who is online, receive the message
history on request and exchange messages broadcast to everyone connected.
Run the server with:
  chatrelay serve --port 8080
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
