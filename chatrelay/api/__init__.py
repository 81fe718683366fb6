"""HTTP/WebSocket transport for the chat relay."""
