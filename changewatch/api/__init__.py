"""HTTP/WebSocket surface for changewatch."""
