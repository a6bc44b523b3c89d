"""HTTP and WebSocket routes for the local UI."""
