"""WebSocket framing, handshake, connection event handling and an example build command."""

__version__ = "0.1.0"
__all__ = ["protocol", "handshake", "settings", "context", "buildtool"]