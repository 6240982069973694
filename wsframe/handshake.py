"""Computation of the Sec-WebSocket-Accept handshake value."""

from __future__ import annotations

import base64
import hashlib

_GUID = b"258EAFA5-E914-47DA-95CA-C5AB0DC85B11"
_KEY_LENGTH = 24


def generate_accept(key) -> str:
    """Return the 28-character accept value for a 24-character client key."""
    if isinstance(key, str):
        key = key.encode("latin-1")
    key = bytes(key)
    if len(key) != _KEY_LENGTH:
        raise ValueError(f"WebSocket key must be {_KEY_LENGTH} bytes, got {len(key)}")
    digest = hashlib.sha1(key + _GUID).digest()
    return base64.b64encode(digest).decode("ascii")