"""Per-context settings and per-connection state of WebSocket connections."""

from __future__ import annotations

import zlib
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_DEFLATE_TAIL = b"\x00\x00\xff\xff"
_USHORT = 0x10000


class CompressionStatus(Enum):
    """Whether permessage-deflate is in use and whether the current frame is compressed."""

    DISABLED = 0
    ENABLED = 1
    COMPRESSED_FRAME = 2


@dataclass
class ContextSettings:
    """Callbacks and limits shared by every connection of one WebSocket context."""

    open_handler: Callable[..., Any] | None = None
    message_handler: Callable[..., Any] | None = None
    dropped_handler: Callable[..., Any] | None = None
    drain_handler: Callable[..., Any] | None = None
    subscription_handler: Callable[..., Any] | None = None
    close_handler: Callable[..., Any] | None = None
    ping_handler: Callable[..., Any] | None = None
    pong_handler: Callable[..., Any] | None = None

    max_payload_length: int = 0
    compression: int = 0
    max_backpressure: int = 0
    close_on_backpressure_limit: bool = False
    reset_idle_timeout_on_send: bool = False
    send_pings_automatically: bool = False
    max_lifetime: int = 0

    idle_timeout_components: tuple[int, int] = field(default=(0, 0))

    def calculate_idle_timeout_components(self, idle_timeout: int) -> tuple[int, int]:
        """Split ``idle_timeout`` into the idle part and a 4, 8 or 16 second ping margin."""
        margin = 4
        while idle_timeout - margin * 2 >= margin * 2 and margin < 16:
            margin <<= 1
        idle = idle_timeout - (margin if self.send_pings_automatically else 0)
        self.idle_timeout_components = (idle % _USHORT, margin)
        return self.idle_timeout_components


class ConnectionData:
    """Mutable state held by one WebSocket connection."""

    def __init__(self, per_message_deflate: bool = False, dedicated_inflater: bool = False) -> None:
        self.fragment_buffer = bytearray()
        self.control_tip_length = 0
        self.is_shutting_down = False
        self.has_timed_out = False
        self.compression_status = (
            CompressionStatus.ENABLED if per_message_deflate else CompressionStatus.DISABLED
        )
        self.inflation_stream = (
            zlib.decompressobj(wbits=-15) if per_message_deflate and dedicated_inflater else None
        )
        self.subscriber: Any = None

    def inflate(self, payload, max_payload_length: int) -> bytes | None:
        """Decompress a permessage-deflate payload; None if too big or malformed."""
        stream = self.inflation_stream
        if stream is None:
            stream = zlib.decompressobj(wbits=-15)
        try:
            result = stream.decompress(bytes(payload) + _DEFLATE_TAIL, max_payload_length + 1)
        except zlib.error:
            return None
        if len(result) > max_payload_length or stream.unconsumed_tail:
            return None
        return result