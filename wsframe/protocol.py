"""WebSocket frame formatting, validation and incremental parsing."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol

ERR_TOO_BIG_MESSAGE = "Received too big message"
ERR_WEBSOCKET_TIMEOUT = "WebSocket timed out from inactivity"
ERR_INVALID_TEXT = "Received invalid UTF-8"
ERR_TOO_BIG_MESSAGE_INFLATION = "Received too big message, or other inflation error"
ERR_INVALID_CLOSE_PAYLOAD = "Received invalid close payload"

SND_CONTINUATION = 1
SND_NO_FIN = 2
SND_COMPRESSED = 64

_UINT16_MAX = 0xFFFF


class OpCode(IntEnum):
    """Frame opcodes defined by the WebSocket protocol."""

    CONTINUATION = 0
    TEXT = 1
    BINARY = 2
    CLOSE = 8
    PING = 9
    PONG = 10


@dataclass(frozen=True)
class CloseFrame:
    """Status code and message carried by a close frame."""

    code: int
    message: bytes = b""


def is_valid_utf8(data) -> bool:
    """Return True if ``data`` is well-formed UTF-8 (no overlongs or surrogates)."""
    try:
        bytes(data).decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def parse_close_payload(payload) -> CloseFrame:
    """Decode a close frame payload; abnormal payloads report code 1006."""
    payload = bytes(payload)
    if len(payload) < 2:
        return CloseFrame(1005)
    code = int.from_bytes(payload[:2], "big")
    message = payload[2:]
    if (
        code < 1000
        or code > 4999
        or 1011 < code < 4000
        or 1004 <= code <= 1006
        or not is_valid_utf8(message)
    ):
        return CloseFrame(1006)
    return CloseFrame(code, message)


def format_close_payload(code: int, message=b"") -> bytes:
    """Encode a close payload; codes 0, 1005 and 1006 produce an empty payload."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    if code and code not in (1005, 1006):
        return code.to_bytes(2, "big") + bytes(message)
    return b""


def message_frame_size(message_size: int) -> int:
    """Size of an unmasked frame carrying ``message_size`` payload bytes."""
    if message_size < 126:
        return 2 + message_size
    if message_size <= _UINT16_MAX:
        return 4 + message_size
    return 10 + message_size


def _unmask(data: bytes, mask: bytes) -> bytes:
    size = len(data)
    if not size:
        return b""
    key = (bytes(mask) * (size // 4 + 1))[:size]
    value = int.from_bytes(data, "big") ^ int.from_bytes(key, "big")
    return value.to_bytes(size, "big")


def _rotate(mask: bytes, consumed: int) -> bytes:
    shift = consumed % 4
    return mask[shift:] + mask[:shift]


def format_message(
    payload,
    op_code,
    is_server: bool,
    compressed: bool = False,
    fin: bool = True,
    reported_length: int | None = None,
) -> bytes:
    """Build a complete frame; frames sent by a client are masked randomly."""
    payload = bytes(payload)
    if reported_length is None:
        reported_length = len(payload)
    op = int(op_code)
    first = (0x80 if fin else 0) | (SND_COMPRESSED if compressed and op else 0) | op

    if reported_length < 126:
        header = bytearray((first, reported_length))
    elif reported_length <= _UINT16_MAX:
        header = bytearray((first, 126)) + reported_length.to_bytes(2, "big")
    else:
        header = bytearray((first, 127)) + reported_length.to_bytes(8, "big")

    if is_server:
        return bytes(header) + payload

    header[1] |= 0x80
    mask = os.urandom(4)
    return bytes(header) + mask + _unmask(payload, mask)


class FrameHandler(Protocol):
    """Receiver of parser events; methods returning True signal a broken connection."""

    def set_compressed(self) -> bool:
        """Mark the current frame compressed; return False if compression is not negotiated."""

    def force_close(self, reason: str) -> None:
        """Close the connection immediately with ``reason``."""

    def handle_fragment(self, data: bytes, remaining_bytes: int, op_code: OpCode, fin: bool) -> bool:
        """Accept a piece of payload; return True if parsing must stop."""

    def refuse_payload_length(self, length: int) -> bool:
        """Return True if a frame of ``length`` payload bytes must be refused."""


class FrameParser:
    """Incremental frame parser that feeds payload fragments to a handler."""

    def __init__(self, handler: FrameHandler, is_server: bool = True) -> None:
        self.handler = handler
        self.is_server = is_server
        mask_size = 4 if is_server else 0
        self._short_header = 2 + mask_size
        self._medium_header = 4 + mask_size
        self._long_header = 10 + mask_size
        self._wants_head = True
        self._spill = b""
        self._op_stack: list[OpCode] = []
        self._last_fin = True
        self._remaining = 0
        self._mask = bytes(4)

    def consume(self, data) -> None:
        """Parse as much of ``data`` as possible, keeping partial headers for later."""
        buf = self._spill + bytes(data)
        self._spill = b""
        pos = 0

        if not self._wants_head:
            next_pos = self._consume_continuation(buf, pos)
            if next_pos is None:
                return
            pos = next_pos

        while len(buf) - pos >= self._short_header:
            available = len(buf) - pos
            first, second = buf[pos], buf[pos + 1]
            op = first & 0x0F
            fin = bool(first & 0x80)
            length_code = second & 0x7F

            if (
                (first & 0x40 and not self.handler.set_compressed())
                or first & 0x30
                or 2 < op < 8
                or op > 10
                or (op > 2 and (not fin or length_code > 125))
            ):
                self.handler.force_close("")
                return

            if length_code < 126:
                header = self._short_header
                length = length_code
            elif length_code == 126:
                if available < self._medium_header:
                    break
                header = self._medium_header
                length = int.from_bytes(buf[pos + 2:pos + 4], "big")
            else:
                if available < self._long_header:
                    break
                header = self._long_header
                length = int.from_bytes(buf[pos + 2:pos + 10], "big")

            next_pos = self._consume_message(buf, pos, header, length)
            if next_pos is None:
                return
            pos = next_pos

        if pos < len(buf):
            self._spill = buf[pos:]

    def _consume_message(self, buf: bytes, pos: int, header: int, length: int) -> int | None:
        first = buf[pos]
        op = first & 0x0F
        fin = bool(first & 0x80)

        if op:
            if len(self._op_stack) == 2 or (not self._last_fin and op < 2):
                self.handler.force_close("")
                return None
            self._op_stack.append(OpCode(op))
        elif not self._op_stack:
            self.handler.force_close("")
            return None
        self._last_fin = fin

        if self.handler.refuse_payload_length(length):
            self.handler.force_close(ERR_TOO_BIG_MESSAGE)
            return None

        start = pos + header
        current = self._op_stack[-1]

        if length + header <= len(buf) - pos:
            payload = buf[start:start + length]
            if self.is_server:
                payload = _unmask(payload, buf[start - 4:start])
            if self.handler.handle_fragment(payload, 0, current, fin):
                return None
            if fin:
                self._op_stack.pop()
            return start + length

        self._wants_head = False
        payload = buf[start:]
        self._remaining = length - len(payload)
        if self.is_server:
            mask = buf[start - 4:start]
            payload = _unmask(payload, mask)
            self._mask = _rotate(mask, len(payload))
        self.handler.handle_fragment(payload, self._remaining, current, fin)
        return None

    def _consume_continuation(self, buf: bytes, pos: int) -> int | None:
        available = len(buf) - pos
        current = self._op_stack[-1]

        if self._remaining <= available:
            chunk = buf[pos:pos + self._remaining]
            if self.is_server:
                chunk = _unmask(chunk, self._mask)
            if self.handler.handle_fragment(chunk, 0, current, self._last_fin):
                return None
            if self._last_fin:
                self._op_stack.pop()
            self._remaining = 0
            self._wants_head = True
            return pos + len(chunk)

        chunk = buf[pos:]
        if self.is_server:
            chunk = _unmask(chunk, self._mask)
            self._mask = _rotate(self._mask, available)
        self._remaining -= available
        self.handler.handle_fragment(chunk, self._remaining, current, self._last_fin)
        return None