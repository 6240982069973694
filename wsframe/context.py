"""Event handling for one WebSocket connection on top of a byte transport."""

from __future__ import annotations

from collections.abc import Callable

from .protocol import (
    ERR_INVALID_TEXT,
    ERR_TOO_BIG_MESSAGE,
    ERR_TOO_BIG_MESSAGE_INFLATION,
    ERR_WEBSOCKET_TIMEOUT,
    FrameParser,
    OpCode,
    format_close_payload,
    format_message,
    is_valid_utf8,
    parse_close_payload,
)
from .settings import CompressionStatus, ConnectionData, ContextSettings

_AUTOMATIC_PING = b"\x89\x00"


def _as_bytes(value) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class Transport:
    """In-memory byte stream with corking, backpressure, timeouts and close events.

    Subclasses override :meth:`transmit` to hand bytes to a real channel.
    """

    def __init__(self) -> None:
        self.sent = bytearray()
        self.backpressure = bytearray()
        self.corked = False
        self._cork_buffer = bytearray()
        self.closed = False
        self.close_code: int | None = None
        self.close_reason = b""
        self.shut_down = False
        self.idle_timeout: int | None = None
        self.close_listener: Callable[[int, bytes], None] | None = None

    def transmit(self, data: bytes) -> int:
        """Send ``data`` and return how many bytes were accepted."""
        self.sent += data
        return len(data)

    @property
    def buffered_amount(self) -> int:
        """Bytes waiting to be sent because the channel did not accept them."""
        return len(self.backpressure)

    def write(self, data=b"") -> None:
        """Queue ``data`` while corked, otherwise send it after any backpressure."""
        if self.closed:
            return
        data = bytes(data)
        if self.corked:
            self._cork_buffer += data
            return
        pending = bytes(self.backpressure) + data
        self.backpressure.clear()
        if pending:
            accepted = self.transmit(pending)
            self.backpressure += pending[accepted:]

    def cork(self) -> None:
        """Hold writes back until :meth:`uncork`."""
        self.corked = True

    def uncork(self) -> None:
        """Release and send everything written while corked."""
        self.corked = False
        held = bytes(self._cork_buffer)
        self._cork_buffer.clear()
        if held:
            self.write(held)

    def set_timeout(self, seconds: int) -> None:
        """Arm the idle timeout."""
        self.idle_timeout = seconds

    def shutdown(self) -> None:
        """Half-close the sending side."""
        if not self.closed:
            self.shut_down = True

    def close(self, code: int = 0, reason=b"") -> None:
        """Close the stream once and notify the close listener."""
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self.close_reason = _as_bytes(reason)
        if self.close_listener is not None:
            self.close_listener(code, self.close_reason)


class WebSocketConnection:
    """One WebSocket connection: parses incoming frames and dispatches events."""

    def __init__(
        self,
        settings: ContextSettings,
        transport: Transport,
        per_message_deflate: bool = False,
        is_server: bool = True,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.is_server = is_server
        self.data = ConnectionData(per_message_deflate)
        self.parser = FrameParser(self, is_server)
        transport.close_listener = self.on_close

    def _broken(self) -> bool:
        return self.transport.closed or self.data.is_shutting_down

    def set_compressed(self) -> bool:
        """Mark the current frame compressed if compression was negotiated."""
        if self.data.compression_status is CompressionStatus.ENABLED:
            self.data.compression_status = CompressionStatus.COMPRESSED_FRAME
            return True
        return False

    def force_close(self, reason="") -> None:
        """Close the transport at once, with ``reason`` as close reason."""
        encoded = _as_bytes(reason)
        self.transport.close(len(encoded), encoded)

    def refuse_payload_length(self, length: int) -> bool:
        """True if ``length`` exceeds the configured maximum payload length."""
        return self.settings.max_payload_length < length

    def _inflate_if_compressed(self, payload: bytes) -> bytes | None:
        if self.data.compression_status is not CompressionStatus.COMPRESSED_FRAME:
            return payload
        self.data.compression_status = CompressionStatus.ENABLED
        return self.data.inflate(payload, self.settings.max_payload_length)

    def _emit_message(self, payload: bytes, op_code) -> bool:
        inflated = self._inflate_if_compressed(payload)
        if inflated is None:
            self.force_close(ERR_TOO_BIG_MESSAGE_INFLATION)
            return True
        if op_code == OpCode.TEXT and not is_valid_utf8(inflated):
            self.force_close(ERR_INVALID_TEXT)
            return True
        handler = self.settings.message_handler
        if handler is not None:
            handler(self, inflated, OpCode(op_code))
            if self._broken():
                return True
        return False

    def _emit_control(self, payload: bytes, op_code) -> bool:
        if op_code == OpCode.CLOSE:
            frame = parse_close_payload(payload)
            self.end(frame.code, frame.message)
            return True
        if op_code == OpCode.PING:
            self.send(payload, OpCode.PONG)
            handler = self.settings.ping_handler
        elif op_code == OpCode.PONG:
            handler = self.settings.pong_handler
        else:
            handler = None
        if handler is not None:
            handler(self, payload)
            if self._broken():
                return True
        return False

    def handle_fragment(self, data, remaining_bytes: int, op_code, fin: bool) -> bool:
        """Take one piece of payload; True when the connection broke."""
        data = bytes(data)
        state = self.data
        buffer = state.fragment_buffer

        if op_code < 3:
            if not remaining_bytes and fin and not buffer:
                return self._emit_message(data, op_code)

            if self.refuse_payload_length(len(data) + len(buffer)):
                self.force_close(ERR_TOO_BIG_MESSAGE)
                return True
            buffer += data
            if not remaining_bytes and fin:
                if self._emit_message(bytes(buffer), op_code):
                    return True
                buffer.clear()
            return False

        if not remaining_bytes and fin and not state.control_tip_length:
            return self._emit_control(data, op_code)

        buffer += data
        state.control_tip_length += len(data)
        if not remaining_bytes and fin:
            tip = state.control_tip_length
            control = bytes(buffer[len(buffer) - tip:])
            if self._emit_control(control, op_code):
                return True
            del buffer[len(buffer) - tip:]
            state.control_tip_length = 0
        return False

    def send(self, message, op_code=OpCode.BINARY) -> None:
        """Frame ``message`` and write it to the transport."""
        if self.transport.closed:
            return
        frame = format_message(_as_bytes(message), op_code, is_server=self.is_server)
        self.transport.write(frame)
        if self.settings.reset_idle_timeout_on_send:
            self.transport.set_timeout(self.settings.idle_timeout_components[0])
            self.data.has_timed_out = False

    def end(self, code: int = 0, message=b"") -> None:
        """Send a close frame, enter shutdown and emit the close event."""
        if self.data.is_shutting_down or self.transport.closed:
            return
        message = _as_bytes(message)
        self.data.is_shutting_down = True
        payload = format_close_payload(code, message)
        self.transport.write(format_message(payload, OpCode.CLOSE, is_server=self.is_server))
        self.transport.set_timeout(self.settings.idle_timeout_components[1])
        self.data.subscriber = None
        handler = self.settings.close_handler
        if handler is not None:
            handler(self, code, message)
        if not self.transport.corked and self.transport.buffered_amount == 0:
            self.transport.shutdown()

    def on_data(self, data) -> None:
        """Feed received bytes through the frame parser."""
        if self.data.is_shutting_down:
            return
        transport = self.transport
        transport.set_timeout(self.settings.idle_timeout_components[0])
        self.data.has_timed_out = False

        transport.cork()
        self.parser.consume(data)
        transport.uncork()

        if transport.buffered_amount == 0 and self.data.is_shutting_down:
            transport.shutdown()

    def on_writable(self) -> None:
        """Drain backpressure; emit drain or finish a postponed shutdown."""
        transport = self.transport
        if transport.shut_down:
            return
        backpressure = transport.buffered_amount
        transport.write(b"")
        drained = not backpressure or backpressure > transport.buffered_amount

        if drained:
            transport.set_timeout(self.settings.idle_timeout_components[0])
            self.data.has_timed_out = False

        if self.data.is_shutting_down:
            if transport.buffered_amount == 0:
                transport.shutdown()
        elif drained and self.settings.drain_handler is not None:
            self.settings.drain_handler(self)

    def on_end(self) -> None:
        """The peer half-closed; close the connection entirely."""
        self.transport.close(0, b"")

    def on_close(self, code: int, reason) -> None:
        """The transport closed; emit close with 1006 unless already emitted."""
        if not self.data.is_shutting_down:
            self.data.subscriber = None
            handler = self.settings.close_handler
            if handler is not None:
                handler(self, 1006, _as_bytes(reason))

    def on_timeout(self) -> None:
        """Send an automatic ping on first idle timeout, otherwise close."""
        state = self.data
        if self.settings.send_pings_automatically and not state.is_shutting_down and not state.has_timed_out:
            state.has_timed_out = True
            self.transport.set_timeout(self.settings.idle_timeout_components[1])
            self.transport.write(_AUTOMATIC_PING)
            return
        self.force_close(ERR_WEBSOCKET_TIMEOUT)

    def on_long_timeout(self) -> None:
        """The connection reached its maximum lifetime."""
        self.end(1000, "please reconnect")