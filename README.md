# wsframe

Building blocks for speaking the WebSocket protocol (RFC 6455) from Python,
using only the standard library.

## What is inside

- `wsframe.protocol`: an incremental frame parser, `FrameParser`, which feeds
  whole or partial frame payloads to a `FrameHandler`; helpers to build frames
  (`format_message`, `message_frame_size`), to build and parse close payloads
  (`format_close_payload`, `parse_close_payload`, `CloseFrame`) and a strict
  UTF-8 check (`is_valid_utf8`). Opcodes are listed in `OpCode`, and the close
  reasons used by the package are the `ERR_*` constants.
- `wsframe.handshake`: `generate_accept(key)` computes the
  `Sec-WebSocket-Accept` value for a 24-character `Sec-WebSocket-Key`; any
  other length raises `ValueError`.
- `wsframe.settings`: `ContextSettings` holds the handlers and limits shared by
  connections (maximum payload length, idle timeout split by
  `calculate_idle_timeout_components`, automatic pings); `ConnectionData` holds
  one connection's state (fragment buffer, `CompressionStatus`, and `inflate`
  for permessage-deflate payloads).
- `wsframe.context`: `WebSocketConnection` ties a `FrameParser` to a
  `Transport` and dispatches messages, pings (answered with a pong), pongs,
  close frames, idle timeouts and drain events to the handlers in
  `ContextSettings`.
- `wsframe.buildtool`: the `wsframe-build` command described below.

## Installing

```
pip install .
pip install ".[test]"   # with pytest for the test suite
```

## Quick look

```python
from wsframe.handshake import generate_accept
from wsframe.protocol import OpCode, format_message, parse_close_payload

generate_accept("dGhlIHNhbXBsZSBub25jZQ==")
# 's3pPLMBiTxaQ9kYGzzhZRbK+xOo='

format_message(b"hello", OpCode.TEXT, is_server=True)
# b'\x81\x05hello'

parse_close_payload(b"\x03\xe8bye")
# CloseFrame(code=1000, message=b'bye')
```

Frames built with `is_server=False` are masked with a random key.

## Parsing incoming bytes

Write a class with the four `FrameHandler` methods (`set_compressed`,
`force_close`, `handle_fragment`, `refuse_payload_length`), pass it to
`FrameParser(handler, is_server=True)` and call `consume(data)` with each chunk
read. Incomplete headers are kept until the next call.

`WebSocketConnection` is a ready-made handler:

```python
from wsframe.context import Transport, WebSocketConnection
from wsframe.settings import ContextSettings

settings = ContextSettings(
    max_payload_length=16 * 1024,
    message_handler=lambda ws, data, op: ws.send(data, op),
)
settings.calculate_idle_timeout_components(120)

transport = Transport()
ws = WebSocketConnection(settings, transport)
ws.on_data(received_bytes)   # replies end up in transport.sent
```

`Transport` keeps everything in memory; subclass it and override
`transmit(data)` (returning how many bytes were accepted) to write to a real
channel. Call `on_writable`, `on_end`, `on_timeout` and `on_long_timeout` when
the corresponding events happen.

## What it does not do

There is no socket server or client, no HTTP upgrade request handling, no
extension negotiation and no publish/subscribe. Incoming compressed frames are
inflated, but `send` never compresses outgoing messages.

## Building the example programs

The `wsframe-build` command composes and runs, through the shell, one compiler
command per example program in `examples/`:

```
wsframe-build examples
```

It reads `CXX`, `CC`, `CXXFLAGS`, `CFLAGS`, `LDFLAGS` and `EXEC_SUFFIX`, and
the switches `WITH_LTO`, `WITH_ZLIB`, `WITH_PROXY`, `WITH_QUIC`,
`WITH_BORINGSSL`, `WITH_OPENSSL`, `WITH_WOLFSSL`, `WITH_LIBUV`, `WITH_ASIO`
and `WITH_ASAN` from the environment. Each command is echoed before it runs,
and the build stops at the first failure. The targets `capi`, `clean`,
`install` and `all` are accepted but do nothing yet.

## Running the tests

```
pytest
```