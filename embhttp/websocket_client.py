"""WebSocket client that upgrades an HTTP/1.1 connection and exchanges frames."""

from __future__ import annotations

import contextlib
import random
from enum import IntEnum
from typing import Optional, Union

from .encoding import b64_encode
from .http_client import HttpClient, HttpTimeoutError
from .http_request import (
    HTTP_PORT,
    HttpError,
    HttpRequestClient,
    HttpState,
    Payload,
    Server,
    Transport,
)

__all__ = ["MessageType", "WebSocketError", "WebSocketClient"]

TX_BUFFER_SIZE = 128
SWITCHING_PROTOCOLS = 101
_KEY_LENGTH = 16
_MASK_LENGTH = 4
_PING_LENGTH = 16
_FIN = 0x80
_MASKED = 0x80


class MessageType(IntEnum):
    """Frame opcodes."""

    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CONNECTION_CLOSE = 0x8
    PING = 0x9
    PONG = 0xA


class WebSocketError(HttpError):
    """A WebSocket operation failed; ``status`` holds the HTTP status if relevant."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def _as_bytes(data: Union[Payload, int]) -> bytes:
    if isinstance(data, int):
        return bytes([data & 0xFF])
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class WebSocketClient(HttpClient):
    """A WebSocket client over a :class:`Transport`.

    Outgoing messages are collected with :meth:`begin_message`, :meth:`write`
    and :meth:`end_message` (at most 128 bytes each) and always sent masked.
    Incoming frames are announced by :meth:`parse_message`; pings are answered
    and close frames stop the connection automatically.
    """

    def __init__(
        self,
        transport: Transport,
        server: Server,
        port: int = HTTP_PORT,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(transport, server, port)
        self._rng = rng if rng is not None else random.Random()
        self._tx_started = False
        self._tx_type = 0
        self._tx_buffer = bytearray()
        self._rx_opcode = 0
        self._rx_size = 0
        self._rx_masked = False
        self._rx_mask_index = 0
        self._rx_mask_key = bytes(_MASK_LENGTH)

    def begin(self, path: str = "/") -> None:
        """Open the connection and perform the upgrade handshake on ``path``.

        Raises :class:`WebSocketError` if the server does not answer with
        status 101; connection and protocol errors propagate as raised.
        """
        self.begin_request()
        self.connection_keep_alive()
        self.get(path)

        key = bytes(self._rng.randrange(0x01, 0xFF) for _ in range(_KEY_LENGTH))
        self.send_header("Upgrade", "websocket")
        self.send_header("Connection", "Upgrade")
        self.send_header("Sec-WebSocket-Key", b64_encode(key))
        self.send_header("Sec-WebSocket-Version", "13")
        self.end_request()

        status = self.response_status_code()
        with contextlib.suppress(HttpTimeoutError):
            self.skip_response_headers()
        self._rx_size = 0

        if status != SWITCHING_PROTOCOLS:
            raise WebSocketError(f"upgrade refused with status {status}", status)

    def begin_message(self, message_type: int) -> None:
        """Start collecting a message of the given type."""
        if self._tx_started:
            raise WebSocketError("a message is already being written")
        self._tx_started = True
        self._tx_type = int(message_type) & 0x0F
        self._tx_buffer = bytearray()

    def end_message(self) -> None:
        """Mask and send the message started by :meth:`begin_message`."""
        if not self._tx_started:
            raise WebSocketError("no message has been started")

        size = len(self._tx_buffer)
        header = bytearray([_FIN | self._tx_type])
        if size < 126:
            header.append(_MASKED | size)
        elif size < 0xFFFF:
            header.append(_MASKED | 126)
            header += size.to_bytes(2, "big")
        else:
            header.append(_MASKED | 127)
            header += size.to_bytes(8, "big")

        mask = bytes(self._rng.randrange(0xFF) for _ in range(_MASK_LENGTH))
        header += mask
        payload = bytes(b ^ mask[i % _MASK_LENGTH] for i, b in enumerate(self._tx_buffer))

        self._tx_started = False
        self._tx_buffer = bytearray()

        HttpRequestClient.write(self, bytes(header))
        if HttpRequestClient.write(self, payload) != len(payload):
            raise WebSocketError("the message could not be sent completely")

    def write(self, data: Union[Payload, int]) -> int:
        """Add data to the current message; before the upgrade, send it raw.

        Returns the number of bytes taken, 0 when no message is started;
        data beyond the 128-byte buffer is dropped.
        """
        payload = _as_bytes(data)
        if self.state < HttpState.READING_BODY:
            return HttpRequestClient.write(self, payload)
        if not self._tx_started:
            return 0
        room = TX_BUFFER_SIZE - len(self._tx_buffer)
        taken = payload[:room]
        self._tx_buffer += taken
        return len(taken)

    def parse_message(self) -> int:
        """Read the next frame header; return the payload size, or 0 if none.

        Unread data of the previous message is discarded first.  Ping, pong
        and close frames are handled here and report a size of 0.
        """
        self.flush_rx()

        if HttpClient.available(self) < 2:
            return 0

        opcode = HttpClient.read(self) & 0xFF
        length = HttpClient.read(self)

        if opcode & 0x0F == 0:
            self._rx_opcode |= opcode
        else:
            self._rx_opcode = opcode

        self._rx_masked = bool(length & _MASKED)
        length &= 0x7F

        if length < 126:
            self._rx_size = length
        else:
            count = 2 if length == 126 else 8
            size = 0
            for _ in range(count):
                size = (size << 8) | (HttpClient.read(self) & 0xFF)
            self._rx_size = size

        if self._rx_masked:
            self._rx_mask_key = bytes(HttpClient.read(self) & 0xFF for _ in range(_MASK_LENGTH))
        self._rx_mask_index = 0

        kind = self.message_type()
        if kind == MessageType.CONNECTION_CLOSE:
            self.flush_rx()
            self.stop()
            self._rx_size = 0
        elif kind == MessageType.PING:
            self.begin_message(MessageType.PONG)
            while self.available():
                c = self.read()
                if c < 0:
                    break
                self.write(c)
            self.end_message()
            self._rx_size = 0
        elif kind == MessageType.PONG:
            self.flush_rx()
            self._rx_size = 0

        return self._rx_size

    def message_type(self) -> int:
        """Opcode of the message last parsed."""
        return self._rx_opcode & 0x0F

    def is_final(self) -> bool:
        """Whether the message last parsed is the last fragment."""
        return bool(self._rx_opcode & _FIN)

    def read_string(self) -> str:
        """Read what is left of the current message as text."""
        data = bytearray()
        for _ in range(self.available()):
            c = self.read()
            if c < 0:
                break
            data.append(c)
        return data.decode("utf-8", errors="replace")

    def ping(self) -> None:
        """Send a ping carrying 16 random bytes."""
        data = bytes(self._rng.randrange(0xFF) for _ in range(_PING_LENGTH))
        self.begin_message(MessageType.PING)
        self.write(data)
        self.end_message()

    def available(self) -> int:
        """Bytes left in the current message, or raw bytes before the upgrade."""
        if self.state < HttpState.READING_BODY:
            return HttpClient.available(self)
        return self._rx_size

    def read(self) -> int:
        """Read one unmasked byte, or return -1 when none is waiting."""
        data = self.read_bytes(1)
        return data[0] if data else -1

    def read_bytes(self, size: int) -> bytes:
        """Read up to ``size`` waiting bytes, removing the mask if present."""
        data = HttpClient.read_bytes(self, size)
        if not data:
            return data
        self._rx_size -= len(data)
        if not self._rx_masked:
            return data
        key = self._rx_mask_key
        start = self._rx_mask_index
        self._rx_mask_index += len(data)
        return bytes(b ^ key[(start + i) % _MASK_LENGTH] for i, b in enumerate(data))

    def peek(self) -> int:
        """The next unmasked byte without consuming it, or -1."""
        p = HttpClient.peek(self)
        if p != -1 and self._rx_masked:
            p = (p & 0xFF) ^ self._rx_mask_key[self._rx_mask_index % _MASK_LENGTH]
        return p

    def flush_rx(self) -> None:
        """Discard what is left of the current message."""
        while self.available():
            if self.read() < 0:
                break