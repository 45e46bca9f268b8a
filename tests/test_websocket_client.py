import base64
import random

import pytest

from embhttp.http_request import ConnectionFailedError
from embhttp.websocket_client import MessageType, WebSocketClient, WebSocketError

HANDSHAKE = (
    b"HTTP/1.1 101 Switching Protocols\r\n"
    b"Upgrade: websocket\r\n"
    b"Connection: Upgrade\r\n"
    b"\r\n"
)


class FakeTransport:
    def __init__(self, incoming=b"", can_connect=True):
        self.rx = bytearray(incoming)
        self.tx = bytearray()
        self.can_connect = can_connect
        self.is_connected = False
        self.stopped = False

    def connect(self, host, port):
        self.is_connected = self.can_connect
        return self.can_connect

    def connected(self):
        return self.is_connected

    def available(self):
        return len(self.rx)

    def read(self, size):
        data = bytes(self.rx[:size])
        del self.rx[:size]
        return data

    def peek(self):
        return self.rx[0] if self.rx else -1

    def write(self, data):
        self.tx += data
        return len(data)

    def stop(self):
        self.stopped = True
        self.is_connected = False

    def feed(self, data):
        self.rx += data


def make_client(incoming=HANDSHAKE):
    transport = FakeTransport(incoming)
    client = WebSocketClient(transport, "example.com", 80, random.Random(7))
    client.response_timeout = 0.05
    client.wait_for_data_delay = 0
    client.read_timeout = 0.01
    return client, transport


def upgraded():
    client, transport = make_client()
    client.begin("/chat")
    transport.tx.clear()
    return client, transport


def unmask_frame(frame):
    length = frame[1] & 0x7F
    mask = frame[2:6]
    payload = frame[6:6 + length]
    return bytes(b ^ mask[i % 4] for i, b in enumerate(payload))


def test_handshake_request():
    client, transport = make_client()
    client.begin("/chat")
    text = transport.tx.decode()
    assert text.startswith("GET /chat HTTP/1.1\r\n")
    assert "Upgrade: websocket\r\n" in text
    assert "Connection: Upgrade\r\n" in text
    assert "Sec-WebSocket-Version: 13\r\n" in text
    assert "Connection: close" not in text
    assert text.endswith("\r\n\r\n")


def test_handshake_key_is_sixteen_nonzero_bytes():
    client, transport = make_client()
    client.begin("/")
    line = next(
        line for line in transport.tx.decode().split("\r\n")
        if line.startswith("Sec-WebSocket-Key: ")
    )
    key = base64.b64decode(line.split(": ", 1)[1])
    assert len(key) == 16
    assert all(1 <= b <= 254 for b in key)


def test_handshake_refused():
    client, _ = make_client(b"HTTP/1.1 404 Not Found\r\n\r\n")
    with pytest.raises(WebSocketError) as info:
        client.begin("/")
    assert info.value.status == 404


def test_connection_failure():
    transport = FakeTransport(HANDSHAKE, can_connect=False)
    client = WebSocketClient(transport, "example.com", 80, random.Random(1))
    with pytest.raises(ConnectionFailedError):
        client.begin("/")


def test_send_text_message_frame():
    client, transport = upgraded()
    client.begin_message(MessageType.TEXT)
    assert client.write(b"hi") == 2
    client.end_message()
    frame = bytes(transport.tx)
    assert frame[0] == 0x81
    assert frame[1] == 0x82
    assert len(frame) == 8
    assert unmask_frame(frame) == b"hi"


def test_ping_frame():
    client, transport = upgraded()
    client.ping()
    frame = bytes(transport.tx)
    assert frame[0] == 0x89
    assert frame[1] == 0x80 | 16
    assert len(frame) == 2 + 4 + 16


def test_begin_message_twice_raises():
    client, _ = upgraded()
    client.begin_message(MessageType.BINARY)
    with pytest.raises(WebSocketError):
        client.begin_message(MessageType.TEXT)


def test_end_message_without_begin_raises():
    client, _ = upgraded()
    with pytest.raises(WebSocketError):
        client.end_message()


def test_write_without_message_is_refused():
    client, transport = upgraded()
    assert client.write(b"abc") == 0
    assert transport.tx == bytearray()


def test_write_is_limited_to_buffer():
    client, transport = upgraded()
    client.begin_message(MessageType.BINARY)
    assert client.write(bytes(200)) == 128
    assert client.write(b"x") == 0
    client.end_message()
    frame = bytes(transport.tx)
    assert frame[1] == 0x80 | 126
    assert int.from_bytes(frame[2:4], "big") == 128


def test_receive_text_message():
    client, transport = upgraded()
    transport.feed(b"\x81\x05hello")
    assert client.parse_message() == 5
    assert client.message_type() == MessageType.TEXT
    assert client.is_final()
    assert client.available() == 5
    assert client.read_string() == "hello"
    assert client.available() == 0


def test_receive_masked_message():
    client, transport = upgraded()
    key = bytes([1, 2, 3, 4])
    payload = b"data!"
    masked = bytes(b ^ key[i % 4] for i, b in enumerate(payload))
    transport.feed(bytes([0x82, 0x80 | len(payload)]) + key + masked)
    assert client.parse_message() == len(payload)
    assert client.message_type() == MessageType.BINARY
    assert client.peek() == payload[0]
    assert client.read_bytes(2) == payload[:2]
    assert client.read_string() == "ta!"


def test_receive_extended_length():
    client, transport = upgraded()
    payload = bytes(range(200))
    transport.feed(b"\x82\x7e" + len(payload).to_bytes(2, "big") + payload)
    assert client.parse_message() == 200
    received = bytes(client.read() for _ in range(200))
    assert received == payload


def test_fragmented_message():
    client, transport = upgraded()
    transport.feed(b"\x01\x03abc\x80\x03def")
    assert client.parse_message() == 3
    assert not client.is_final()
    assert client.read_string() == "abc"
    assert client.parse_message() == 3
    assert client.message_type() == MessageType.TEXT
    assert client.is_final()
    assert client.read_string() == "def"


def test_unread_data_is_discarded_on_next_parse():
    client, transport = upgraded()
    transport.feed(b"\x81\x03abc\x81\x02xy")
    assert client.parse_message() == 3
    assert client.read() == ord("a")
    assert client.parse_message() == 2
    assert client.read_string() == "xy"


def test_ping_is_answered_with_pong():
    client, transport = upgraded()
    transport.feed(b"\x89\x02ab")
    assert client.parse_message() == 0
    frame = bytes(transport.tx)
    assert frame[0] == 0x8A
    assert frame[1] == 0x82
    assert unmask_frame(frame) == b"ab"


def test_pong_is_swallowed():
    client, transport = upgraded()
    transport.feed(b"\x8a\x01x")
    assert client.parse_message() == 0
    assert client.available() == 0
    assert transport.rx == bytearray()


def test_close_stops_connection():
    client, transport = upgraded()
    transport.feed(b"\x88\x00")
    assert client.parse_message() == 0
    assert transport.stopped


def test_no_frame_waiting():
    client, transport = upgraded()
    transport.feed(b"\x81")
    assert client.parse_message() == 0
    assert transport.rx == bytearray(b"\x81")