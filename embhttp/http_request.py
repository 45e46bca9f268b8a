"""Sending side of a small HTTP/1.1 client that runs over any byte transport."""

from __future__ import annotations

import ipaddress
from enum import IntEnum
from typing import Optional, Protocol, Union

from .encoding import b64_encode

__all__ = [
    "Transport",
    "HttpError",
    "HttpApiError",
    "ConnectionFailedError",
    "HttpState",
    "HttpRequestClient",
]

HTTP_PORT = 80
HTTPS_PORT = 443

USER_AGENT = "Arduino/2.2.0"

HEADER_CONTENT_LENGTH = "Content-Length"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CONNECTION = "Connection"
HEADER_TRANSFER_ENCODING = "Transfer-Encoding"
HEADER_USER_AGENT = "User-Agent"
VALUE_CHUNKED = "chunked"

CONTENT_LENGTH_PREFIX = f"{HEADER_CONTENT_LENGTH}: "
TRANSFER_ENCODING_CHUNKED = f"{HEADER_TRANSFER_ENCODING}: {VALUE_CHUNKED}"

METHOD_GET = "GET"
METHOD_POST = "POST"
METHOD_PUT = "PUT"
METHOD_PATCH = "PATCH"
METHOD_DELETE = "DELETE"

CRLF = b"\r\n"

Server = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]
Payload = Union[bytes, bytearray, memoryview, str]


class Transport(Protocol):
    """A connected byte stream, such as a TCP socket wrapper."""

    def connect(self, host: Server, port: int) -> bool:
        """Open a connection; return a true value on success."""
        ...

    def connected(self) -> bool:
        """Whether the connection is still open."""
        ...

    def available(self) -> int:
        """Number of bytes that can be read without waiting."""
        ...

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes that are already waiting."""
        ...

    def peek(self) -> int:
        """The next byte without consuming it, or -1 when none is waiting."""
        ...

    def write(self, data: bytes) -> int:
        """Send ``data``; return the number of bytes sent."""
        ...

    def stop(self) -> None:
        """Close the connection."""
        ...


class HttpError(Exception):
    """Base class of HTTP client errors."""


class HttpApiError(HttpError):
    """The client was used in a state where the call makes no sense."""


class ConnectionFailedError(HttpError):
    """The connection to the server could not be opened."""


class HttpState(IntEnum):
    """Progress of the current request and response, in order."""

    IDLE = 0
    REQUEST_STARTED = 1
    REQUEST_SENT = 2
    READING_STATUS_CODE = 3
    STATUS_CODE_READ = 4
    READING_CONTENT_LENGTH = 5
    SKIP_TO_END_OF_HEADER = 6
    LINE_STARTING_CR_FOUND = 7
    READING_BODY = 8
    READING_CHUNK_LENGTH = 9
    READING_BODY_CHUNK = 10


_BODY_STATES = frozenset(
    {HttpState.READING_BODY, HttpState.READING_CHUNK_LENGTH, HttpState.READING_BODY_CHUNK}
)


def _as_bytes(data: Union[Payload, int]) -> bytes:
    if isinstance(data, int):
        return bytes([data & 0xFF])
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class HttpRequestClient:
    """Builds and sends HTTP/1.1 requests to one server over a :class:`Transport`.

    ``server`` is a host name, which is also sent in the ``Host`` header, or
    an IP address, for which no ``Host`` header is sent.
    """

    RESPONSE_TIMEOUT = 30.0  # seconds
    WAIT_FOR_DATA_DELAY = 1.0  # seconds

    def __init__(self, transport: Transport, server: Server, port: int = HTTP_PORT) -> None:
        self.transport = transport
        self.server = server
        self.port = port
        self.connection_close = True
        self.send_default_request_headers = True
        self.reset_state()

    @property
    def _server_name(self) -> Optional[str]:
        return self.server if isinstance(self.server, str) else None

    def reset_state(self) -> None:
        """Forget everything about the current request and response."""
        self.state = HttpState.IDLE
        self.status_code = 0
        self._content_length: Optional[int] = None
        self._body_length_consumed = 0
        self._content_length_matched = 0
        self._chunked_matched = 0
        self._is_chunked = False
        self._chunk_length = 0
        self._header_line = ""
        self.response_timeout = self.RESPONSE_TIMEOUT
        self.wait_for_data_delay = self.WAIT_FOR_DATA_DELAY

    def stop(self) -> None:
        """Close the connection and reset the state."""
        self.transport.stop()
        self.reset_state()

    def __enter__(self) -> "HttpRequestClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def connection_keep_alive(self) -> None:
        """Keep the connection open between requests."""
        self.connection_close = False

    def no_default_request_headers(self) -> None:
        """Do not send the ``Host`` and ``User-Agent`` headers."""
        self.send_default_request_headers = False

    def begin_request(self) -> None:
        """Start a request whose headers are finished by :meth:`end_request`."""
        self.state = HttpState.REQUEST_STARTED

    def start_request(
        self,
        path: str,
        method: str,
        content_type: Optional[str] = None,
        body: Optional[Payload] = None,
    ) -> None:
        """Connect if needed and send the request line and headers.

        A body, when given, is sent with its ``Content-Length``.  Raises
        :class:`HttpApiError` if a request is already under way and
        :class:`ConnectionFailedError` if the server cannot be reached.
        """
        if self.end_of_headers_reached():
            self.flush_client_rx()
            self.reset_state()

        initial_state = self.state
        if self.state not in (HttpState.IDLE, HttpState.REQUEST_STARTED):
            raise HttpApiError(f"cannot start a request in state {self.state.name}")

        if self.connection_close or not self.transport.connected():
            if not self.transport.connect(self.server, self.port):
                raise ConnectionFailedError(f"could not connect to {self.server}:{self.port}")

        self._send_initial_headers(path, method)

        payload = _as_bytes(body) if body is not None else b""
        if content_type is not None:
            self.send_header(HEADER_CONTENT_TYPE, content_type)
        if payload:
            self.send_header(HEADER_CONTENT_LENGTH, len(payload))

        if initial_state is HttpState.IDLE or payload:
            self.finish_headers()
        if payload:
            self.write(payload)

    def _send_initial_headers(self, path: str, method: str) -> None:
        self._println(f"{method} {path} HTTP/1.1")
        if self.send_default_request_headers:
            name = self._server_name
            if name is not None:
                host = name
                if self.port not in (HTTP_PORT, HTTPS_PORT):
                    host = f"{name}:{self.port}"
                self.send_header("Host", host)
            self.send_header(HEADER_USER_AGENT, USER_AGENT)
        if self.connection_close:
            self.send_header(HEADER_CONNECTION, "close")
        self.state = HttpState.REQUEST_STARTED

    def get(self, path: str) -> None:
        self.start_request(path, METHOD_GET)

    def post(self, path: str, content_type: Optional[str] = None,
             body: Optional[Payload] = None) -> None:
        self.start_request(path, METHOD_POST, content_type, body)

    def put(self, path: str, content_type: Optional[str] = None,
            body: Optional[Payload] = None) -> None:
        self.start_request(path, METHOD_PUT, content_type, body)

    def patch(self, path: str, content_type: Optional[str] = None,
              body: Optional[Payload] = None) -> None:
        self.start_request(path, METHOD_PATCH, content_type, body)

    def delete(self, path: str, content_type: Optional[str] = None,
               body: Optional[Payload] = None) -> None:
        self.start_request(path, METHOD_DELETE, content_type, body)

    def _println(self, text: str = "") -> None:
        self.transport.write(text.encode("utf-8") + CRLF)

    def send_header(self, name: str, value: Union[str, int, None] = None) -> None:
        """Send ``name: value``, or ``name`` as a whole line when no value is given."""
        if value is None:
            self._println(name)
        else:
            self._println(f"{name}: {value}")

    def send_basic_auth(self, user: str, password: str) -> None:
        """Send an ``Authorization: Basic`` header for the given credentials."""
        self.send_header("Authorization", f"Basic {b64_encode(f'{user}:{password}')}")

    def finish_headers(self) -> None:
        """End the header block."""
        self._println()
        self.state = HttpState.REQUEST_SENT

    def flush_client_rx(self) -> None:
        """Discard everything waiting to be read."""
        while (waiting := self.transport.available()) > 0:
            if not self.transport.read(waiting):
                break

    def end_request(self) -> None:
        """Finish a request started with :meth:`begin_request`."""
        self.begin_body()

    def begin_body(self) -> None:
        """End the header block unless that has been done already."""
        if self.state < HttpState.REQUEST_SENT:
            self.finish_headers()

    def end_of_headers_reached(self) -> bool:
        """Whether the response headers have all been read."""
        return self.state in _BODY_STATES

    def write(self, data: Union[Payload, int]) -> int:
        """Send body data, ending the headers first if needed."""
        self.begin_body()
        return self.transport.write(_as_bytes(data))