"""Receiving side of the HTTP/1.1 client: status line, headers and body."""

from __future__ import annotations

import contextlib
import time
from typing import Optional

from .http_request import HttpError, HttpRequestClient, HttpState

__all__ = ["InvalidResponseError", "HttpTimeoutError", "HttpClient"]

_CR = 0x0D
_LF = 0x0A
_STATUS_PREFIX = "HTTP/*.* "
_WILDCARD = "*"
_LONG_MAX = 2**31 - 1
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_WHITESPACE = " \t\n\v\f\r"

_CONTENT_LENGTH_PREFIX = "Content-Length: "
_TRANSFER_ENCODING_CHUNKED = "Transfer-Encoding: chunked"


class InvalidResponseError(HttpError):
    """The server sent something that is not a valid HTTP response."""


class HttpTimeoutError(HttpError):
    """The server stopped sending before the expected data arrived."""


def _is_informational(code: int) -> bool:
    return code < 200 and code != 101


class HttpClient(HttpRequestClient):
    """An HTTP/1.1 client that sends requests and reads their responses.

    Handles ``Content-Length`` and chunked transfer encoding.  Timeouts are
    given in seconds by ``response_timeout`` (status line and headers) and
    ``read_timeout`` (each byte of the body).
    """

    read_timeout = 1.0

    def _now(self) -> float:
        return time.monotonic()

    def _wait(self) -> None:
        time.sleep(self.wait_for_data_delay)

    def response_status_code(self) -> int:
        """Read the status line and return the status code.

        Informational (1xx) responses other than 101 are skipped.  Raises
        :class:`HttpApiError` before the request was sent,
        :class:`InvalidResponseError` for a malformed status line and
        :class:`HttpTimeoutError` when the line does not arrive in time.
        """
        from .http_request import HttpApiError

        if self.state < HttpState.REQUEST_SENT:
            raise HttpApiError("the request has not been sent yet")

        c = 0
        while True:
            self.status_code = 0
            self.state = HttpState.REQUEST_SENT
            timeout_start = self._now()
            matched = 0
            while c != _LF and self._now() - timeout_start < self.response_timeout:
                if not self.available():
                    self._wait()
                    continue
                c = HttpClient.read(self)
                if c == -1:
                    continue
                if self.state is HttpState.REQUEST_SENT:
                    expected = _STATUS_PREFIX[matched]
                    if expected != _WILDCARD and expected != chr(c):
                        raise InvalidResponseError("response does not start with a status line")
                    matched += 1
                    if matched == len(_STATUS_PREFIX):
                        self.state = HttpState.READING_STATUS_CODE
                elif self.state is HttpState.READING_STATUS_CODE:
                    if 0x30 <= c <= 0x39:
                        self.status_code = self.status_code * 10 + (c - 0x30)
                    else:
                        self.state = HttpState.STATUS_CODE_READ
                timeout_start = self._now()

            if c == _LF and _is_informational(self.status_code):
                c = 0
            if not (self.state is HttpState.STATUS_CODE_READ
                    and _is_informational(self.status_code)):
                break

        if c == _LF and self.state is HttpState.STATUS_CODE_READ:
            return self.status_code
        if c != _LF:
            raise HttpTimeoutError("timed out reading the status line")
        raise InvalidResponseError("malformed status line")

    def skip_response_headers(self) -> None:
        """Read and discard the remaining headers; raise :class:`HttpTimeoutError` on timeout."""
        timeout_start = self._now()
        while (not self.end_of_headers_reached()
               and self._now() - timeout_start < self.response_timeout):
            if self.available():
                self.read_header()
                timeout_start = self._now()
            else:
                self._wait()
        if not self.end_of_headers_reached():
            raise HttpTimeoutError("timed out reading the response headers")

    def content_length(self) -> Optional[int]:
        """The body length announced by the server, or ``None`` if it sent none."""
        if not self.end_of_headers_reached():
            with contextlib.suppress(HttpTimeoutError):
                self.skip_response_headers()
        return self._content_length

    def _timed_read(self) -> int:
        start = self._now()
        while True:
            c = self.read()
            if c >= 0:
                return c
            if self._now() - start >= self.read_timeout:
                return -1
            time.sleep(0)

    def response_body(self) -> str:
        """Read the whole body and return it as text.

        Without a ``Content-Length`` the body ends when no byte arrives within
        ``read_timeout``.  Raises :class:`HttpError` if fewer bytes arrive than
        announced.
        """
        body_length = self.content_length()
        body = bytearray()
        while self._body_length_consumed != body_length:
            c = self._timed_read()
            if c == -1:
                break
            body.append(c)
        if body_length is not None and body_length > 0 and len(body) != body_length:
            raise HttpError(f"expected {body_length} body bytes, got {len(body)}")
        return body.decode("utf-8", errors="replace")

    def end_of_body_reached(self) -> bool:
        """Whether all of a body of known length has been read."""
        if self.end_of_headers_reached():
            length = self.content_length()
            if length is not None:
                return self._body_length_consumed >= length
        return False

    def _has_content_length(self) -> bool:
        return self._content_length is not None and self._content_length > 0

    def available(self) -> int:
        """Number of body bytes that can be read now, following chunk boundaries."""
        if self.state is HttpState.READING_CHUNK_LENGTH:
            while self.transport.available():
                data = self.transport.read(1)
                if not data:
                    break
                c = data[0]
                if c == _LF:
                    self.state = HttpState.READING_BODY_CHUNK
                    break
                if c in _HEX_DIGITS:
                    self._chunk_length = self._chunk_length * 16 + int(chr(c), 16)

        if self.state is HttpState.READING_BODY_CHUNK and self._chunk_length == 0:
            self.state = HttpState.READING_CHUNK_LENGTH
        if self.state is HttpState.READING_CHUNK_LENGTH:
            return 0

        waiting = self.transport.available()
        if self.state is HttpState.READING_BODY_CHUNK:
            return min(waiting, self._chunk_length)
        return waiting

    def read(self) -> int:
        """Read one byte, or return -1 when none is available."""
        if self._is_chunked and not self.available():
            return -1
        data = self.transport.read(1)
        if not data:
            return -1
        if self.end_of_headers_reached() and self._has_content_length():
            self._body_length_consumed += 1
        if self.state is HttpState.READING_BODY_CHUNK:
            self._chunk_length -= 1
            if self._chunk_length == 0:
                self.state = HttpState.READING_CHUNK_LENGTH
        return data[0]

    def read_bytes(self, size: int) -> bytes:
        """Read up to ``size`` bytes that are already waiting."""
        data = bytes(self.transport.read(size))
        if self.end_of_headers_reached() and self._has_content_length():
            self._body_length_consumed += len(data)
        return data

    def peek(self) -> int:
        """The next byte without consuming it, or -1."""
        return self.transport.peek()

    def header_available(self) -> bool:
        """Read the next header line; return ``False`` once the headers have ended.

        Raises :class:`HttpTimeoutError` if a line stops arriving mid-way.
        """
        self._header_line = ""
        timeout_start = self._now()
        while not self.end_of_headers_reached():
            c = self.read_header()
            if c < 0:
                if self._now() - timeout_start >= self.response_timeout:
                    raise HttpTimeoutError("timed out reading a header line")
                self._wait()
                continue
            timeout_start = self._now()
            if c in (_CR, _LF):
                if self._header_line:
                    break
                continue
            self._header_line += chr(c)
        return bool(self._header_line)

    def read_header_name(self) -> str:
        """Name of the header line last read by :meth:`header_available`."""
        name, colon, _ = self._header_line.partition(":")
        return name if colon else ""

    def read_header_value(self) -> str:
        """Value of the header line last read, without leading whitespace."""
        _, colon, value = self._header_line.partition(":")
        return value.lstrip(_WHITESPACE) if colon else ""

    def read_header(self) -> int:
        """Read one byte of the headers, noting ``Content-Length`` and chunked encoding."""
        c = HttpClient.read(self)
        if c < 0 or self.end_of_headers_reached():
            return c
        ch = chr(c)

        if self.state is HttpState.STATUS_CODE_READ:
            cl_done = self._content_length_matched
            te_done = self._chunked_matched
            if cl_done < len(_CONTENT_LENGTH_PREFIX) and _CONTENT_LENGTH_PREFIX[cl_done] == ch:
                self._content_length_matched += 1
                if self._content_length_matched == len(_CONTENT_LENGTH_PREFIX):
                    self.state = HttpState.READING_CONTENT_LENGTH
                    self._content_length = 0
                    self._body_length_consumed = 0
            elif (te_done < len(_TRANSFER_ENCODING_CHUNKED)
                  and _TRANSFER_ENCODING_CHUNKED[te_done] == ch):
                self._chunked_matched += 1
                if self._chunked_matched == len(_TRANSFER_ENCODING_CHUNKED):
                    self._is_chunked = True
                    self.state = HttpState.SKIP_TO_END_OF_HEADER
            elif cl_done == 0 and te_done == 0 and c == _CR:
                self.state = HttpState.LINE_STARTING_CR_FOUND
            else:
                self.state = HttpState.SKIP_TO_END_OF_HEADER
        elif self.state is HttpState.READING_CONTENT_LENGTH:
            if ch.isdigit() and c < 0x80:
                current = self._content_length or 0
                candidate = current * 10 + (c - 0x30)
                if current < candidate <= _LONG_MAX:
                    self._content_length = candidate
            else:
                self.state = HttpState.SKIP_TO_END_OF_HEADER
        elif self.state is HttpState.LINE_STARTING_CR_FOUND:
            if c == _LF:
                if self._is_chunked:
                    self.state = HttpState.READING_CHUNK_LENGTH
                    self._chunk_length = 0
                else:
                    self.state = HttpState.READING_BODY

        if c == _LF and not self.end_of_headers_reached():
            self.state = HttpState.STATUS_CODE_READ
            self._content_length_matched = 0
            self._chunked_matched = 0
        return c