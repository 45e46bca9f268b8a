"""Strict URL splitter that records where each component sits in the input.

The parser walks the URL one character at a time through a small state
machine and reports, for every component it finds, the offset and length of
that component inside the original string.  The host part is then walked a
second time to separate user information, host name (including bracketed
IPv6 literals with zone identifiers) and port.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from typing import Dict, Mapping, Tuple

__all__ = ["UrlField", "UrlParseError", "UrlFields", "parse_url", "parser_version"]

VERSION_MAJOR = 2
VERSION_MINOR = 7
VERSION_PATCH = 1

_MAX_PORT = 0xFFFF


class UrlField(IntEnum):
    """Components a URL can be split into."""

    SCHEMA = 0
    HOST = 1
    PORT = 2
    PATH = 3
    QUERY = 4
    FRAGMENT = 5
    USERINFO = 6


class UrlParseError(ValueError):
    """Raised when a URL cannot be parsed."""


Span = Tuple[int, int]


@dataclass(frozen=True)
class UrlFields:
    """Result of :func:`parse_url`.

    ``spans`` maps every component that is present to its ``(offset, length)``
    inside the parsed string; ``port`` is the numeric port, or 0 when absent.
    """

    spans: Mapping[UrlField, Span] = field(default_factory=dict)
    port: int = 0

    def __contains__(self, item: object) -> bool:
        return item in self.spans


class _State(Enum):
    DEAD = auto()
    SPACES_BEFORE_URL = auto()
    SCHEMA = auto()
    SCHEMA_SLASH = auto()
    SCHEMA_SLASH_SLASH = auto()
    SERVER_START = auto()
    SERVER = auto()
    SERVER_WITH_AT = auto()
    PATH = auto()
    QUERY_STRING_START = auto()
    QUERY_STRING = auto()
    FRAGMENT_START = auto()
    FRAGMENT = auto()


class _HostState(Enum):
    DEAD = auto()
    USERINFO_START = auto()
    USERINFO = auto()
    HOST_START = auto()
    HOST_V6_START = auto()
    HOST = auto()
    HOST_V6 = auto()
    HOST_V6_END = auto()
    HOST_V6_ZONE_START = auto()
    HOST_V6_ZONE = auto()
    HOST_PORT_START = auto()
    HOST_PORT = auto()


_ALPHA = frozenset(string.ascii_letters)
_DIGITS = frozenset(string.digits)
_ALNUM = _ALPHA | _DIGITS
_HEX = frozenset(string.hexdigits)
_MARK = frozenset("-_.!~*'()")
_USERINFO = _ALNUM | _MARK | frozenset("%;:&=+$,")
_HOST_CHARS = _ALNUM | frozenset(".-")
_ZONE_CHARS = _ALNUM | frozenset("%.-_~")
_SEPARATORS = frozenset(" \r\n\t\f")

_SKIPPED = {
    _State.SCHEMA_SLASH,
    _State.SCHEMA_SLASH_SLASH,
    _State.SERVER_START,
    _State.QUERY_STRING_START,
    _State.FRAGMENT_START,
}

_STATE_FIELD = {
    _State.SCHEMA: UrlField.SCHEMA,
    _State.SERVER: UrlField.HOST,
    _State.SERVER_WITH_AT: UrlField.HOST,
    _State.PATH: UrlField.PATH,
    _State.QUERY_STRING: UrlField.QUERY,
    _State.FRAGMENT: UrlField.FRAGMENT,
}

_BAD_HOST_END = {
    _HostState.HOST_START,
    _HostState.HOST_V6_START,
    _HostState.HOST_V6,
    _HostState.HOST_V6_ZONE_START,
    _HostState.HOST_V6_ZONE,
    _HostState.HOST_PORT_START,
    _HostState.USERINFO,
    _HostState.USERINFO_START,
}


def _is_url_char(ch: str) -> bool:
    return "!" <= ch <= "~" and ch not in "#?"


def _next_url_state(state: _State, ch: str) -> _State:
    if ch in _SEPARATORS:
        return _State.DEAD

    if state is _State.SPACES_BEFORE_URL:
        if ch in "/*":
            return _State.PATH
        if ch in _ALPHA:
            return _State.SCHEMA
    elif state is _State.SCHEMA:
        if ch in _ALPHA:
            return state
        if ch == ":":
            return _State.SCHEMA_SLASH
    elif state is _State.SCHEMA_SLASH:
        if ch == "/":
            return _State.SCHEMA_SLASH_SLASH
    elif state is _State.SCHEMA_SLASH_SLASH:
        if ch == "/":
            return _State.SERVER_START
    elif state in (_State.SERVER_WITH_AT, _State.SERVER_START, _State.SERVER):
        if state is _State.SERVER_WITH_AT and ch == "@":
            return _State.DEAD
        if ch == "/":
            return _State.PATH
        if ch == "?":
            return _State.QUERY_STRING_START
        if ch == "@":
            return _State.SERVER_WITH_AT
        if ch in _USERINFO or ch in "[]":
            return _State.SERVER
    elif state is _State.PATH:
        if _is_url_char(ch):
            return state
        if ch == "?":
            return _State.QUERY_STRING_START
        if ch == "#":
            return _State.FRAGMENT_START
    elif state in (_State.QUERY_STRING_START, _State.QUERY_STRING):
        if _is_url_char(ch) or ch == "?":
            return _State.QUERY_STRING
        if ch == "#":
            return _State.FRAGMENT_START
    elif state is _State.FRAGMENT_START:
        if _is_url_char(ch) or ch == "?":
            return _State.FRAGMENT
        if ch == "#":
            return state
    elif state is _State.FRAGMENT:
        if _is_url_char(ch) or ch in "?#":
            return state

    return _State.DEAD


def _next_host_state(state: _HostState, ch: str) -> _HostState:
    if state in (_HostState.USERINFO, _HostState.USERINFO_START):
        if ch == "@":
            return _HostState.HOST_START
        if ch in _USERINFO:
            return _HostState.USERINFO
    elif state is _HostState.HOST_START:
        if ch == "[":
            return _HostState.HOST_V6_START
        if ch in _HOST_CHARS:
            return _HostState.HOST
    elif state in (_HostState.HOST, _HostState.HOST_V6_END):
        if state is _HostState.HOST and ch in _HOST_CHARS:
            return _HostState.HOST
        if ch == ":":
            return _HostState.HOST_PORT_START
    elif state in (_HostState.HOST_V6, _HostState.HOST_V6_START):
        if state is _HostState.HOST_V6 and ch == "]":
            return _HostState.HOST_V6_END
        if ch in _HEX or ch in ":.":
            return _HostState.HOST_V6
        if state is _HostState.HOST_V6 and ch == "%":
            return _HostState.HOST_V6_ZONE_START
    elif state in (_HostState.HOST_V6_ZONE, _HostState.HOST_V6_ZONE_START):
        if state is _HostState.HOST_V6_ZONE and ch == "]":
            return _HostState.HOST_V6_END
        if ch in _ZONE_CHARS:
            return _HostState.HOST_V6_ZONE
    elif state in (_HostState.HOST_PORT, _HostState.HOST_PORT_START):
        if ch in _DIGITS:
            return _HostState.HOST_PORT

    return _HostState.DEAD


def _parse_host(url: str, spans: Dict[UrlField, Span], found_at: bool) -> None:
    """Split the raw host span into user information, host and port."""
    start, length = spans[UrlField.HOST]
    host_off, host_len = start, 0
    state = _HostState.USERINFO_START if found_at else _HostState.HOST_START

    for pos, ch in enumerate(url[start:start + length], start):
        new_state = _next_host_state(state, ch)
        if new_state is _HostState.DEAD:
            raise UrlParseError(f"invalid character {ch!r} in host at {pos}")

        if new_state in (_HostState.HOST, _HostState.HOST_V6):
            if state is not new_state:
                host_off = pos
            host_len += 1
        elif new_state in (_HostState.HOST_V6_ZONE_START, _HostState.HOST_V6_ZONE):
            host_len += 1
        elif new_state is _HostState.HOST_PORT:
            if state is not new_state:
                spans[UrlField.PORT] = (pos, 0)
            off, n = spans[UrlField.PORT]
            spans[UrlField.PORT] = (off, n + 1)
        elif new_state is _HostState.USERINFO:
            if state is not new_state:
                spans[UrlField.USERINFO] = (pos, 0)
            off, n = spans[UrlField.USERINFO]
            spans[UrlField.USERINFO] = (off, n + 1)

        state = new_state

    if state in _BAD_HOST_END:
        raise UrlParseError("host part ends unexpectedly")

    spans[UrlField.HOST] = (host_off, host_len)


def parse_url(url: str, is_connect: bool = False) -> UrlFields:
    """Split ``url`` into its components.

    With ``is_connect`` the input must be exactly ``host:port``, as in the
    target of a CONNECT request.  Raises :class:`UrlParseError` on bad input.
    """
    state = _State.SERVER_START if is_connect else _State.SPACES_BEFORE_URL
    spans: Dict[UrlField, Span] = {}
    current = None
    found_at = False

    for pos, ch in enumerate(url):
        state = _next_url_state(state, ch)

        if state is _State.DEAD:
            raise UrlParseError(f"invalid character {ch!r} at {pos}")
        if state in _SKIPPED:
            continue
        if state is _State.SERVER_WITH_AT:
            found_at = True

        uf = _STATE_FIELD[state]
        if uf is current:
            off, n = spans[uf]
            spans[uf] = (off, n + 1)
            continue

        spans[uf] = (pos, 1)
        current = uf

    if UrlField.SCHEMA in spans and UrlField.HOST not in spans:
        raise UrlParseError("a schema must be followed by a host")

    if UrlField.HOST in spans:
        _parse_host(url, spans, found_at)

    if is_connect and set(spans) != {UrlField.HOST, UrlField.PORT}:
        raise UrlParseError("a CONNECT target must be exactly host:port")

    port = 0
    if UrlField.PORT in spans:
        off, n = spans[UrlField.PORT]
        port = int(url[off:off + n])
        if port > _MAX_PORT:
            raise UrlParseError(f"port {port} out of range")

    return UrlFields(spans=spans, port=port)


def parser_version() -> int:
    """Return the parser version packed as major << 16 | minor << 8 | patch."""
    return VERSION_MAJOR << 16 | VERSION_MINOR << 8 | VERSION_PATCH