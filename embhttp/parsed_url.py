"""Convenient access to the parts of an HTTP or WebSocket URL."""

from __future__ import annotations

from .url_parser import UrlField, UrlFields, parse_url

__all__ = ["ParsedUrl"]

_SECURE_SCHEMAS = frozenset({"https", "wss"})
_DEFAULT_PORT = 80
_SECURE_PORT = 443


def _component(url: str, fields: UrlFields, which: UrlField) -> str:
    span = fields.spans.get(which)
    if span is None:
        return ""
    offset, length = span
    return url[offset:offset + length]


class ParsedUrl:
    """A URL split into schema, host, port, path, query and user information.

    Missing components are empty strings.  Without an explicit port, 443 is
    used for ``https`` and ``wss`` and 80 otherwise; an empty path becomes
    ``"/"``.  The fragment is dropped because it is never sent in a request.
    Raises :class:`~embhttp.url_parser.UrlParseError` for malformed URLs.
    """

    __slots__ = ("port", "schema", "host", "path", "query", "userinfo")

    def __init__(self, url: str) -> None:
        fields = parse_url(url, False)
        self.schema = _component(url, fields, UrlField.SCHEMA)
        self.host = _component(url, fields, UrlField.HOST)
        self.path = _component(url, fields, UrlField.PATH) or "/"
        self.query = _component(url, fields, UrlField.QUERY)
        self.userinfo = _component(url, fields, UrlField.USERINFO)
        if fields.port:
            self.port = fields.port
        elif self.schema in _SECURE_SCHEMAS:
            self.port = _SECURE_PORT
        else:
            self.port = _DEFAULT_PORT

    def __repr__(self) -> str:
        parts = ", ".join(f"{name}={getattr(self, name)!r}" for name in self.__slots__)
        return f"ParsedUrl({parts})"