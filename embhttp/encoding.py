"""Base64 and percent encoding helpers used when building requests."""

from __future__ import annotations

import base64
from typing import Union
from urllib.parse import quote

__all__ = ["b64_encode", "url_encode"]

BytesOrText = Union[bytes, bytearray, memoryview, str]


def _as_bytes(data: BytesOrText) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def b64_encode(data: BytesOrText) -> str:
    """Return the padded standard Base64 encoding of ``data``."""
    return base64.b64encode(_as_bytes(data)).decode("ascii")


def url_encode(text: BytesOrText) -> str:
    """Percent-encode every byte except ASCII letters, digits and ``-._~``.

    Text is encoded as UTF-8 first; escapes use upper-case hex digits.
    """
    return quote(_as_bytes(text), safe="")