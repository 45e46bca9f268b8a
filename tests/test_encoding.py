import base64
import string
from urllib.parse import unquote, unquote_to_bytes

import pytest

from embhttp.encoding import b64_encode, url_encode


def test_b64_known_vector():
    assert b64_encode(b"foobar") == "Zm9vYmFy"


@pytest.mark.parametrize("data", [b"", b"a", b"ab", b"abc", b"amcewen", bytes(range(256))])
def test_b64_round_trip(data):
    assert base64.b64decode(b64_encode(data)) == data


@pytest.mark.parametrize("size", range(0, 10))
def test_b64_length_and_padding(size):
    encoded = b64_encode(b"x" * size)
    assert len(encoded) == (size + 2) // 3 * 4
    assert encoded.count("=") == (3 - size % 3) % 3


def test_b64_accepts_text():
    assert b64_encode("user:password") == b64_encode(b"user:password")


def test_url_encode_keeps_unreserved():
    unreserved = string.ascii_letters + string.digits + "-._~"
    assert url_encode(unreserved) == unreserved


def test_url_encode_space():
    assert url_encode("a b") == "a%20b"


@pytest.mark.parametrize("text", ["a/b?c=d&e", "héllo wörld", "100%", "x+y=z"])
def test_url_encode_round_trip(text):
    encoded = url_encode(text)
    assert unquote(encoded) == text
    assert all(ch in string.ascii_letters + string.digits + "-._~%" for ch in encoded)


def test_url_encode_every_byte_round_trips():
    data = bytes(range(256))
    assert unquote_to_bytes(url_encode(data)) == data


def test_url_encode_uses_upper_case_hex():
    encoded = url_encode(bytes([0xAB]))
    assert encoded == encoded.upper()
    assert encoded.startswith("%")