"""HTTP/1.1 and WebSocket client over pluggable transports, with URL parsing, encoding helpers and a DHT20 sensor driver."""

__version__ = "0.1.0"

__all__ = [
    "url_parser",
    "parsed_url",
    "encoding",
    "dht20",
    "http_request",
    "http_client",
    "websocket_client",
]