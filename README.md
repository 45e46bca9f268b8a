# embhttp

A compact HTTP/1.1 and WebSocket client that runs on top of any byte
transport you supply, together with the helpers that go with it. It has no
dependencies outside the standard library.

- `embhttp.url_parser`: a strict URL tokenizer. `parse_url(url, is_connect=False)`
  returns a `UrlFields` whose `spans` map each `UrlField` that is present to its
  `(offset, length)` in the input and whose `port` is the numeric port (0 when
  absent). Malformed input raises `UrlParseError` (a `ValueError`).
  `parser_version()` returns the version packed as `major << 16 | minor << 8 | patch`.
- `embhttp.parsed_url`: `ParsedUrl`, the schema, host, port, path, query and
  user information of a URL as strings.
- `embhttp.encoding`: `b64_encode` and `url_encode`.
- `embhttp.http_request` and `embhttp.http_client`: `HttpRequestClient` sends
  requests. `HttpClient` extends it to read status lines, headers and bodies,
  including chunked transfer encoding.
- `embhttp.websocket_client`: `WebSocketClient` upgrades an HTTP connection and
  sends and receives frames.
- `embhttp.dht20`: `DHT20`, a driver for the DHT20 temperature and humidity
  sensor over any `I2CBus`. `crc8` computes the sensor's checksum.

## Installation

```
pip install embhttp
```

## Parsing URLs

```python
from embhttp.parsed_url import ParsedUrl

url = ParsedUrl("wss://example.com/socket?x=1")
print(url.schema, url.host, url.port, url.path, url.query)
# wss example.com 443 /socket x=1
```

How `ParsedUrl` fills in its parts:

- A component that is missing is an empty string.
- An empty path becomes `"/"`.
- Without an explicit port, the port is 443 for `https` and `wss` and 80 otherwise.
- The fragment is dropped.

## Encoding helpers

```python
from embhttp.encoding import b64_encode, url_encode

b64_encode(b"hello")   # 'aGVsbG8='
url_encode("a b&c")    # 'a%20b%26c'
```

Both functions accept `bytes` or `str`; text is encoded as UTF-8 first.

`url_encode` leaves ASCII letters, digits and `-._~` as they are. Every other
byte is written as a `%XX` escape in upper-case hex.

## Making HTTP requests

You supply an object that implements the `Transport` interface, for example a
thin wrapper around a socket. It needs these methods: `connect(host, port)`,
`connected()`, `available()`, `read(size)`, `peek()`, `write(data)` and `stop()`.

```python
from embhttp.http_client import HttpClient

client = HttpClient(transport, "example.com", 80)
client.get("/status")
status = client.response_status_code()
body = client.response_body()
```

### Sending requests

- Methods: `get`, `post`, `put`, `patch` and `delete`. All but `get` take an
  optional content type and body; a body is sent with its `Content-Length`.
- Headers sent by default:
  - `Host`, only when the server is given as a name.
  - `User-Agent`.
  - `Connection: close`.
- Changing the defaults:
  - `no_default_request_headers()` drops `Host` and `User-Agent`.
  - `connection_keep_alive()` keeps the connection open between requests.
- Building headers by hand: call `begin_request()`, then `get(...)` (or another
  method), then `send_header(name, value)` and `send_basic_auth(user, password)`
  as needed, and finish with `end_request()`.
- `HttpRequestClient` is a context manager that calls `stop()` on exit.

### Reading the response

- `response_status_code()` skips informational (1xx) responses other than 101.
- `content_length()` returns `None` when the server sent no `Content-Length`.
- `response_body()` returns the body as text. Without a `Content-Length`, the
  body ends when no byte arrives within `read_timeout`.
- `available()`, `read()`, `read_bytes(size)` and `peek()` give byte-level access.
- `end_of_body_reached()` tells whether all of a body of known length has been read.

Headers can be walked one at a time:

```python
while client.header_available():
    print(client.read_header_name(), client.read_header_value())
```

Alternatively, `skip_response_headers()` discards them.

### Timeouts

Timeouts are in seconds and are set as attributes of the client:

| Attribute | Default | Covers |
| --- | --- | --- |
| `response_timeout` | 30 | the status line and headers |
| `read_timeout` | 1 | each body byte |
| `wait_for_data_delay` | 1 | the pause while waiting for data |

### Errors

All errors derive from `HttpError`:

- `HttpApiError`: a call was made in the wrong state.
- `ConnectionFailedError`: the transport cannot connect.
- `InvalidResponseError`: the status line is malformed.
- `HttpTimeoutError`: the response did not arrive in time.
- `HttpError` itself: `response_body()` received fewer bytes than announced.

## WebSockets

```python
from embhttp.websocket_client import MessageType, WebSocketClient

ws = WebSocketClient(transport, "example.com", 80)
ws.begin("/chat")
ws.begin_message(MessageType.TEXT)
ws.write(b"hello")
ws.end_message()

if ws.parse_message():
    print(ws.read_string())
```

The handshake:

- `begin(path)` performs the upgrade handshake.
- It raises `WebSocketError` when the server does not answer with status 101.
  The error's `status` attribute holds the status the server sent.

Sending:

- Outgoing messages are always sent masked.
- A message holds at most 128 bytes; data beyond that is dropped.
- `write` returns 0 when no message has been started.
- `ping()` sends a ping with 16 random bytes.
- An optional `random.Random` instance can be passed as `rng` to make keys and
  masks reproducible.

Receiving:

- `parse_message()` returns the size of the next frame's payload, or 0.
- Ping frames are answered with a pong.
- Pong frames are discarded.
- A close frame stops the connection.
- `message_type()` and `is_final()` describe the message last parsed.

## DHT20 sensor

```python
from embhttp.dht20 import DHT20

sensor = DHT20(bus)          # bus implements I2CBus.write / I2CBus.read
sensor.begin()               # True if the sensor answers
temperature, humidity = sensor.read()
```

Results and offsets:

- `temperature` and `humidity` hold the last measurement with the offsets
  applied.
- Set the offsets through `temp_offset` and `hum_offset`.

Errors from `read`:

- `read` may be called at most once per second.
- When a measurement cannot be taken, it raises a `DHT20Error` subclass:
  `ChecksumError`, `ConnectError`, `MissingBytesError`, `AllZeroBytesError` or
  `ReadTooSoonError`.
- Each error carries the driver's numeric status in `code`.

Status and timing:

- `read_status()`, `is_calibrated()`, `is_measuring()` and `is_idle()` read the
  sensor's status byte.
- `reset_sensor()` resets the calibration registers when needed.
- The clock and sleep functions can be passed to the constructor.

## What it does not do

embhttp does not open network connections itself. There is no socket or TLS
transport; you provide the `Transport` and the `I2CBus`. There is also no
command-line program.

## Running the tests

```
pip install embhttp[test]
pytest
```