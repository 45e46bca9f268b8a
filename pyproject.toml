[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "embhttp"
version = "0.1.0"
description = "Small HTTP/1.1 and WebSocket client over pluggable byte transports, with URL parsing, encoding helpers and a DHT20 sensor driver"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "websocket", "url", "base64", "dht20", "i2c", "sensor", "embedded"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["embhttp"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
