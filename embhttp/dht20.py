"""Driver for the DHT20 I2C temperature and humidity sensor."""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol, Sequence, Tuple

__all__ = [
    "I2CBus",
    "DHT20Error",
    "ChecksumError",
    "ConnectError",
    "MissingBytesError",
    "AllZeroBytesError",
    "ReadTooSoonError",
    "DHT20",
    "crc8",
]

ADDRESS = 0x38
FRAME_LENGTH = 7
MIN_READ_INTERVAL = 1.0  # seconds between two readings


def crc8(data: Sequence[int]) -> int:
    """CRC-8 with polynomial 0x31 and initial value 0xFF, as used by the sensor."""
    crc = 0xFF
    for byte in data:
        crc ^= byte
        for _ in range(8):
            crc = ((crc << 1) ^ 0x31) if crc & 0x80 else (crc << 1)
            crc &= 0xFF
    return crc


class I2CBus(Protocol):
    """The bus the sensor is attached to."""

    def write(self, address: int, data: bytes) -> int:
        """Send ``data`` to ``address``; return 0 on success, else an error status."""
        ...

    def read(self, address: int, count: int) -> bytes:
        """Request ``count`` bytes from ``address``; return what arrived."""
        ...


class DHT20Error(Exception):
    """Base class of sensor errors; ``code`` is the driver's numeric status."""

    code = 0


class ChecksumError(DHT20Error):
    code = -10


class ConnectError(DHT20Error):
    code = -11


class MissingBytesError(DHT20Error):
    code = -12


class AllZeroBytesError(DHT20Error):
    code = -13


class ReadTooSoonError(DHT20Error):
    code = -15


class DHT20:
    """A DHT20 sensor at the fixed address 0x38."""

    address = ADDRESS

    def __init__(
        self,
        bus: I2CBus,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._bus = bus
        self._clock = clock
        self._sleep = sleep
        self._humidity = 0.0
        self._temperature = 0.0
        self.hum_offset = 0.0
        self.temp_offset = 0.0
        self.internal_status = 0
        self.last_request: Optional[float] = None
        self.last_read: Optional[float] = None
        self._bits = bytes(FRAME_LENGTH)

    @property
    def humidity(self) -> float:
        """Relative humidity in percent, offset applied."""
        return self._humidity + self.hum_offset

    @property
    def temperature(self) -> float:
        """Temperature in degrees Celsius, offset applied."""
        return self._temperature + self.temp_offset

    def begin(self) -> bool:
        """Check that the sensor answers on the bus."""
        return self.is_connected()

    def is_connected(self) -> bool:
        return self._bus.write(self.address, b"") == 0

    def reset_sensor(self) -> int:
        """Reset the calibration registers if the status asks for it.

        Returns 255 when no reset was needed, otherwise the number of
        registers reset successfully (3 means all went well).
        """
        if (self.read_status() & 0x18) == 0x18:
            return 255
        count = sum(self._reset_register(reg) for reg in (0x1B, 0x1C, 0x1E))
        self._sleep(0.010)
        return count

    def read(self) -> Tuple[float, float]:
        """Measure and return ``(temperature, humidity)``, blocking until ready."""
        if self.last_read is not None and self._clock() - self.last_read < MIN_READ_INTERVAL:
            raise ReadTooSoonError("the sensor may be read at most once per second")
        self.request_data()
        while self.is_measuring():
            self._sleep(0)
        self.read_data()
        self.convert()
        return self.temperature, self.humidity

    def request_data(self) -> int:
        """Trigger a measurement; return the bus status of the command."""
        self.reset_sensor()
        status = self._bus.write(self.address, bytes([0xAC, 0x33, 0x00]))
        self.last_request = self._clock()
        return status

    def read_data(self) -> int:
        """Fetch the raw measurement frame; return the number of bytes read."""
        data = bytes(self._bus.read(self.address, FRAME_LENGTH))
        if not data:
            raise ConnectError("sensor did not answer")
        if len(data) < FRAME_LENGTH:
            raise MissingBytesError(f"expected {FRAME_LENGTH} bytes, got {len(data)}")
        self._bits = data[:FRAME_LENGTH]
        if not any(self._bits):
            raise AllZeroBytesError("sensor returned only zero bytes")
        self.last_read = self._clock()
        return len(data)

    def convert(self) -> None:
        """Turn the raw frame into temperature and humidity; verify its checksum."""
        bits = self._bits
        self.internal_status = bits[0]
        raw = (bits[1] << 12) | (bits[2] << 4) | (bits[3] >> 4)
        self._humidity = raw * 9.5367431640625e-5
        raw = ((bits[3] & 0x0F) << 16) | (bits[4] << 8) | bits[5]
        self._temperature = raw * 1.9073486328125e-4 - 50
        if crc8(bits[:6]) != bits[6]:
            raise ChecksumError("checksum of the measurement frame does not match")

    def read_status(self) -> int:
        data = self._bus.read(self.address, 1)
        self._sleep(0.001)
        return data[0] if data else 0xFF

    def is_calibrated(self) -> bool:
        return (self.read_status() & 0x08) == 0x08

    def is_measuring(self) -> bool:
        return (self.read_status() & 0x80) == 0x80

    def is_idle(self) -> bool:
        return (self.read_status() & 0x80) == 0x00

    def _reset_register(self, reg: int) -> bool:
        if self._bus.write(self.address, bytes([reg, 0x00, 0x00])) != 0:
            return False
        self._sleep(0.005)
        value = bytes(self._bus.read(self.address, 3)).ljust(3, b"\x00")
        self._sleep(0.010)
        if self._bus.write(self.address, bytes([0xB0 | reg, value[1], value[2]])) != 0:
            return False
        self._sleep(0.005)
        return True