import pytest

from embhttp.dht20 import (
    DHT20,
    AllZeroBytesError,
    ChecksumError,
    ConnectError,
    MissingBytesError,
    ReadTooSoonError,
    crc8,
)

CALIBRATED = 0x18


def make_frame(status, humidity_raw, temperature_raw, good_crc=True):
    body = bytes([
        status,
        (humidity_raw >> 12) & 0xFF,
        (humidity_raw >> 4) & 0xFF,
        ((humidity_raw & 0x0F) << 4) | ((temperature_raw >> 16) & 0x0F),
        (temperature_raw >> 8) & 0xFF,
        temperature_raw & 0xFF,
    ])
    crc = crc8(body)
    return body + bytes([crc if good_crc else crc ^ 0xFF])


class FakeBus:
    def __init__(self, statuses=(CALIBRATED,), frame=b"", write_status=0, register=b"\x12\x34\x56"):
        self.statuses = list(statuses)
        self.frame = frame
        self.write_status = write_status
        self.register = register
        self.writes = []

    def write(self, address, data):
        self.writes.append((address, bytes(data)))
        return self.write_status

    def read(self, address, count):
        if count == 1:
            if len(self.statuses) > 1:
                return bytes([self.statuses.pop(0)])
            return bytes(self.statuses[:1])
        if count == 3:
            return self.register
        return self.frame


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def make_sensor(bus, clock=None):
    return DHT20(bus, clock=clock or FakeClock(), sleep=lambda _s: None)


def test_crc8_sensirion_vector():
    assert crc8(b"\xbe\xef") == 0x92


def test_crc8_of_empty_is_initial_value():
    assert crc8(b"") == 0xFF


def test_crc8_appended_frame_checks():
    frame = make_frame(CALIBRATED, 12345, 54321)
    assert crc8(frame[:6]) == frame[6]


def test_is_connected_uses_bus_status():
    assert make_sensor(FakeBus()).begin() is True
    assert make_sensor(FakeBus(write_status=2)).is_connected() is False


def test_address_written_to():
    bus = FakeBus()
    make_sensor(bus).is_connected()
    assert bus.writes[0][0] == 0x38


def test_status_helpers():
    sensor = make_sensor(FakeBus(statuses=(0x88,)))
    assert sensor.is_calibrated()
    assert sensor.is_measuring()
    assert not sensor.is_idle()


def test_missing_status_byte_reads_as_ff():
    assert make_sensor(FakeBus(statuses=())).read_status() == 0xFF


def test_reset_not_needed_returns_255():
    bus = FakeBus(statuses=(CALIBRATED,))
    assert make_sensor(bus).reset_sensor() == 255
    assert bus.writes == []


def test_reset_all_registers():
    bus = FakeBus(statuses=(0x00,))
    assert make_sensor(bus).reset_sensor() == 3
    sent = [data for _addr, data in bus.writes]
    assert sent[0] == bytes([0x1B, 0, 0])
    assert sent[1] == bytes([0xB0 | 0x1B, 0x34, 0x56])


def test_reset_with_failing_bus_counts_zero():
    assert make_sensor(FakeBus(statuses=(0x00,), write_status=1)).reset_sensor() == 0


def test_read_minimum_values():
    bus = FakeBus(statuses=(CALIBRATED, 0x80, 0x80, CALIBRATED), frame=make_frame(CALIBRATED, 0, 1))
    sensor = make_sensor(bus)
    temperature, humidity = sensor.read()
    assert humidity == 0
    assert temperature == pytest.approx(-50, abs=1e-3)
    assert sensor.internal_status == CALIBRATED
    assert bytes([0xAC, 0x33, 0x00]) in [data for _a, data in bus.writes]


def test_read_increases_with_raw_values():
    low = make_sensor(FakeBus(frame=make_frame(CALIBRATED, 1000, 1000)))
    high = make_sensor(FakeBus(frame=make_frame(CALIBRATED, 900000, 900000)))
    t_low, h_low = low.read()
    t_high, h_high = high.read()
    assert h_high > h_low
    assert t_high > t_low
    assert 0 <= h_low < h_high <= 100


def test_offsets_are_applied():
    sensor = make_sensor(FakeBus(frame=make_frame(CALIBRATED, 5000, 5000)))
    temperature, humidity = sensor.read()
    sensor.temp_offset = 1.5
    sensor.hum_offset = -2.0
    assert sensor.temperature == pytest.approx(temperature + 1.5)
    assert sensor.humidity == pytest.approx(humidity - 2.0)


def test_read_too_soon():
    clock = FakeClock()
    sensor = make_sensor(FakeBus(frame=make_frame(CALIBRATED, 10, 10)), clock)
    sensor.read()
    clock.now += 0.5
    with pytest.raises(ReadTooSoonError):
        sensor.read()
    clock.now += 1.0
    assert sensor.read() == (sensor.temperature, sensor.humidity)


def test_last_read_and_request_recorded():
    clock = FakeClock()
    sensor = make_sensor(FakeBus(frame=make_frame(CALIBRATED, 10, 10)), clock)
    sensor.read()
    assert sensor.last_read == clock.now
    assert sensor.last_request == clock.now


def test_checksum_error():
    sensor = make_sensor(FakeBus(frame=make_frame(CALIBRATED, 10, 10, good_crc=False)))
    with pytest.raises(ChecksumError) as info:
        sensor.read()
    assert info.value.code == -10


def test_no_answer_is_connect_error():
    with pytest.raises(ConnectError):
        make_sensor(FakeBus(frame=b"")).read_data()


def test_short_frame_is_missing_bytes():
    with pytest.raises(MissingBytesError):
        make_sensor(FakeBus(frame=b"\x18\x01\x02")).read_data()


def test_all_zero_frame():
    with pytest.raises(AllZeroBytesError):
        make_sensor(FakeBus(frame=bytes(7))).read_data()


def test_read_data_returns_count():
    assert make_sensor(FakeBus(frame=make_frame(CALIBRATED, 7, 7))).read_data() == 7