"""Tests for the serial link implementations."""

import pytest

import gochi.serial_port as serial_port
from gochi.config import SerialConfig
from gochi.serial_port import (
    HardwareSerialPort,
    MockSerialPort,
    SerialConnectionError,
    create_serial_port,
    decode_line,
)


@pytest.fixture
def mock_port():
    return MockSerialPort(SerialConfig(timeout=0.05))


class FakeAioSerial:
    """Stands in for aioserial.AioSerial: records writes, replays reads."""

    def __init__(self, port=None, baudrate=None, timeout=None):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.writes: list[bytes] = []
        self.reads: list[bytes] = []
        self.closed = False

    async def write_async(self, data: bytes) -> int:
        self.writes.append(data)
        return len(data)

    async def read_until_async(self, expected: bytes = b"\n") -> bytes:
        return self.reads.pop(0) if self.reads else b""

    def close(self) -> None:
        self.closed = True


def test_decode_line_strips_terminators():
    assert decode_line(b"moisture=1800\r\n") == "moisture=1800"
    assert decode_line(b"ok\n") == "ok"
    assert decode_line(b"\xffbad\r\n") == "\ufffdbad"


def test_factory_follows_mock_flag():
    assert isinstance(create_serial_port(SerialConfig(mock=True)), MockSerialPort)
    assert isinstance(create_serial_port(SerialConfig(mock=False)), HardwareSerialPort)
    assert isinstance(
        create_serial_port(SerialConfig(mock=True), use_hardware=True),
        HardwareSerialPort,
    )


@pytest.mark.asyncio
async def test_mock_connection(mock_port):
    assert not mock_port.is_connected()
    await mock_port.connect()
    assert mock_port.is_connected()
    await mock_port.disconnect()
    assert not mock_port.is_connected()


@pytest.mark.asyncio
async def test_mock_write_and_read(mock_port):
    await mock_port.connect()
    await mock_port.write_line("0x80, 0x00")
    assert mock_port.written == ["0x80, 0x00"]

    mock_port.feed('{"temperature": 22}')
    assert await mock_port.read_line() == '{"temperature": 22}'
    # Nothing queued: read times out
    assert await mock_port.read_line() is None


@pytest.mark.asyncio
async def test_mock_requires_connection(mock_port):
    with pytest.raises(SerialConnectionError):
        await mock_port.write_line("x")
    with pytest.raises(SerialConnectionError):
        await mock_port.read_line()


@pytest.mark.asyncio
async def test_hardware_port_lines(monkeypatch):
    monkeypatch.setattr(serial_port, "AioSerial", FakeAioSerial)
    port = HardwareSerialPort(SerialConfig(port="/dev/ttyUSB0", mock=False))

    with pytest.raises(SerialConnectionError):
        await port.write_line("early")

    await port.connect()
    fake = port._serial
    assert fake.port == "/dev/ttyUSB0" and fake.baudrate == 115200

    await port.write_line("hello")
    assert fake.writes == [b"hello\n"]

    fake.reads = [b"light=1200\r\n", b"partial", b""]
    assert await port.read_line() == "light=1200"
    assert await port.read_line() is None
    assert await port.read_line() is None

    await port.disconnect()
    assert fake.closed
    assert not port.is_connected()


@pytest.mark.asyncio
async def test_hardware_line_split_across_reads(monkeypatch):
    monkeypatch.setattr(serial_port, "AioSerial", FakeAioSerial)
    port = HardwareSerialPort(SerialConfig(mock=False))
    await port.connect()

    port._serial.reads = [b'{"moist', b'ure": 1800}\r\n', b"a=1\nb=2\n"]
    assert await port.read_line() is None
    assert await port.read_line() == '{"moisture": 1800}'
    assert await port.read_line() == "a=1"
    assert await port.read_line() == "b=2"
    assert await port.read_line() is None


@pytest.mark.asyncio
async def test_hardware_short_write(monkeypatch):
    class ShortWrite(FakeAioSerial):
        async def write_async(self, data: bytes) -> int:
            return len(data) - 1

    monkeypatch.setattr(serial_port, "AioSerial", ShortWrite)
    port = HardwareSerialPort(SerialConfig(mock=False))
    await port.connect()
    with pytest.raises(SerialConnectionError, match="Short write"):
        await port.write_line("hello")


@pytest.mark.asyncio
async def test_hardware_connect_failure(monkeypatch):
    def refuse(**kwargs):
        raise OSError("No such file or directory")

    monkeypatch.setattr(serial_port, "AioSerial", refuse)
    port = HardwareSerialPort(SerialConfig(mock=False))
    with pytest.raises(SerialConnectionError, match="connect failed"):
        await port.connect()
    assert not port.is_connected()
