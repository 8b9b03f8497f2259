"""
Serial Port I/O Boundary

This module provides the SerialPort classes for the newline-delimited text link
to the device. It abstracts away the hardware/mock distinction; a port instance
is owned by whoever consumes it (the portal), never held as module state.

Line format: outgoing lines end with "\\n"; incoming lines end with "\\r\\n"
(a bare "\\n" is accepted too).
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from serial import SerialException
from aioserial import AioSerial

from .config import SerialConfig


logger = logging.getLogger(__name__)

LINE_END = b"\n"


class SerialConnectionError(Exception):
    """Raised when serial connection operations fail."""

    pass


def decode_line(raw: bytes) -> str:
    return raw.rstrip(b"\r\n").decode("utf-8", errors="replace")


class SerialPort(ABC):
    """
    Abstract base class for the device serial link.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Connect to the serial port.

        Raises:
            SerialConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if serial port is connected."""
        pass

    @abstractmethod
    async def write_line(self, text: str) -> None:
        """
        Write one line (a trailing newline is appended).

        Raises:
            SerialConnectionError: If write operation fails
        """
        pass

    @abstractmethod
    async def read_line(self) -> Optional[str]:
        """
        Read one line without its terminator.

        Returns None when no complete line arrived within the port timeout;
        bytes of an unfinished line are kept for the next call.

        Raises:
            SerialConnectionError: If read operation fails
        """
        pass


class HardwareSerialPort(SerialPort):
    """
    Hardware serial port implementation using aioserial.
    """

    def __init__(self, config: SerialConfig):
        self.config = config
        self._serial: Optional[AioSerial] = None
        self._io_lock = asyncio.Lock()
        self._rx_buffer = bytearray()

    async def connect(self) -> None:
        """Connect to hardware serial port."""
        async with self._io_lock:
            try:
                self._serial = AioSerial(
                    port=self.config.port,
                    baudrate=self.config.baudrate,
                    timeout=self.config.timeout,
                )
                # Give the connection a moment to stabilize
                await asyncio.sleep(0.1)
                logger.info(f"Connected to hardware serial port {self.config.port}")

            except (SerialException, OSError, ValueError) as e:
                self._serial = None
                raise SerialConnectionError(
                    f"Hardware serial connect failed: {e}"
                ) from e

    async def disconnect(self) -> None:
        """Disconnect from hardware serial port."""
        async with self._io_lock:
            if self._serial:
                try:
                    self._serial.close()
                    logger.info("Disconnected from hardware serial port")
                except (SerialException, OSError) as e:
                    raise SerialConnectionError(
                        f"Hardware serial disconnect failed: {e}"
                    ) from e
                finally:
                    self._serial = None
                    self._rx_buffer.clear()

    def is_connected(self) -> bool:
        return self._serial is not None

    async def write_line(self, text: str) -> None:
        if not self._serial:
            raise SerialConnectionError("Not connected to hardware")

        payload = text.encode("utf-8") + LINE_END
        try:
            async with self._io_lock:
                bytes_written = await self._serial.write_async(payload)
        except (SerialException, OSError) as e:
            raise SerialConnectionError(f"Hardware write failed: {e}") from e
        if bytes_written != len(payload):
            raise SerialConnectionError(
                f"Short write: {bytes_written}/{len(payload)} bytes"
            )
        logger.debug(f"Sent {len(payload)} bytes to serial")

    async def read_line(self) -> Optional[str]:
        if not self._serial:
            raise SerialConnectionError("Not connected to hardware")

        if LINE_END not in self._rx_buffer:
            try:
                chunk = await self._serial.read_until_async(LINE_END)
            except (SerialException, OSError) as e:
                raise SerialConnectionError(f"Hardware read failed: {e}") from e
            # Timeout returns whatever arrived so far, possibly without terminator
            self._rx_buffer.extend(chunk)

        end = self._rx_buffer.find(LINE_END)
        if end < 0:
            if self._rx_buffer:
                logger.debug(f"Holding partial line ({len(self._rx_buffer)} bytes)")
            return None
        raw = bytes(self._rx_buffer[: end + 1])
        del self._rx_buffer[: end + 1]
        return decode_line(raw)


class MockSerialPort(SerialPort):
    """
    Mock serial port implementation for testing and development.

    Records written lines in `written`; lines queued with `feed()` are handed
    out by `read_line()`.
    """

    def __init__(self, config: SerialConfig):
        self.config = config
        self._connected = False
        self.written: List[str] = []
        self._incoming: "asyncio.Queue[str]" = asyncio.Queue()

    async def connect(self) -> None:
        """Simulate connecting to serial port."""
        await asyncio.sleep(0.01)  # Simulate connection delay
        self._connected = True
        logger.info(f"[MOCK] Connected to serial port {self.config.port}")

    async def disconnect(self) -> None:
        await asyncio.sleep(0.01)
        self._connected = False
        logger.info("[MOCK] Disconnected from serial port")

    def is_connected(self) -> bool:
        return self._connected

    def feed(self, line: str) -> None:
        """Queue a line as if the device had sent it."""
        self._incoming.put_nowait(line)

    async def write_line(self, text: str) -> None:
        if not self._connected:
            raise SerialConnectionError("Not connected to mock serial")

        self.written.append(text)
        logger.info(f"[MOCK] Wrote line ({len(text) + 1} bytes)")
        await asyncio.sleep(0)

    async def read_line(self) -> Optional[str]:
        if not self._connected:
            raise SerialConnectionError("Not connected to mock serial")

        try:
            return await asyncio.wait_for(
                self._incoming.get(), timeout=self.config.timeout
            )
        except asyncio.TimeoutError:
            return None


def create_serial_port(
    config: SerialConfig, use_hardware: Optional[bool] = None
) -> SerialPort:
    """
    Build the device link for the given serial settings.

    Args:
        config: Serial configuration
        use_hardware: Force hardware (True) or mock (False). If None, uses config.mock

    Returns:
        SerialPort: Hardware or mock implementation
    """
    if use_hardware is None:
        use_hardware = not config.mock

    if use_hardware:
        logger.info("Creating hardware serial port")
        return HardwareSerialPort(config)
    else:
        logger.info("Creating mock serial port")
        return MockSerialPort(config)
