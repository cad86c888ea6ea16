"""Asyncio serial transport for Alchitry register interface communication."""

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

import aioserial
import serial
from serial.tools import list_ports

from .constants import DEFAULT_SIM_PORT, SIM_PREFIX
from .errors import (
    PortConfigError,
    PortOpenError,
    ReplyTimeoutError,
    TransportError,
    TransportReadError,
    TransportWriteError,
)
from .simulator import AlchitrySimulator

logger = logging.getLogger(__name__)


class SerialLink(Protocol):
    """An open, exclusively owned serial connection."""

    port: str

    async def configure(
        self,
        baud_rate: int,
        data_bits: int = serial.EIGHTBITS,
        stop_bits: float = serial.STOPBITS_ONE,
        parity: str = serial.PARITY_NONE,
    ) -> None: ...

    async def write_bytes(self, data: bytes) -> None: ...

    async def read_bytes(self, count: int, timeout: float) -> bytes: ...

    async def close(self) -> None: ...


class SerialTransport(Protocol):
    """Port discovery and opening.

    ``list_available`` may block; it is called from a worker thread.
    """

    def list_available(self) -> set[str]: ...

    async def open(self, port: str) -> SerialLink: ...


class AioSerialLink:
    """Serial link to real hardware using aioserial.

    The Alchitry register interface uses:
    - 8N1, no flow control
    - Binary frames, no line termination
    """

    # Extra time allowed for the executor read to return after the port timeout
    READ_GRACE = 0.5

    def __init__(self, port: str, serial_port: aioserial.AioSerial):
        """Wrap an already opened aioserial port.

        Args:
            port: Serial port path (e.g., '/dev/ttyUSB0', 'COM3')
            serial_port: Open aioserial instance
        """
        self.port = port
        self._serial = serial_port
        # Set while a read has not completed; late reply bytes may follow
        self._rx_stale = False

    async def configure(
        self,
        baud_rate: int,
        data_bits: int = serial.EIGHTBITS,
        stop_bits: float = serial.STOPBITS_ONE,
        parity: str = serial.PARITY_NONE,
    ) -> None:
        """Apply line parameters.

        Raises:
            PortConfigError: If the driver rejects any parameter
        """
        logger.debug(
            f"Configuring {self.port}: {baud_rate} baud {data_bits}{parity}{stop_bits}"
        )
        try:
            self._serial.baudrate = baud_rate
            self._serial.bytesize = data_bits
            self._serial.stopbits = stop_bits
            self._serial.parity = parity
        except (serial.SerialException, ValueError) as e:
            raise PortConfigError(
                f"Cannot configure {self.port} for {baud_rate} baud: {e}"
            ) from e

    async def write_bytes(self, data: bytes) -> None:
        """Write a complete frame.

        Input left over from a read that timed out, failed or was cancelled
        is discarded first, so it cannot be taken as this frame's reply.

        Raises:
            TransportWriteError: If the write fails or is short
        """
        try:
            if self._rx_stale:
                logger.debug(f"Discarding stale input on {self.port}")
                self._serial.reset_input_buffer()
                self._rx_stale = False

            logger.debug(f"TX: {data.hex(' ')}")
            written = await self._serial.write_async(data)
        except serial.SerialException as e:
            raise TransportWriteError(f"Write to {self.port} failed: {e}") from e

        if written != len(data):
            raise TransportWriteError(
                f"Wrote {written} of {len(data)} bytes to {self.port}"
            )

    async def read_bytes(self, count: int, timeout: float) -> bytes:
        """Read exactly ``count`` bytes.

        Args:
            count: Number of bytes expected
            timeout: Read timeout in seconds

        Returns:
            ``count`` bytes

        Raises:
            ReplyTimeoutError: If fewer than ``count`` bytes arrive in time
            TransportReadError: If the port reports an I/O error
        """
        if self._serial.timeout != timeout:
            self._serial.timeout = timeout

        self._rx_stale = True
        try:
            data = await asyncio.wait_for(
                self._serial.read_async(count), timeout=timeout + self.READ_GRACE
            )
        except TimeoutError:
            logger.error(f"Read timeout after {timeout}s")
            raise ReplyTimeoutError(
                f"No reply from {self.port} within {timeout}s"
            ) from None
        except serial.SerialException as e:
            raise TransportReadError(f"Read from {self.port} failed: {e}") from e

        if len(data) < count:
            logger.error(f"Read timeout after {timeout}s ({len(data)}/{count} bytes)")
            raise ReplyTimeoutError(
                f"Received {len(data)} of {count} bytes from {self.port} "
                f"within {timeout}s"
            )

        self._rx_stale = False
        logger.debug(f"RX: {data.hex(' ')}")
        return bytes(data)

    async def close(self) -> None:
        """Close the serial port.

        Raises:
            TransportError: If the driver fails to close the port
        """
        try:
            self._serial.close()
        except serial.SerialException as e:
            raise TransportError(f"Closing {self.port} failed: {e}") from e


class SimulatedLink:
    """In-process link to an :class:`AlchitrySimulator`.

    Replies produced by the simulator are buffered and handed out by
    :meth:`read_bytes` exactly as a serial receive buffer would.
    """

    def __init__(self, port: str, simulator: AlchitrySimulator):
        self.port = port
        self.simulator = simulator
        self.baud_rate: int | None = None
        self._rx = bytearray()
        self._rx_event = asyncio.Event()
        self._open = True
        self._rx_stale = False

    async def configure(
        self,
        baud_rate: int,
        data_bits: int = serial.EIGHTBITS,
        stop_bits: float = serial.STOPBITS_ONE,
        parity: str = serial.PARITY_NONE,
    ) -> None:
        if (
            baud_rate <= 0
            or data_bits not in serial.Serial.BYTESIZES
            or stop_bits not in serial.Serial.STOPBITS
            or parity not in serial.Serial.PARITIES
        ):
            raise PortConfigError(
                f"Cannot configure {self.port}: {baud_rate} baud "
                f"{data_bits}{parity}{stop_bits}"
            )
        self.baud_rate = baud_rate

    async def write_bytes(self, data: bytes) -> None:
        if not self._open:
            raise TransportWriteError(f"{self.port} is closed")

        if self._rx_stale:
            self._rx.clear()
            self._rx_stale = False

        logger.debug(f"TX: {data.hex(' ')}")
        reply = self.simulator.process_bytes(data)
        if reply:
            self._rx.extend(reply)
            self._rx_event.set()

    async def read_bytes(self, count: int, timeout: float) -> bytes:
        if not self._open:
            raise TransportReadError(f"{self.port} is closed")

        self._rx_stale = True
        try:
            await asyncio.wait_for(self._wait_for(count), timeout=timeout)
        except TimeoutError:
            logger.error(f"Read timeout after {timeout}s")
            raise ReplyTimeoutError(
                f"Received {len(self._rx)} of {count} bytes from {self.port} "
                f"within {timeout}s"
            ) from None

        data = bytes(self._rx[:count])
        del self._rx[:count]
        self._rx_stale = False
        logger.debug(f"RX: {data.hex(' ')}")
        return data

    async def _wait_for(self, count: int) -> None:
        while len(self._rx) < count:
            self._rx_event.clear()
            await self._rx_event.wait()

    async def close(self) -> None:
        self._open = False
        self._rx.clear()


class AioSerialTransport:
    """Opens hardware serial ports through aioserial.

    Supports simulation mode: ports named ``sim://<name>`` open an
    :class:`AlchitrySimulator` instead of real hardware. Each simulated port
    keeps its simulator (and register memory) for the life of the transport.
    """

    def __init__(self, sim_ports: Iterable[str] = (DEFAULT_SIM_PORT,)):
        """Initialize transport.

        Args:
            sim_ports: Simulated port names reported by :meth:`list_available`
        """
        self._sim_ports = set(sim_ports)
        self.simulators: dict[str, AlchitrySimulator] = {}

    def list_available(self) -> set[str]:
        """Serial port names that can currently be opened.

        Scans the system's serial devices and blocks while doing so; async
        callers should run it in a worker thread.
        """
        ports = {info.device for info in list_ports.comports()}
        return ports | self._sim_ports

    async def open(self, port: str) -> SerialLink:
        """Open a serial port or simulator.

        Raises:
            PortOpenError: If the port cannot be opened
        """
        if port.startswith(SIM_PREFIX):
            logger.info(f"Starting Alchitry simulator for {port}")
            simulator = self.simulators.setdefault(port, AlchitrySimulator())
            return SimulatedLink(port, simulator)

        logger.info(f"Opening {port}")
        try:
            serial_port = aioserial.AioSerial(port=port)
        except (serial.SerialException, ValueError) as e:
            raise PortOpenError(f"Cannot open {port}: {e}") from e

        return AioSerialLink(port, serial_port)
