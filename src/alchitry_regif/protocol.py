"""Alchitry register interface protocol implementation.

This module implements the binary register protocol spoken by the Alchitry
register interface gateware, building on top of a serial link to provide
single and burst register read/write operations.

Protocol format:
- Write: <H><AAAA><DDDD>... -> no reply
- Read:  <H><AAAA>          -> <DDDD>...

Where:
- <H> = header byte: bit 7 write, bit 6 increment, bits 5-0 length - 1
- <AAAA> = 32-bit register address, little-endian
- <DDDD> = 32-bit word, little-endian, one per burst word (1-64)

Only one command is ever in flight: every frame exchange holds the client
lock from the first byte written to the last reply byte read.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from .bursts import split_bursts
from .constants import (
    BURST_READ_TIMEOUT,
    DEFAULT_BAUD_RATE,
    SINGLE_READ_TIMEOUT,
    WORD_SIZE,
)
from .errors import (
    PortConnectionError,
    RegisterInterfaceError,
    TransportError,
)
from .frames import (
    check_address,
    decode_read_reply,
    encode_read_command,
    encode_write_frame,
)
from .transport import AioSerialTransport, SerialLink, SerialTransport

logger = logging.getLogger(__name__)


class RegisterInterface:
    """Register interface protocol handler.

    Provides single and burst register read/write operations over a serial
    link to an Alchitry board. Transfers longer than one burst are split into
    independent frames of at most 64 words.

    Example::

        regs = RegisterInterface()
        async with regs.session("/dev/ttyUSB0"):
            await regs.write_register(0x10, 42)
            values = await regs.read_registers(0x20, 100)
    """

    def __init__(
        self,
        transport: SerialTransport | None = None,
        *,
        read_timeout: float = SINGLE_READ_TIMEOUT,
        burst_read_timeout: float = BURST_READ_TIMEOUT,
    ):
        """Initialize protocol handler.

        Args:
            transport: Port discovery/opening backend (aioserial by default)
            read_timeout: Reply timeout in seconds for single register reads
            burst_read_timeout: Reply timeout in seconds for each burst read,
                independent of the burst length
        """
        self.transport = transport if transport is not None else AioSerialTransport()
        self.read_timeout = read_timeout
        self.burst_read_timeout = burst_read_timeout
        self._link: SerialLink | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        """Check if a serial link is open."""
        return self._link is not None

    @property
    def port(self) -> str | None:
        """Name of the connected port, if any."""
        return self._link.port if self._link else None

    async def connect(self, port: str, baud_rate: int = DEFAULT_BAUD_RATE) -> bool:
        """Connect to the board on the given port at the given baud rate.

        Never raises for connection problems; the return value must be
        checked.

        Args:
            port: Serial port path (e.g., '/dev/ttyUSB0', 'COM3')
                  or 'sim://name' for simulator
            baud_rate: Line speed, 8N1 framing

        Returns:
            True if the port was opened and configured
        """
        if not port:
            logger.warning("No serial port given")
            return False

        async with self._lock:
            if self._link is not None:
                logger.warning(f"Already connected to {self._link.port}")
                return self._link.port == port

            try:
                # Port enumeration blocks, keep it off the event loop
                available = await asyncio.to_thread(self.transport.list_available)
            except OSError as e:
                logger.error(f"Failed to list serial ports: {e}")
                return False

            if port not in available:
                logger.warning(f"Serial port {port} not available")
                return False

            try:
                link = await self.transport.open(port)
            except PortConnectionError as e:
                logger.error(f"Failed to open {port}: {e}")
                return False

            try:
                await link.configure(baud_rate)
            except PortConnectionError as e:
                logger.error(f"Failed to configure {port}: {e}")
                try:
                    await link.close()
                except TransportError as close_error:
                    logger.warning(f"Failed to close {port}: {close_error}")
                return False

            self._link = link
            logger.info(f"Connected to {port} at {baud_rate} baud")
            return True

    async def disconnect(self) -> None:
        """Close the serial link.

        Waits for any command in flight to finish first.

        Raises:
            TransportError: If the port fails to close
        """
        async with self._lock:
            link, self._link = self._link, None
            if link is None:
                return

            logger.info(f"Disconnecting from {link.port}")
            await link.close()

    @asynccontextmanager
    async def session(
        self, port: str, baud_rate: int = DEFAULT_BAUD_RATE
    ) -> AsyncIterator["RegisterInterface"]:
        """Connect for the duration of an ``async with`` block.

        Raises:
            PortConnectionError: If the connection cannot be made
        """
        if not await self.connect(port, baud_rate):
            raise PortConnectionError(f"Could not connect to {port!r}")
        try:
            yield self
        finally:
            await self.disconnect()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()
        return False

    async def write_register(self, address: int, value: int) -> None:
        """Write a 32-bit value to a register.

        Args:
            address: Register address (0x00000000-0xFFFFFFFF)
            value: Signed or unsigned 32-bit value

        Raises:
            ValueError: If address or value out of range
            TransportWriteError: If the frame could not be written
        """
        frame = encode_write_frame(address, False, [value])
        logger.debug(f"Writing {value:#x} to register {address:#010x}")
        await self._exchange(frame)

    async def read_register(self, address: int, *, signed: bool = False) -> int:
        """Read a 32-bit register value.

        Args:
            address: Register address (0x00000000-0xFFFFFFFF)
            signed: Return the value as two's complement

        Returns:
            Register value

        Raises:
            ValueError: If address out of range
            TransportWriteError: If the command could not be written
            ReplyTimeoutError: If no reply within ``read_timeout``
            FramingError: If the reply has the wrong size
        """
        frame = encode_read_command(address, False, 1)
        logger.debug(f"Reading register {address:#010x}")
        reply = await self._exchange(
            frame, reply_size=WORD_SIZE, timeout=self.read_timeout
        )
        (value,) = decode_read_reply(reply, 1, signed=signed)
        logger.debug(f"Read {value:#x} from register {address:#010x}")
        return value

    async def write_registers(
        self, address: int, values: Iterable[int], increment: bool = True
    ) -> None:
        """Write multiple values to a fixed or incrementing address.

        Every frame is encoded before the first one is sent, so a bad value
        raises ``ValueError`` with nothing written.

        Args:
            address: First (or only) register address
            values: Signed or unsigned 32-bit values, any number
            increment: If True, write consecutive registers. If False, write
                every value to the same register.

        Raises:
            ValueError: If address or any value out of range
            RegisterInterfaceError: First failing burst, with
                ``completed_words`` set
        """
        values = list(values)
        check_address(address)
        frames = [
            (
                burst,
                encode_write_frame(
                    burst.address, increment, values[burst.start : burst.stop]
                ),
            )
            for burst in split_bursts(address, len(values), increment)
        ]

        logger.debug(
            f"Writing {len(values)} word(s) at {address:#010x} in "
            f"{len(frames)} burst(s), increment={increment}"
        )
        completed = 0
        for burst, frame in frames:
            try:
                await self._exchange(frame)
            except RegisterInterfaceError as e:
                e.completed_words = completed
                logger.error(
                    f"Burst write at {burst.address:#010x} failed after "
                    f"{completed} of {len(values)} word(s): {e}"
                )
                raise
            completed += burst.length

    async def read_registers(
        self,
        address: int,
        count: int,
        increment: bool = True,
        *,
        signed: bool = False,
    ) -> list[int]:
        """Read multiple values from a fixed or incrementing address.

        Args:
            address: First (or only) register address
            count: Number of words to read
            increment: If True, read consecutive registers. If False, read the
                same register ``count`` times.
            signed: Return values as two's complement

        Returns:
            ``count`` register values, in order

        Raises:
            ValueError: If address out of range or count negative
            RegisterInterfaceError: First failing burst, with
                ``completed_words`` set; no partial data is returned
        """
        check_address(address)
        bursts = list(split_bursts(address, count, increment))

        logger.debug(
            f"Reading {count} word(s) at {address:#010x} in "
            f"{len(bursts)} burst(s), increment={increment}"
        )
        values: list[int] = []
        for burst in bursts:
            frame = encode_read_command(burst.address, increment, burst.length)
            try:
                reply = await self._exchange(
                    frame,
                    reply_size=WORD_SIZE * burst.length,
                    timeout=self.burst_read_timeout,
                )
                values.extend(decode_read_reply(reply, burst.length, signed=signed))
            except RegisterInterfaceError as e:
                e.completed_words = len(values)
                logger.error(
                    f"Burst read at {burst.address:#010x} failed after "
                    f"{len(values)} of {count} word(s): {e}"
                )
                raise

        return values

    async def _exchange(
        self, frame: bytes, reply_size: int = 0, timeout: float | None = None
    ) -> bytes:
        """Send one frame and collect its reply under the client lock.

        Raises:
            RuntimeError: If not connected
        """
        async with self._lock:
            if self._link is None:
                raise RuntimeError("Not connected to Alchitry board")

            await self._link.write_bytes(frame)
            if not reply_size:
                return b""
            return await self._link.read_bytes(
                reply_size, self.read_timeout if timeout is None else timeout
            )
