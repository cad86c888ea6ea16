"""Alchitry register interface simulator for testing without real hardware.

Models the FPGA side of the binary register protocol, allowing testing and
development without a board attached. Consumes the raw command byte stream,
executes complete frames against a simulated register memory and produces
the reply bytes for read commands.
"""

import logging
import struct

from .constants import ADDRESS_MASK
from .frames import decode_header, decode_write_frame, frame_size

logger = logging.getLogger(__name__)


class AlchitrySimulator:
    """Software simulator for an Alchitry register interface slave.

    Registers are 32 bits wide and read as zero until written. Partial
    frames are buffered until the rest of their bytes arrive, as a UART
    receiver on the FPGA would.

    Attributes:
        memory: Register values keyed by address (unwritten registers omitted)
        frames_processed: Number of complete command frames executed
    """

    def __init__(self, defaults: dict[int, int] | None = None):
        """Initialize simulator.

        Args:
            defaults: Initial register values
        """
        self._defaults = dict(defaults or {})
        self.memory: dict[int, int] = dict(self._defaults)
        self.frames_processed = 0
        self._rx = bytearray()

    def process_bytes(self, data: bytes) -> bytes:
        """Feed command bytes and return any reply bytes produced.

        Args:
            data: Bytes written by the host (any split across frames)

        Returns:
            Concatenated little-endian replies for every read command
            completed by this chunk of input
        """
        self._rx.extend(data)
        reply = bytearray()

        while self._rx:
            size = frame_size(self._rx[0])
            if len(self._rx) < size:
                break
            frame = bytes(self._rx[:size])
            del self._rx[:size]
            reply.extend(self._execute(frame))
            self.frames_processed += 1

        return bytes(reply)

    def _execute(self, frame: bytes) -> bytes:
        header = decode_header(frame[0])

        if header.write:
            _, address, words = decode_write_frame(frame)
            for offset, word in enumerate(words):
                target = self._target(address, offset, header.increment)
                self.memory[target] = word
            logger.debug(
                f"Simulator: Write {header.length} word(s) at {address:#010x}"
                f"{' (increment)' if header.increment else ''}"
            )
            return b""

        (address,) = struct.unpack_from("<I", frame, 1)
        words = [
            self.memory.get(self._target(address, offset, header.increment), 0)
            for offset in range(header.length)
        ]
        logger.debug(
            f"Simulator: Read {header.length} word(s) at {address:#010x}"
            f"{' (increment)' if header.increment else ''}"
        )
        return struct.pack(f"<{header.length}I", *words)

    @staticmethod
    def _target(address: int, offset: int, increment: bool) -> int:
        if increment:
            return (address + offset) & ADDRESS_MASK
        return address

    @property
    def pending(self) -> int:
        """Number of buffered bytes belonging to an incomplete frame."""
        return len(self._rx)

    def reset(self) -> None:
        """Reset simulator to initial state."""
        self.memory = dict(self._defaults)
        self.frames_processed = 0
        self._rx.clear()
