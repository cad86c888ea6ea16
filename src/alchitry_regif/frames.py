"""Command and reply frame codec.

Command frame layout::

    +--------+-----------------+--------------------------------+
    | Header |     Address     |  Words (write commands only)   |
    | 1 byte | 4 bytes, LE u32 |  length x 4 bytes, LE u32      |
    +--------+-----------------+--------------------------------+

Read replies have no header: exactly ``length x 4`` bytes of little-endian
words. The receiver already knows ``length`` from its own request.
"""

import struct
from collections.abc import Sequence
from typing import NamedTuple

from .constants import (
    ADDRESS_MASK,
    HEADER_INCREMENT,
    HEADER_LENGTH_MASK,
    HEADER_SIZE,
    HEADER_WRITE,
    MAX_BURST_WORDS,
    WORD_MASK,
    WORD_MIN,
    WORD_SIZE,
)
from .errors import FramingError

_ADDRESS_STRUCT = struct.Struct("<BI")


class FrameHeader(NamedTuple):
    """Decoded command header byte."""

    write: bool
    increment: bool
    length: int


def check_address(address: int) -> int:
    """Validate a 32-bit register address.

    Raises:
        ValueError: If address out of range
    """
    if not 0 <= address <= ADDRESS_MASK:
        raise ValueError(
            f"Register address {address:#x} out of range [0x0-{ADDRESS_MASK:#x}]"
        )
    return address


def to_word(value: int) -> int:
    """Convert a signed or unsigned 32-bit value to its unsigned wire form.

    Raises:
        ValueError: If value does not fit in 32 bits
    """
    if not WORD_MIN <= value <= WORD_MASK:
        raise ValueError(f"Word value {value:#x} does not fit in 32 bits")
    return value & WORD_MASK


def check_length(length: int) -> int:
    """Validate a single burst length.

    Raises:
        ValueError: If length outside [1, 64]
    """
    if not 1 <= length <= MAX_BURST_WORDS:
        raise ValueError(
            f"Burst length {length} out of range [1-{MAX_BURST_WORDS}]"
        )
    return length


def encode_header(write: bool, increment: bool, length: int) -> int:
    """Build the header byte for a burst of ``length`` words."""
    header = check_length(length) - 1
    if write:
        header |= HEADER_WRITE
    if increment:
        header |= HEADER_INCREMENT
    return header


def decode_header(header: int) -> FrameHeader:
    """Split a header byte into direction, increment flag and burst length."""
    return FrameHeader(
        write=bool(header & HEADER_WRITE),
        increment=bool(header & HEADER_INCREMENT),
        length=(header & HEADER_LENGTH_MASK) + 1,
    )


def frame_size(header: int) -> int:
    """Total command frame size in bytes implied by a header byte."""
    decoded = decode_header(header)
    if decoded.write:
        return HEADER_SIZE + WORD_SIZE * decoded.length
    return HEADER_SIZE


def encode_write_frame(address: int, increment: bool, words: Sequence[int]) -> bytes:
    """Encode a burst write command.

    Args:
        address: Target (or first target) register address
        increment: If True the device advances the address for every word
        words: 1 to 64 signed or unsigned 32-bit values

    Returns:
        ``5 + 4 * len(words)`` bytes ready for the wire

    Raises:
        ValueError: If address, word values or burst length out of range
    """
    header = encode_header(True, increment, len(words))
    payload = [to_word(word) for word in words]
    return _ADDRESS_STRUCT.pack(header, check_address(address)) + struct.pack(
        f"<{len(payload)}I", *payload
    )


def encode_read_command(address: int, increment: bool, length: int) -> bytes:
    """Encode a burst read command (5 bytes, no payload)."""
    header = encode_header(False, increment, length)
    return _ADDRESS_STRUCT.pack(header, check_address(address))


def decode_read_reply(data: bytes, length: int, signed: bool = False) -> list[int]:
    """Decode a read reply into words.

    Args:
        data: Raw reply bytes
        length: Burst length that was requested
        signed: Interpret words as two's complement

    Returns:
        ``length`` decoded words

    Raises:
        FramingError: If ``len(data)`` is not ``4 * length``
    """
    expected = WORD_SIZE * length
    if len(data) != expected:
        raise FramingError(
            f"Reply has {len(data)} bytes, expected {expected} for {length} words"
        )
    fmt = "i" if signed else "I"
    return list(struct.unpack(f"<{length}{fmt}", data))


def decode_write_frame(frame: bytes) -> tuple[FrameHeader, int, list[int]]:
    """Decode a complete write frame into header, address and words.

    Used on the device side of the link.

    Raises:
        FramingError: If the frame is not a complete write frame
    """
    if not frame:
        raise FramingError("Empty frame")
    header = decode_header(frame[0])
    if not header.write or len(frame) != frame_size(frame[0]):
        raise FramingError(f"Not a complete write frame: {frame.hex(' ')}")
    _, address = _ADDRESS_STRUCT.unpack_from(frame)
    words = list(struct.unpack_from(f"<{header.length}I", frame, HEADER_SIZE))
    return header, address, words
