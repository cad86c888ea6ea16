"""Unit tests for the command/reply frame codec.

Tests cover:
- Header bit layout
- Write frame and read command encoding
- Read reply decoding and size checks
- Value and address range checks
"""

import pytest

from alchitry_regif import ErrorKind, FramingError
from alchitry_regif.frames import (
    check_length,
    decode_header,
    decode_read_reply,
    decode_write_frame,
    encode_header,
    encode_read_command,
    encode_write_frame,
    frame_size,
    to_word,
)

# =============================================================================
# Header Tests
# =============================================================================


class TestHeader:
    """Tests for the header byte."""

    def test_length_field_is_length_minus_one(self):
        """Low 6 bits hold length - 1 for every legal burst length."""
        for length in range(1, 65):
            header = encode_header(False, False, length)
            assert header & 0x3F == length - 1
            assert header == length - 1

    def test_write_sets_bit_7(self):
        assert encode_header(True, False, 1) == 0x80

    def test_increment_sets_bit_6(self):
        assert encode_header(False, True, 1) == 0x40
        assert encode_header(True, True, 64) == 0xFF

    @pytest.mark.parametrize("length", [0, 65, -1])
    def test_length_out_of_range(self, length):
        with pytest.raises(ValueError, match="out of range"):
            encode_header(True, False, length)

    def test_decode_header(self):
        header = decode_header(0xC5)
        assert header.write is True
        assert header.increment is True
        assert header.length == 6

    def test_decode_read_header(self):
        header = decode_header(0x00)
        assert header.write is False
        assert header.increment is False
        assert header.length == 1

    def test_check_length_returns_length(self):
        assert check_length(64) == 64


# =============================================================================
# Write Frame Tests
# =============================================================================


class TestWriteFrame:
    """Tests for write frame encoding."""

    def test_single_write(self):
        """Writing 10 to address 1 produces the documented 9 bytes."""
        frame = encode_write_frame(1, False, [10])
        assert frame == bytes([0x80, 0x01, 0x00, 0x00, 0x00, 0x0A, 0x00, 0x00, 0x00])

    def test_address_little_endian(self):
        frame = encode_write_frame(0x12345678, False, [0])
        assert frame[1:5] == bytes([0x78, 0x56, 0x34, 0x12])

    def test_words_little_endian_in_order(self):
        frame = encode_write_frame(0, True, [0x11223344, 0xAABBCCDD])
        assert frame[0] == 0xC1
        assert frame[5:] == bytes([0x44, 0x33, 0x22, 0x11, 0xDD, 0xCC, 0xBB, 0xAA])

    def test_frame_size(self):
        for length in (1, 2, 17, 64):
            frame = encode_write_frame(0, True, [0] * length)
            assert len(frame) == 5 + 4 * length

    def test_negative_word(self):
        """Signed words are sent as 32-bit two's complement."""
        frame = encode_write_frame(0, False, [-1])
        assert frame[5:] == b"\xff\xff\xff\xff"

    def test_min_signed_word(self):
        frame = encode_write_frame(0, False, [-0x80000000])
        assert frame[5:] == b"\x00\x00\x00\x80"

    @pytest.mark.parametrize("value", [0x100000000, -0x80000001])
    def test_word_out_of_range(self, value):
        with pytest.raises(ValueError, match="32 bits"):
            encode_write_frame(0, False, [value])

    @pytest.mark.parametrize("address", [-1, 0x100000000])
    def test_address_out_of_range(self, address):
        with pytest.raises(ValueError, match="out of range"):
            encode_write_frame(address, False, [0])

    def test_too_many_words(self):
        with pytest.raises(ValueError, match="out of range"):
            encode_write_frame(0, True, [0] * 65)

    def test_no_words(self):
        with pytest.raises(ValueError, match="out of range"):
            encode_write_frame(0, True, [])

    def test_to_word(self):
        assert to_word(-2) == 0xFFFFFFFE
        assert to_word(0xFFFFFFFF) == 0xFFFFFFFF


# =============================================================================
# Read Command Tests
# =============================================================================


class TestReadCommand:
    """Tests for read command encoding."""

    def test_single_read(self):
        assert encode_read_command(5, False, 1) == bytes([0x00, 0x05, 0, 0, 0])

    def test_burst_read_header(self):
        frame = encode_read_command(0x100, True, 4)
        assert frame == bytes([0x43, 0x00, 0x01, 0x00, 0x00])

    def test_fixed_burst_read_header(self):
        assert encode_read_command(0, False, 64)[0] == 0x3F

    def test_read_command_has_no_payload(self):
        assert len(encode_read_command(0, True, 64)) == 5


# =============================================================================
# Read Reply Tests
# =============================================================================


class TestReadReply:
    """Tests for read reply decoding."""

    def test_single_word(self):
        assert decode_read_reply(bytes([0x2A, 0, 0, 0]), 1) == [42]

    def test_multiple_words(self):
        data = bytes([1, 0, 0, 0, 0xFF, 0xFF, 0xFF, 0xFF, 0, 0, 0, 0x80])
        assert decode_read_reply(data, 3) == [1, 0xFFFFFFFF, 0x80000000]

    def test_signed_words(self):
        data = bytes([0xFF, 0xFF, 0xFF, 0xFF, 0, 0, 0, 0x80])
        assert decode_read_reply(data, 2, signed=True) == [-1, -0x80000000]

    @pytest.mark.parametrize("size", [0, 3, 5, 12])
    def test_wrong_size(self, size):
        """Any reply that is not exactly 4 * length bytes is a framing error."""
        with pytest.raises(FramingError) as excinfo:
            decode_read_reply(bytes(size), 2)
        assert excinfo.value.kind is ErrorKind.FRAMING

    def test_write_payload_decodes_as_reply(self):
        """Words encoded into a write frame decode back from reply bytes."""
        words = [0, 1, 0xDEADBEEF, 0x7FFFFFFF]
        frame = encode_write_frame(0x40, True, words)
        assert decode_read_reply(frame[5:], len(words)) == words


# =============================================================================
# Frame Size / Device Side Tests
# =============================================================================


class TestDeviceSide:
    """Tests for helpers used on the receiving side of the link."""

    def test_frame_size_read(self):
        assert frame_size(0x3F) == 5

    def test_frame_size_write(self):
        assert frame_size(0x80) == 9
        assert frame_size(0xFF) == 5 + 4 * 64

    def test_decode_write_frame(self):
        frame = encode_write_frame(0xCAFE, False, [7, 8, 9])
        header, address, words = decode_write_frame(frame)
        assert header.write is True
        assert header.increment is False
        assert address == 0xCAFE
        assert words == [7, 8, 9]

    def test_decode_write_frame_rejects_read(self):
        with pytest.raises(FramingError):
            decode_write_frame(encode_read_command(0, False, 1))

    def test_decode_write_frame_rejects_truncated(self):
        frame = encode_write_frame(0, True, [1, 2])
        with pytest.raises(FramingError):
            decode_write_frame(frame[:-1])
