"""Wire constants and default timing for the register interface protocol.

Header byte layout::

    bit 7      direction (1 = write, 0 = read)
    bit 6      increment address per word
    bits 5-0   burst length - 1
"""

HEADER_WRITE = 0x80
HEADER_INCREMENT = 0x40
HEADER_LENGTH_MASK = 0x3F

MAX_BURST_WORDS = HEADER_LENGTH_MASK + 1
HEADER_SIZE = 5  # header byte + 32-bit address
WORD_SIZE = 4

ADDRESS_MASK = 0xFFFFFFFF
WORD_MASK = 0xFFFFFFFF
WORD_MIN = -0x80000000

# Reply timeouts in seconds, fixed per operation class
SINGLE_READ_TIMEOUT = 1.0
BURST_READ_TIMEOUT = 3.0

DEFAULT_BAUD_RATE = 1_000_000

SIM_PREFIX = "sim://"
DEFAULT_SIM_PORT = "sim://alchitry"
