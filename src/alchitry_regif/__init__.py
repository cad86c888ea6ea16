"""Top level API.

This package provides asyncio-based serial communication with the register
interface of Alchitry FPGA boards.

It includes:
- RegisterInterface: Connection lifecycle and register read/write
- Frame codec: Bit-exact command and reply encoding
- Burst splitting: Transfers of any length in bursts of up to 64 words
- AioSerialTransport: Serial ports via aioserial, or ``sim://`` simulators
- AlchitrySimulator: Software model of the board side of the protocol

Example usage::

    from alchitry_regif import RegisterInterface

    regs = RegisterInterface()
    if await regs.connect("/dev/ttyUSB0", 1_000_000):
        try:
            await regs.write_register(0x01, 10)
            value = await regs.read_register(0x05)
            block = await regs.read_registers(0x100, 256)
        finally:
            await regs.disconnect()

.. data:: __version__
    :type: str

    Version number as calculated by https://github.com/pypa/setuptools_scm
"""

from ._version import __version__
from .bursts import Burst, split_bursts
from .constants import (
    BURST_READ_TIMEOUT,
    DEFAULT_BAUD_RATE,
    MAX_BURST_WORDS,
    SINGLE_READ_TIMEOUT,
)
from .errors import (
    ErrorKind,
    FramingError,
    PortConfigError,
    PortConnectionError,
    PortOpenError,
    RegisterInterfaceError,
    ReplyTimeoutError,
    TransportError,
    TransportReadError,
    TransportWriteError,
)
from .frames import (
    FrameHeader,
    decode_header,
    decode_read_reply,
    encode_header,
    encode_read_command,
    encode_write_frame,
)
from .protocol import RegisterInterface
from .simulator import AlchitrySimulator
from .transport import (
    AioSerialLink,
    AioSerialTransport,
    SerialLink,
    SerialTransport,
    SimulatedLink,
)

__all__ = [
    "__version__",
    # Protocol client
    "RegisterInterface",
    # Transport
    "SerialTransport",
    "SerialLink",
    "AioSerialTransport",
    "AioSerialLink",
    "SimulatedLink",
    "AlchitrySimulator",
    # Frame codec
    "FrameHeader",
    "encode_header",
    "decode_header",
    "encode_write_frame",
    "encode_read_command",
    "decode_read_reply",
    # Bursts
    "Burst",
    "split_bursts",
    "MAX_BURST_WORDS",
    "SINGLE_READ_TIMEOUT",
    "BURST_READ_TIMEOUT",
    "DEFAULT_BAUD_RATE",
    # Errors
    "ErrorKind",
    "RegisterInterfaceError",
    "PortConnectionError",
    "PortOpenError",
    "PortConfigError",
    "TransportError",
    "TransportWriteError",
    "TransportReadError",
    "ReplyTimeoutError",
    "FramingError",
]
