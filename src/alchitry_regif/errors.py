"""Exceptions raised by the register interface.

Every exception carries an :class:`ErrorKind` tag so callers can branch on
``err.kind`` instead of on the class hierarchy. The classes also derive from
the matching builtin (``ConnectionError``, ``OSError``, ``TimeoutError``) so
generic handlers keep working.
"""

from enum import Enum


class ErrorKind(Enum):
    """Category of a register interface failure."""

    CONNECTION = "connection"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    FRAMING = "framing"


class RegisterInterfaceError(Exception):
    """Base exception for register interface errors.

    Attributes:
        kind: Failure category
        completed_words: For multi-burst transfers, the number of words moved
            by the bursts that finished before the failure. ``None`` for
            single-frame operations.
    """

    kind: ErrorKind = ErrorKind.TRANSPORT
    completed_words: int | None = None


class PortConnectionError(RegisterInterfaceError, ConnectionError):
    """Serial port could not be opened or configured."""

    kind = ErrorKind.CONNECTION


class PortOpenError(PortConnectionError):
    """Raised by a transport when the port fails to open."""


class PortConfigError(PortConnectionError):
    """Raised by a link when line parameters cannot be applied."""


class TransportError(RegisterInterfaceError, OSError):
    """Low-level serial I/O failure."""

    kind = ErrorKind.TRANSPORT


class TransportWriteError(TransportError):
    """Writing a command frame to the link failed."""


class TransportReadError(TransportError):
    """Reading a reply from the link failed for a reason other than timeout."""


class ReplyTimeoutError(RegisterInterfaceError, TimeoutError):
    """Expected reply bytes did not arrive within the read timeout."""

    kind = ErrorKind.TIMEOUT


class FramingError(RegisterInterfaceError):
    """Reply size does not match the requested burst length."""

    kind = ErrorKind.FRAMING
