"""Pytest configuration and transport doubles for alchitry-regif tests."""

import asyncio
import threading
from collections import deque

import pytest

from alchitry_regif import (
    PortConfigError,
    PortOpenError,
    RegisterInterface,
    ReplyTimeoutError,
    TransportError,
    TransportWriteError,
)

TEST_PORT = "/dev/ttyTEST0"


def pytest_addoption(parser):
    """Add command line options for testing."""
    parser.addoption(
        "--port",
        action="store",
        default=None,
        help="Alchitry serial port (e.g., /dev/ttyUSB0 or /tmp/vserial0)",
    )
    parser.addoption(
        "--baud",
        action="store",
        type=int,
        default=1_000_000,
        help="Baud rate for --port",
    )


class RecordingLink:
    """Link double that records every call and serves canned replies.

    A read that finds fewer bytes than requested raises ReplyTimeoutError,
    as a real link does when the device stops sending.
    """

    def __init__(self, port: str, transport: "RecordingTransport"):
        self.port = port
        self.transport = transport
        self.events: list[tuple] = []
        self.writes: list[bytes] = []
        self.replies: deque[bytes] = deque()
        self.baud_rate: int | None = None
        self.closed = False
        self.fail_write_at: int | None = None
        self.read_gate: asyncio.Event | None = None

    async def configure(self, baud_rate, data_bits=8, stop_bits=1, parity="N"):
        if self.transport.fail_configure:
            raise PortConfigError(f"Cannot configure {self.port}")
        self.baud_rate = baud_rate

    async def write_bytes(self, data: bytes) -> None:
        self.events.append(("write_start", bytes(data)))
        await asyncio.sleep(0)
        if self.fail_write_at is not None and len(self.writes) == self.fail_write_at:
            raise TransportWriteError(f"Write to {self.port} failed")
        self.writes.append(bytes(data))
        self.events.append(("write_end", bytes(data)))

    async def read_bytes(self, count: int, timeout: float) -> bytes:
        self.events.append(("read", count, timeout))
        if self.read_gate is not None:
            await self.read_gate.wait()
        await asyncio.sleep(0)
        reply = self.replies.popleft() if self.replies else b""
        if len(reply) < count:
            raise ReplyTimeoutError(f"Received {len(reply)} of {count} bytes")
        return reply

    async def close(self) -> None:
        if self.transport.fail_close:
            raise TransportError(f"Closing {self.port} failed")
        self.closed = True


class LoopbackLink(RecordingLink):
    """Link double that answers reads with the words of the last write."""

    async def write_bytes(self, data: bytes) -> None:
        await super().write_bytes(data)
        if data[0] & 0x80:
            self.replies.append(bytes(data[5:]))


class RecordingTransport:
    """Transport double listing fixed ports and handing out recording links."""

    def __init__(self, ports=(TEST_PORT,), link_class=RecordingLink):
        self.ports = set(ports)
        self.link_class = link_class
        self.opened: list[str] = []
        self.links: list[RecordingLink] = []
        self.fail_open = False
        self.fail_configure = False
        self.fail_close = False
        self.list_error: Exception | None = None
        self.list_threads: list[int] = []
        self.open_delay = 0.0

    def list_available(self) -> set[str]:
        self.list_threads.append(threading.get_ident())
        if self.list_error is not None:
            raise self.list_error
        return set(self.ports)

    async def open(self, port: str) -> RecordingLink:
        self.opened.append(port)
        await asyncio.sleep(self.open_delay)
        if self.fail_open:
            raise PortOpenError(f"Cannot open {port}")
        link = self.link_class(port, self)
        self.links.append(link)
        return link

    @property
    def link(self) -> RecordingLink:
        return self.links[-1]


@pytest.fixture
def test_port():
    return TEST_PORT


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
async def regs(transport):
    """RegisterInterface connected to a recording link."""
    regs = RegisterInterface(transport)
    assert await regs.connect(TEST_PORT)
    yield regs
    await regs.disconnect()


@pytest.fixture
def link(regs, transport):
    return transport.link


@pytest.fixture
async def loopback():
    """RegisterInterface whose link echoes written words back on read."""
    regs = RegisterInterface(RecordingTransport(link_class=LoopbackLink))
    assert await regs.connect(TEST_PORT)
    yield regs
    await regs.disconnect()
