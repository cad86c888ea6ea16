"""Splitting of long transfers into protocol bursts."""

from collections.abc import Iterator
from typing import NamedTuple

from .constants import ADDRESS_MASK, MAX_BURST_WORDS


class Burst(NamedTuple):
    """One frame worth of a longer transfer.

    Attributes:
        address: Register address carried in this burst's frame
        start: Offset of the first word within the whole transfer
        length: Number of words in this burst (1-64)
    """

    address: int
    start: int
    length: int

    @property
    def stop(self) -> int:
        return self.start + self.length


def split_bursts(address: int, count: int, increment: bool) -> Iterator[Burst]:
    """Plan the bursts for a transfer of ``count`` words.

    With ``increment`` each burst starts where the previous one ended, in the
    same way the device advances the address word by word inside a burst.
    Without it every burst targets ``address``.

    Raises:
        ValueError: If count is negative
    """
    if count < 0:
        raise ValueError(f"Word count {count} must not be negative")

    for start in range(0, count, MAX_BURST_WORDS):
        length = min(count - start, MAX_BURST_WORDS)
        yield Burst(address, start, length)
        if increment:
            address = (address + length) & ADDRESS_MASK
