"""8N1 byte framing with clock recovery.

Turns the per-sample symbol stream from the slicer into bytes. The framer
owns the frame index and the byte in progress; when to sample a bit is
decided by a synchronization policy:

- CountdownSync: fractional countdown to the next bit centre, re-armed at
  every symbol transition.
- CounterSync: integer counters of samples since the last edge, since the
  last byte and since the last bit.

Frame index:
    9       idle, waiting for a start edge
    0..7    data bit ticks, LSB first
    8       stop bit tick (must be mark)
"""

import sys
from abc import ABC, abstractmethod
from typing import Iterable, Optional, TextIO


IDLE = 9
STOP_BIT = 8


class SyncPolicy(ABC):
    """Decides when the framer starts a byte and when it samples a bit."""

    def __init__(self, samples_per_bit: float):
        self.samples_per_bit = samples_per_bit

    @abstractmethod
    def start(self, symbol: int, previous: int) -> bool:
        """Called once per sample while idle; True accepts a start bit."""

    @abstractmethod
    def tick(self, symbol: int, previous: int) -> bool:
        """Called once per sample while framing; True samples a bit now."""

    def end_of_byte(self) -> None:
        """Called after the stop bit tick."""

    @abstractmethod
    def reset(self) -> None:
        """Return to the power-on timing state."""


class CountdownSync(SyncPolicy):
    """Fractional countdown to the middle of the next bit.

    A falling edge while idle starts a byte with 1.5 bit periods to go,
    which lands the first tick mid-way through data bit 0. Any transition
    inside the byte re-arms the countdown to half a bit.
    """

    def __init__(self, samples_per_bit: float):
        super().__init__(samples_per_bit)
        self.samples_until_next_bit = 0.0

    def start(self, symbol: int, previous: int) -> bool:
        accepted = not symbol and previous
        if accepted:
            self.samples_until_next_bit = 1.5 * self.samples_per_bit
        self.samples_until_next_bit -= 1
        return bool(accepted)

    def tick(self, symbol: int, previous: int) -> bool:
        if symbol != previous:
            self.samples_until_next_bit = 0.5 * self.samples_per_bit

        due = self.samples_until_next_bit <= 0.5
        if due:
            self.samples_until_next_bit += self.samples_per_bit
        self.samples_until_next_bit -= 1
        return due

    def reset(self) -> None:
        self.samples_until_next_bit = 0.0


class CounterSync(SyncPolicy):
    """Integer elapsed-sample counters.

    While idle, a space symbol is taken as the middle of a start bit once
    both the samples since the last edge and the samples since the last
    byte meet the start window. With mode "exact" the edge counter must
    equal the window, which confirms an edge exactly that long ago; with
    "at_least" it only has to reach it.
    """

    def __init__(
        self,
        samples_per_bit: float,
        start_window: float = 0.5,
        mode: str = "at_least",
    ):
        super().__init__(samples_per_bit)
        if mode not in ("at_least", "exact"):
            raise ValueError(f"Unknown start window mode: {mode!r}")
        self.bit_samples = max(1, round(samples_per_bit))
        self.window = round(start_window * samples_per_bit)
        self.mode = mode

        self.samples_since_edge = 0
        self.samples_since_byte = 0
        self.samples_since_bit = 0

    def _count(self, symbol: int, previous: int) -> None:
        if symbol != previous:
            self.samples_since_edge = 0
        else:
            self.samples_since_edge += 1
        self.samples_since_byte += 1

    def _window_open(self) -> bool:
        if self.mode == "exact":
            edge_ok = self.samples_since_edge == self.window
        else:
            edge_ok = self.samples_since_edge >= self.window
        return edge_ok and self.samples_since_byte >= self.window

    def start(self, symbol: int, previous: int) -> bool:
        self._count(symbol, previous)
        if symbol or not self._window_open():
            return False
        self.samples_since_bit = 0
        return True

    def tick(self, symbol: int, previous: int) -> bool:
        self._count(symbol, previous)
        if symbol != previous:
            self.samples_since_bit = self.bit_samples // 2
        else:
            self.samples_since_bit += 1

        if self.samples_since_bit == self.bit_samples:
            self.samples_since_bit = 0
            return True
        return False

    def end_of_byte(self) -> None:
        self.samples_since_byte = 0

    def reset(self) -> None:
        self.samples_since_edge = 0
        self.samples_since_byte = 0
        self.samples_since_bit = 0


class ByteFramer:
    """Assemble 8N1 bytes from a per-sample symbol stream."""

    def __init__(
        self,
        sync: SyncPolicy,
        stderr: TextIO = sys.stderr,
        name: str = "framer",
    ):
        """Initialize framer.

        Args:
            sync: Bit timing policy
            stderr: Stream for framing diagnostics
            name: Component name used in diagnostics
        """
        self.sync = sync
        self.stderr = stderr
        self.name = name

        self.index = IDLE
        self.byte = 0
        self.previous = 1
        self.discarded = 0

    @property
    def idle(self) -> bool:
        return self.index == IDLE

    def feed(self, symbol: int) -> Optional[int]:
        """Consume one symbol; returns a byte when a frame completes."""
        previous = self.previous
        self.previous = symbol

        if self.index == IDLE:
            if self.sync.start(symbol, previous):
                self.index = 0
            return None

        if not self.sync.tick(symbol, previous):
            return None

        if self.index < STOP_BIT:
            if symbol:
                self.byte |= 1 << self.index
            else:
                self.byte &= ~(1 << self.index)
            self.index += 1
            return None

        # Stop bit: the only integrity check in the frame
        byte = self.byte
        self.byte = 0
        self.index = IDLE
        self.sync.end_of_byte()

        if symbol:
            return byte

        self.discarded += 1
        print(f"warning: {self.name}: discarding possible 0x{byte:02x}", file=self.stderr)
        return None

    def feed_many(self, symbols: Iterable[int]) -> bytes:
        """Consume a run of symbols, returning all completed bytes."""
        result = bytearray()
        for symbol in symbols:
            byte = self.feed(symbol)
            if byte is not None:
                result.append(byte)
        return bytes(result)

    def reset(self) -> None:
        self.index = IDLE
        self.byte = 0
        self.previous = 1
        self.discarded = 0
        self.sync.reset()


def make_sync(
    name: str,
    samples_per_bit: float,
    start_window: float = 0.5,
    start_window_mode: str = "at_least",
) -> SyncPolicy:
    """Create a sync policy by name."""
    if name == "countdown":
        return CountdownSync(samples_per_bit)
    if name == "counter":
        return CounterSync(samples_per_bit, start_window, start_window_mode)
    raise ValueError(f"Unknown sync policy: {name!r}")
