"""FSK (Frequency Shift Keying) modulation and demodulation.

Bell 103 style FSK, 8N1 framing:
- Mark (binary 1): 1270 Hz
- Space (binary 0): 1070 Hz
- Baud rate: 300 baud
- Sample rate: 11025 Hz, signed 16-bit

Each byte is sent as a start bit (space), eight data bits LSB first and a
stop bit (mark). The transmitter leads with ten bit periods of mark tone
so the receiver filters settle, and trails two more to flush them.
"""

import cmath
import sys
from typing import Iterable, Iterator, Optional, TextIO, Union

import numpy as np

from .config import ModemConfig, SAMPLE_RATE
from .discriminator import SymbolSlicer, make_discriminator
from ..datalink.framer import ByteFramer, make_sync


FULL_SCALE = 32767


class FSKModulator:
    """Modulate bytes into continuous-phase FSK samples."""

    def __init__(self, config: Optional[ModemConfig] = None):
        self.config = config or ModemConfig()
        self.samples_per_bit = self.config.samples_per_bit
        self.advance_mark = cmath.exp(2j * cmath.pi * self.config.mark_freq / self.config.sample_rate)
        self.advance_space = cmath.exp(2j * cmath.pi * self.config.space_freq / self.config.sample_rate)

        self.carrier = 1 + 0j
        self.samples_since_bit_start = 0.0

    def _emit(self, advance: complex, until: float) -> np.ndarray:
        """Rotate the carrier one sample at a time until the bit boundary."""
        samples = []
        carrier = self.carrier
        elapsed = self.samples_since_bit_start
        while elapsed < until:
            samples.append(round(carrier.imag * FULL_SCALE))
            carrier *= advance
            elapsed += 1
        self.carrier = carrier
        self.samples_since_bit_start = elapsed
        return np.array(samples, dtype=np.int16)

    def _renormalize(self) -> None:
        # First-order correction toward |carrier| == 1, no division or sqrt
        carrier = self.carrier
        magsquared = carrier.real * carrier.real + carrier.imag * carrier.imag
        self.carrier = carrier * (3.0 - magsquared) * 0.5

    def modulate_bit(self, bit: int) -> np.ndarray:
        """Generate samples for one symbol period."""
        advance = self.advance_mark if bit else self.advance_space
        samples = self._emit(advance, self.samples_per_bit)
        self.samples_since_bit_start -= self.samples_per_bit
        self._renormalize()
        return samples

    def modulate_byte(self, byte: int) -> np.ndarray:
        """Generate samples for one 8N1 frame (start, 8 data bits LSB first, stop)."""
        bits = [0] + [(byte >> i) & 1 for i in range(8)] + [1]
        return np.concatenate([self.modulate_bit(bit) for bit in bits])

    def preamble(self) -> np.ndarray:
        """Steady mark tone to let the receiver filters settle."""
        self.samples_since_bit_start -= self.config.preamble_bits * self.samples_per_bit
        samples = self._emit(self.advance_mark, 0.0)
        self._renormalize()
        return samples

    def postamble(self) -> np.ndarray:
        """Trailing mark tone to flush the receiver."""
        length = self.config.postamble_bits * self.samples_per_bit
        samples = self._emit(self.advance_mark, length)
        self.samples_since_bit_start -= length
        self._renormalize()
        return samples

    def modulate(self, data: bytes) -> np.ndarray:
        """Generate a complete transmission: preamble, frames, postamble."""
        chunks = [self.preamble()]
        for byte in data:
            chunks.append(self.modulate_byte(byte))
        chunks.append(self.postamble())
        return np.concatenate(chunks)

    def reset(self) -> None:
        """Reset the modulator state."""
        self.carrier = 1 + 0j
        self.samples_since_bit_start = 0.0


class FSKDemodulator:
    """Demodulate FSK samples into bytes, one sample at a time."""

    def __init__(
        self,
        config: Optional[ModemConfig] = None,
        stderr: TextIO = sys.stderr,
    ):
        """Initialize demodulator.

        Args:
            config: Modem parameters, Bell 103 originate by default
            stderr: Stream for framing diagnostics
        """
        self.config = config = config or ModemConfig()
        self.samples_per_bit = config.samples_per_bit

        self.discriminator = make_discriminator(config)
        self.slicer = SymbolSlicer(config.low_threshold, config.high_threshold)
        self.framer = ByteFramer(
            make_sync(
                config.sync,
                self.samples_per_bit,
                config.start_window,
                config.start_window_mode,
            ),
            stderr=stderr,
            name="demodulator",
        )

    def feed(self, sample: Union[int, float]) -> Optional[int]:
        """Consume one sample; returns a byte when a frame completes."""
        value = self.discriminator.decide(float(sample))
        return self.framer.feed(self.slicer.slice(value))

    def demodulate_stream(self, blocks: Iterable[Iterable]) -> Iterator[int]:
        """Yield bytes as they are recovered from a stream of sample blocks."""
        for block in blocks:
            if isinstance(block, np.ndarray):
                block = block.tolist()
            for sample in block:
                byte = self.feed(sample)
                if byte is not None:
                    yield byte

    def demodulate(self, samples: np.ndarray) -> bytes:
        """Demodulate a whole buffer of samples into bytes."""
        return bytes(self.demodulate_stream([samples]))

    @property
    def discarded(self) -> int:
        """Frames dropped for a bad stop bit."""
        return self.framer.discarded

    def reset(self) -> None:
        """Reset filters, slicer and framer to power-on state."""
        self.discriminator.reset()
        self.slicer.reset()
        self.framer.reset()


def generate_tone(freq: float, duration: float, sample_rate: float = SAMPLE_RATE) -> np.ndarray:
    """Generate a full-scale int16 test tone."""
    t = np.arange(int(duration * sample_rate)) / sample_rate
    return np.round(np.sin(2 * np.pi * freq * t) * FULL_SCALE).astype(np.int16)
