"""Mark/space decision metrics and the hysteresis slicer.

Two interchangeable discriminators turn raw samples into a decision value
in [0, 1] (1 = mark, 0 = space):

- PowerRatioDiscriminator: compares the output power of two resonant
  filters, one near each tone (AM style).
- PhaseDifferenceDiscriminator: measures the instantaneous frequency at the
  output of a single filter centred between the tones (FM style).

SymbolSlicer turns the decision value into a debounced binary symbol.
"""

import cmath
import math
from typing import Union

from .config import ModemConfig
from .filters import ComplexResonantFilter, butterworth_biquads, butterworth_response


def _magsquared(x: complex) -> float:
    return x.real * x.real + x.imag * x.imag


class PowerRatioDiscriminator:
    """Normalized power ratio between a mark filter and a space filter."""

    def __init__(self, config: ModemConfig):
        self.config = config
        fm, fs = config.mark_freq, config.space_freq

        # Push filters at least one baud apart for better opposite-tone rejection
        f_diff = math.copysign(max(config.baud_rate, abs(fm - fs)), fm - fs)
        self.mark_center = 0.5 * (fm + fs + f_diff)
        self.space_center = 0.5 * (fm + fs - f_diff)

        # 3 dB corner of the low-pass prototype behind each filter
        self.corner = 0.5 * config.baud_rate
        stages = butterworth_biquads(config.filter_poles, config.sample_rate, self.corner)

        self.mark_filter = ComplexResonantFilter(stages, self.mark_center, config.sample_rate)
        self.space_filter = ComplexResonantFilter(stages, self.space_center, config.sample_rate)

        # Power the mark filter passes for a space tone (and vice versa)
        self.opposite_response = butterworth_response(
            self.mark_center - fs, self.corner, config.sample_rate, config.filter_poles
        )
        self.normalize = 0.5 * (1.0 + self.opposite_response) / (1.0 - self.opposite_response)

    def decide(self, sample: Union[int, float, complex]) -> float:
        """Decision value for one input sample."""
        mm = _magsquared(self.mark_filter(sample))
        ss = _magsquared(self.space_filter(sample))
        total = mm + ss
        if total == 0.0:
            return 0.5
        return 0.5 + self.normalize * (mm - ss) / total

    def reset(self) -> None:
        self.mark_filter.reset()
        self.space_filter.reset()


class PhaseDifferenceDiscriminator:
    """Instantaneous frequency around the tone midpoint, mapped to [0, 1]."""

    def __init__(self, config: ModemConfig):
        self.config = config
        self.center = config.center_freq

        # Wide enough to pass both tones plus half the signalling rate
        self.corner = 0.5 * abs(config.shift) + 0.5 * config.baud_rate
        stages = butterworth_biquads(config.filter_poles, config.sample_rate, self.corner)
        self.filter = ComplexResonantFilter(stages, self.center, config.sample_rate)

        self._scale = config.sample_rate / (2.0 * math.pi * config.shift)
        self._previous = 0j

    def decide(self, sample: Union[int, float, complex]) -> float:
        """Decision value for one input sample."""
        filtered = self.filter(sample)
        previous = self._previous
        self._previous = filtered

        if filtered == 0j or previous == 0j:
            return 0.5

        # Rotation beyond the expected carrier advance, in radians per sample
        delta = cmath.phase(filtered * (previous * self.filter.advance).conjugate())
        value = 0.5 + delta * self._scale
        return min(1.0, max(0.0, value))

    def reset(self) -> None:
        self.filter.reset()
        self._previous = 0j


Discriminator = Union[PowerRatioDiscriminator, PhaseDifferenceDiscriminator]


def make_discriminator(config: ModemConfig) -> Discriminator:
    """Create the discriminator named by config.discriminator."""
    if config.discriminator == "power":
        return PowerRatioDiscriminator(config)
    if config.discriminator == "phase":
        return PhaseDifferenceDiscriminator(config)
    raise ValueError(f"Unknown discriminator: {config.discriminator!r}")


class SymbolSlicer:
    """Binary symbol from a decision value, with hysteresis.

    From mark the output only drops once the value falls below the low
    threshold; from space it only rises once the value exceeds the high
    threshold. Edge detection on the output belongs to the byte framer.
    """

    def __init__(self, low: float = 0.25, high: float = 0.75, initial: int = 1):
        if not low < 0.5 < high:
            raise ValueError(f"Thresholds must straddle 0.5: {low}, {high}")
        self.low = low
        self.high = high
        self.initial = initial
        self.symbol = initial

    def slice(self, value: float) -> int:
        """Update and return the current symbol."""
        if self.symbol:
            self.symbol = 0 if value < self.low else 1
        else:
            self.symbol = 1 if value > self.high else 0
        return self.symbol

    def reset(self) -> None:
        self.symbol = self.initial
