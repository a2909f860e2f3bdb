"""Butterworth filter synthesis and the complex resonant filter.

The low-pass prototype is designed once per session as a cascade of
biquads. The resonant filter runs that low-pass with complex memory that
is rotated by the carrier every sample, which re-centres the passband on
the carrier without mixing the input down to baseband first.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy import signal


@dataclass(frozen=True)
class BiquadStage:
    """One conjugate-pole-pair section: numerator and denominator taps."""

    num: tuple[float, float, float]
    den: tuple[float, float, float]


def butterworth_biquads(
    poles: int, sample_rate: float, corner: float
) -> list[BiquadStage]:
    """Design an even-order Butterworth low-pass as cascaded biquads.

    Args:
        poles: Number of poles, must be even
        sample_rate: Sample rate in Hz
        corner: 3 dB corner frequency in Hz

    Returns:
        poles // 2 stages, each normalized to unity gain at DC
    """
    if poles <= 0 or poles % 2:
        raise ValueError(f"Pole count must be positive and even: {poles}")
    if not 0 < corner < sample_rate / 2:
        raise ValueError(
            f"Corner frequency {corner} Hz outside (0, {sample_rate / 2}) Hz"
        )

    # Prewarp corner frequency for bilinear transform
    wc = 2.0 * np.tan(np.pi * corner / sample_rate)

    stages = []
    for i in range(poles // 2):
        # Analog pole; its conjugate is the other pole of this stage
        apole = wc * np.exp(1j * np.pi * (2.0 * (i + 1) + poles - 1.0) / (2 * poles))
        dpole = (2.0 - apole) / (2.0 + apole)

        num = np.array([1.0, 2.0, 1.0])
        den = np.array([abs(dpole) ** 2, -2.0 * dpole.real, 1.0])

        # Leading denominator tap to 1, unit gain at z = 1
        den_scale = 1.0 / den[0]
        num_scale = den_scale * den.sum() / 4.0
        num *= num_scale
        den *= den_scale

        stages.append(BiquadStage(
            num=tuple(float(c) for c in num),
            den=tuple(float(c) for c in den),
        ))

    return stages


def butterworth_response(
    freq: float, corner: float, sample_rate: float, poles: int
) -> float:
    """Squared magnitude of the bilinear Butterworth low-pass at freq."""
    ratio = np.tan(np.pi * freq / sample_rate) / np.tan(np.pi * corner / sample_rate)
    return float(1.0 / (1.0 + ratio ** (2 * poles)))


def cascade_response(
    stages: Sequence[BiquadStage], freqs, sample_rate: float
) -> np.ndarray:
    """Complex frequency response of a biquad cascade at freqs (Hz)."""
    freqs = np.atleast_1d(np.asarray(freqs, dtype=np.float64))
    response = np.ones(len(freqs), dtype=np.complex128)
    for stage in stages:
        _, h = signal.freqz(stage.num, stage.den, worN=freqs, fs=sample_rate)
        response *= h
    return response


class ComplexResonantFilter:
    """Low-pass cascade shifted up to a carrier frequency.

    Coefficients stay real; only the running state is complex. After each
    stage update both memory cells are advanced by the carrier rotation, so
    the impulse response becomes h[n] * exp(j*2*pi*center*n/fs).
    """

    def __init__(
        self,
        stages: Sequence[BiquadStage],
        center: float,
        sample_rate: float,
    ):
        self.stages = list(stages)
        self.center = center
        self.sample_rate = sample_rate
        self.advance = complex(np.exp(2j * np.pi * center / sample_rate))

        # Two memory cells per stage, owned by this filter only
        self._memory: list[list[complex]] = [[0j, 0j] for _ in self.stages]

    def filter(self, x: complex) -> complex:
        """Push one sample through the cascade, returning the complex output."""
        advance = self.advance
        y = x
        for stage, memory in zip(self.stages, self._memory):
            b0, b1, b2 = stage.num
            _, a1, a2 = stage.den
            m0, m1 = memory

            v = y - a1 * m0 - a2 * m1
            y = b0 * v + b1 * m0 + b2 * m1

            memory[1] = advance * m0
            memory[0] = advance * v
        return y

    __call__ = filter

    def reset(self) -> None:
        """Clear the filter memory."""
        for memory in self._memory:
            memory[0] = 0j
            memory[1] = 0j

    @property
    def state(self) -> tuple[complex, ...]:
        """Snapshot of the memory cells, stage by stage."""
        return tuple(cell for memory in self._memory for cell in memory)
