"""Modem configuration: profiles and environment overrides.

Profiles:
- bell103:        originate side, mark 1270 Hz, space 1070 Hz, 300 baud
- bell103-answer: answer side, mark 2225 Hz, space 2025 Hz, 300 baud
- bell202:        mark 1200 Hz, space 2200 Hz, 1200 baud

Environment variables (override the selected profile):
- MODEM_PROFILE: Profile name
- MODEM_SAMPLE_RATE: Sample rate in Hz
- MODEM_BAUD: Symbol rate in baud
- MODEM_MARK_FREQ: Mark (binary 1) frequency in Hz
- MODEM_SPACE_FREQ: Space (binary 0) frequency in Hz
"""

import os
from dataclasses import dataclass, replace
from typing import Optional


# Bell 103 originate defaults
SAMPLE_RATE = 11025  # Hz
MARK_FREQ = 1270     # Hz (binary 1)
SPACE_FREQ = 1070    # Hz (binary 0)
BAUD_RATE = 300      # symbols per second

DISCRIMINATORS = ("power", "phase")
SYNC_POLICIES = ("countdown", "counter")
WINDOW_MODES = ("at_least", "exact")


@dataclass(frozen=True)
class ModemConfig:
    """Fixed parameters of one modem session."""

    sample_rate: float = SAMPLE_RATE
    mark_freq: float = MARK_FREQ
    space_freq: float = SPACE_FREQ
    baud_rate: float = BAUD_RATE

    filter_poles: int = 4
    low_threshold: float = 0.25
    high_threshold: float = 0.75

    discriminator: str = "power"
    sync: str = "countdown"
    start_window: float = 0.5
    start_window_mode: str = "at_least"

    preamble_bits: float = 10.0
    postamble_bits: float = 2.0

    def __post_init__(self):
        nyquist = self.sample_rate / 2
        if self.sample_rate <= 0 or self.baud_rate <= 0:
            raise ValueError(
                f"Sample rate and baud must be positive: {self.sample_rate}, {self.baud_rate}"
            )
        for name in ("mark_freq", "space_freq"):
            freq = getattr(self, name)
            if not 0 < freq < nyquist:
                raise ValueError(f"{name} {freq} Hz outside (0, {nyquist}) Hz")
        if self.mark_freq == self.space_freq:
            raise ValueError("Mark and space frequencies must differ")
        if self.baud_rate > self.sample_rate / 2:
            raise ValueError(f"Baud {self.baud_rate} too high for {self.sample_rate} Hz")
        if self.filter_poles <= 0 or self.filter_poles % 2:
            raise ValueError(f"Pole count must be positive and even: {self.filter_poles}")
        if not 0.0 <= self.low_threshold < 0.5 < self.high_threshold <= 1.0:
            raise ValueError(
                f"Thresholds must straddle 0.5: {self.low_threshold}, {self.high_threshold}"
            )
        if self.discriminator not in DISCRIMINATORS:
            raise ValueError(f"Unknown discriminator: {self.discriminator!r}")
        if self.sync not in SYNC_POLICIES:
            raise ValueError(f"Unknown sync policy: {self.sync!r}")
        if self.start_window_mode not in WINDOW_MODES:
            raise ValueError(f"Unknown start window mode: {self.start_window_mode!r}")
        if self.start_window < 0:
            raise ValueError(f"Start window must not be negative: {self.start_window}")
        if min(self.preamble_bits, self.postamble_bits) < 0:
            raise ValueError("Preamble and postamble lengths must not be negative")

    @property
    def samples_per_bit(self) -> float:
        """Samples per symbol, generally not an integer."""
        return self.sample_rate / self.baud_rate

    @property
    def center_freq(self) -> float:
        """Midpoint between the two tones."""
        return 0.5 * (self.mark_freq + self.space_freq)

    @property
    def shift(self) -> float:
        """Signed mark minus space separation."""
        return self.mark_freq - self.space_freq

    def with_overrides(self, **overrides) -> "ModemConfig":
        """Copy with the given fields replaced, ignoring None values."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


PROFILES: dict[str, ModemConfig] = {
    "bell103": ModemConfig(),
    "bell103-answer": ModemConfig(mark_freq=2225, space_freq=2025),
    "bell202": ModemConfig(mark_freq=1200, space_freq=2200, baud_rate=1200),
}

DEFAULT_PROFILE = "bell103"


def get_profile(name: str) -> ModemConfig:
    """Look up a named profile."""
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown profile {name!r} (choose from {', '.join(PROFILES)})"
        ) from None


def get_float_from_env(var_name: str) -> Optional[float]:
    """Get a numeric setting from an environment variable."""
    value = os.environ.get(var_name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            pass
    return None


def config_from_env(profile: Optional[str] = None, **overrides) -> ModemConfig:
    """Build a configuration from profile, environment and explicit values.

    Priority: explicit argument > environment > profile.
    """
    name = profile or os.environ.get("MODEM_PROFILE") or DEFAULT_PROFILE
    config = get_profile(name)

    env = {
        "sample_rate": get_float_from_env("MODEM_SAMPLE_RATE"),
        "baud_rate": get_float_from_env("MODEM_BAUD"),
        "mark_freq": get_float_from_env("MODEM_MARK_FREQ"),
        "space_freq": get_float_from_env("MODEM_SPACE_FREQ"),
    }
    config = config.with_overrides(**env)
    return config.with_overrides(**overrides)
