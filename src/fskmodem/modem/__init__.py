"""Physical Layer - FSK modem implementation."""

__all__ = [
    "ModemConfig",
    "FSKModulator",
    "FSKDemodulator",
    "AudioInterface",
    "Modem",
]


def __getattr__(name):
    """Lazy imports (all require numpy/scipy)."""
    if name == "ModemConfig":
        from .config import ModemConfig
        return ModemConfig
    if name in ("FSKModulator", "FSKDemodulator"):
        from .fsk import FSKModulator, FSKDemodulator
        return FSKModulator if name == "FSKModulator" else FSKDemodulator
    if name == "AudioInterface":
        from .audio_io import AudioInterface
        return AudioInterface
    if name == "Modem":
        from .modem import Modem
        return Modem
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
