"""High-level modem interface.

Combines FSK modulation/demodulation with audio I/O
to provide a simple byte-oriented interface.
"""

import sys
import threading
from typing import Optional, TextIO

from .audio_io import AudioInterface
from .config import ModemConfig
from .fsk import FSKDemodulator, FSKModulator


class Modem:
    """High-level modem interface for sending and receiving bytes."""

    def __init__(
        self,
        config: Optional[ModemConfig] = None,
        audio: Optional[AudioInterface] = None,
        loopback: bool = False,
        input_device: Optional[int] = None,
        output_device: Optional[int] = None,
        stderr: TextIO = sys.stderr,
    ):
        """Initialize modem.

        Args:
            config: Modem parameters, Bell 103 originate by default
            audio: Audio interface to use, or None to create one
            loopback: If True, use loopback audio for testing
            input_device: Input device index (microphone)
            output_device: Output device index (speaker)
            stderr: Stream for framing diagnostics
        """
        self.config = config or ModemConfig()

        if audio is None:
            audio = AudioInterface(
                sample_rate=self.config.sample_rate,
                loopback=loopback,
                input_device=input_device,
                output_device=output_device,
            )
        self.audio = audio
        self.stderr = stderr

        self._lock = threading.Lock()

    def start(self) -> None:
        """Start the modem."""
        self.audio.start()

    def stop(self) -> None:
        """Stop the modem."""
        self.audio.stop()

    def send(self, data: bytes, blocking: bool = True) -> None:
        """Send data as one transmission (preamble, frames, postamble).

        Args:
            data: Bytes to send
            blocking: If True, wait until transmission complete
        """
        with self._lock:
            samples = FSKModulator(self.config).modulate(data)
            self.audio.transmit(samples, blocking=blocking)

    def receive(self, duration: float = 5.0, timeout: float = 5.0) -> bytes:
        """Record for a while and demodulate whatever arrived.

        Args:
            duration: Seconds of audio to record
            timeout: Loopback only: how long to wait for a transmission

        Returns:
            Received bytes, or empty bytes if nothing was decoded
        """
        with self._lock:
            samples = self.audio.receive(duration, timeout=timeout)
            if len(samples) == 0:
                return b''

            # Every transmission starts with its own preamble
            demodulator = FSKDemodulator(self.config, stderr=self.stderr)
            return demodulator.demodulate(samples)

    @property
    def bytes_per_second(self) -> float:
        """Return the data rate in bytes per second (10 symbols per byte)."""
        return self.config.baud_rate / 10

    @property
    def is_running(self) -> bool:
        """Check if modem is running."""
        return self.audio.is_running

    def __enter__(self) -> "Modem":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


class LoopbackModem(Modem):
    """Modem with internal loopback for testing."""

    def __init__(self, config: Optional[ModemConfig] = None, **kwargs):
        super().__init__(config=config, loopback=True, **kwargs)
