"""Audio I/O interface using sounddevice.

Plays modulated samples through a sound card and records samples for the
demodulator. Samples cross this interface as int16 PCM; conversion to the
device's float format happens here.

Device selection via environment variables:
- MODEM_INPUT_DEVICE: Input device index
- MODEM_OUTPUT_DEVICE: Output device index
- MODEM_LOOPBACK: Set to 1 for loopback mode (no audio hardware)
"""

import os
import queue
import threading
from typing import Optional

import numpy as np

try:
    import sounddevice as sd
    SOUNDDEVICE_AVAILABLE = True
    SOUNDDEVICE_ERROR = None
except (ImportError, OSError) as e:
    sd = None  # type: ignore
    SOUNDDEVICE_AVAILABLE = False
    SOUNDDEVICE_ERROR = str(e)

from .config import SAMPLE_RATE
from .pcm import from_float, to_float


def get_device_from_env(var_name: str) -> Optional[int]:
    """Get device index from environment variable."""
    value = os.environ.get(var_name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return None


def is_loopback_mode() -> bool:
    """Check if loopback mode is enabled via environment."""
    value = os.environ.get('MODEM_LOOPBACK', '').lower()
    return value in ('1', 'true', 'yes', 'on')


class AudioInterface:
    """Blocking sound-card playback and capture of int16 samples."""

    def __init__(
        self,
        sample_rate: float = SAMPLE_RATE,
        input_device: Optional[int] = None,
        output_device: Optional[int] = None,
        loopback: bool = False,
    ):
        """Initialize audio interface.

        Args:
            sample_rate: Audio sample rate in Hz
            input_device: Input device index, or None for default/env
            output_device: Output device index, or None for default/env
            loopback: If True, transmitted samples are queued for receive
        """
        self.sample_rate = sample_rate

        # Device selection priority: argument > environment > default
        self.input_device = (
            input_device
            if input_device is not None
            else get_device_from_env('MODEM_INPUT_DEVICE')
        )
        self.output_device = (
            output_device
            if output_device is not None
            else get_device_from_env('MODEM_OUTPUT_DEVICE')
        )

        self.loopback = loopback or is_loopback_mode()

        self._loopback_buffer: queue.Queue[np.ndarray] = queue.Queue()
        self._running = False
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start the interface."""
        if not self.loopback and not SOUNDDEVICE_AVAILABLE:
            raise RuntimeError(f"sounddevice not available: {SOUNDDEVICE_ERROR}")
        with self._lock:
            self._running = True

    def stop(self) -> None:
        """Stop the interface."""
        with self._lock:
            self._running = False

    def transmit(self, samples: np.ndarray, blocking: bool = True) -> None:
        """Transmit int16 samples.

        Args:
            samples: Samples to play
            blocking: If True, wait until playback is complete
        """
        if not self._running:
            raise RuntimeError("Audio interface not running")

        samples = np.asarray(samples, dtype=np.int16)

        if self.loopback:
            self._loopback_buffer.put(samples.copy())
            return

        sd.play(to_float(samples), int(self.sample_rate), device=self.output_device)
        if blocking:
            sd.wait()

    def receive(self, duration: float, timeout: float = 5.0) -> np.ndarray:
        """Receive int16 samples.

        Args:
            duration: Seconds of audio to record
            timeout: Loopback only: how long to wait for queued audio

        Returns:
            Recorded samples, empty if nothing arrived
        """
        if not self._running:
            raise RuntimeError("Audio interface not running")

        if self.loopback:
            try:
                return self._loopback_buffer.get(timeout=timeout)
            except queue.Empty:
                return np.zeros(0, dtype=np.int16)

        frames = int(duration * self.sample_rate)
        recording = sd.rec(
            frames,
            samplerate=int(self.sample_rate),
            channels=1,
            device=self.input_device,
            dtype=np.float32,
        )
        sd.wait()
        return from_float(recording.flatten())

    @property
    def is_running(self) -> bool:
        """Check if audio interface is running."""
        return self._running

    def __enter__(self) -> "AudioInterface":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


class LoopbackAudioInterface(AudioInterface):
    """Audio interface with internal loopback for testing."""

    def __init__(self, sample_rate: float = SAMPLE_RATE, **kwargs):
        super().__init__(sample_rate=sample_rate, loopback=True, **kwargs)


def list_audio_devices() -> list[dict]:
    """List available audio devices."""
    if sd is None:
        return []

    devices = sd.query_devices()
    default_in, default_out = sd.default.device

    result = []
    for i, dev in enumerate(devices):
        result.append({
            "index": i,
            "name": dev["name"],
            "inputs": dev["max_input_channels"],
            "outputs": dev["max_output_channels"],
            "sample_rate": int(dev["default_samplerate"]),
            "default_in": i == default_in,
            "default_out": i == default_out,
        })

    return result
