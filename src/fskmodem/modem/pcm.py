"""Raw PCM streams: headerless little-endian signed 16-bit mono."""

from typing import BinaryIO, Iterator

import numpy as np


PCM_DTYPE = np.dtype("<i2")
BLOCK_SIZE = 1024  # samples per read


def read_samples(stream: BinaryIO, blocksize: int = BLOCK_SIZE) -> Iterator[np.ndarray]:
    """Yield blocks of int16 samples until the stream ends.

    Buffered streams hand over whatever has arrived instead of waiting for
    a full block, so a live pipe decodes as it goes. A trailing odd byte
    (half a sample) ends the stream and is dropped.
    """
    nbytes = blocksize * PCM_DTYPE.itemsize
    read = getattr(stream, 'read1', stream.read)
    carry = b''
    while True:
        chunk = read(nbytes)
        if not chunk:
            break
        chunk = carry + chunk
        usable = len(chunk) - len(chunk) % PCM_DTYPE.itemsize
        carry = chunk[usable:]
        if usable:
            yield np.frombuffer(chunk[:usable], dtype=PCM_DTYPE).astype(np.int16)


def write_samples(stream: BinaryIO, samples: np.ndarray) -> None:
    """Write int16 samples as little-endian PCM."""
    stream.write(np.asarray(samples).astype(PCM_DTYPE).tobytes())


def to_float(samples: np.ndarray) -> np.ndarray:
    """int16 PCM to float32 in [-1, 1] for sound devices."""
    return (np.asarray(samples, dtype=np.float32) / 32768.0).astype(np.float32)


def from_float(samples: np.ndarray) -> np.ndarray:
    """float audio in [-1, 1] to int16 PCM."""
    scaled = np.clip(np.asarray(samples, dtype=np.float64) * 32767.0, -32768, 32767)
    return np.round(scaled).astype(np.int16)
