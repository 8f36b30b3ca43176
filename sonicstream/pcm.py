"""
PCM wire formats and byte <-> sample views.

The wire encoding is raw interleaved PCM with no container header, always
little-endian, in one of two sample encodings:
- AudioFormat.PCM: 16-bit signed integer (2 bytes per sample)
- AudioFormat.IEEE_FLOAT: 32-bit IEEE 754 float (4 bytes per sample)

Byte buffers are reinterpreted with numpy.frombuffer using an explicit
little-endian dtype, so the view is correct on any host byte order. Length is
validated up front; a buffer is only accepted when it holds whole frames.
"""

import enum
from typing import List, Union

import numpy as np

from sonicstream.errors import InvalidValueError


class AudioFormat(enum.IntEnum):
    """
    Sample encoding of the byte stream.

    Values match the WAVE format tags (1 = PCM, 3 = IEEE float).
    """

    PCM = 1
    IEEE_FLOAT = 3

    def __str__(self) -> str:
        return _DISPLAY_NAMES[self]

    def __format__(self, format_spec: str) -> str:
        return format(str(self), format_spec)

    @classmethod
    def values(cls) -> List["AudioFormat"]:
        """Return every supported format."""
        return list(cls)

    @classmethod
    def coerce(cls, value: Union["AudioFormat", int]) -> "AudioFormat":
        """
        Resolve an AudioFormat from an enum member or its integer tag.

        Raises:
            InvalidValueError: If value is not a supported format
        """
        if isinstance(value, bool):
            raise InvalidValueError(f"format {value!r} is not supported")
        try:
            return cls(value)
        except (ValueError, TypeError) as e:
            raise InvalidValueError(f"format {value!r} is not supported") from e

    @property
    def sample_size(self) -> int:
        """Bytes per sample on the wire."""
        return _SAMPLE_SIZES[self]

    @property
    def wire_dtype(self) -> np.dtype:
        """Little-endian numpy dtype used on the wire."""
        return _WIRE_DTYPES[self]

    @property
    def native_dtype(self) -> np.dtype:
        """Host-order numpy dtype used for engine I/O buffers."""
        return _NATIVE_DTYPES[self]


_DISPLAY_NAMES = {
    AudioFormat.PCM: "AudioFormatPCM",
    AudioFormat.IEEE_FLOAT: "AudioFormatIEEEFloat",
}

_SAMPLE_SIZES = {
    AudioFormat.PCM: 2,
    AudioFormat.IEEE_FLOAT: 4,
}

_WIRE_DTYPES = {
    AudioFormat.PCM: np.dtype("<i2"),
    AudioFormat.IEEE_FLOAT: np.dtype("<f4"),
}

_NATIVE_DTYPES = {
    AudioFormat.PCM: np.dtype(np.int16),
    AudioFormat.IEEE_FLOAT: np.dtype(np.float32),
}


def frame_size(audio_format: AudioFormat, num_channels: int) -> int:
    """Bytes per interleaved frame."""
    return audio_format.sample_size * num_channels


def sample_view(data, audio_format: AudioFormat, num_channels: int = 1) -> np.ndarray:
    """
    View a byte buffer as a flat sequence of interleaved samples.

    No data is copied; the returned array is read-only and aliases ``data``.

    Args:
        data: Any object supporting the buffer protocol (bytes, bytearray, memoryview)
        audio_format: Encoding of the samples in ``data``
        num_channels: Interleaved channel count; length must cover whole frames

    Returns:
        1-D numpy array with the format's little-endian dtype

    Raises:
        InvalidValueError: If the length is not a multiple of the sample size
                           or of the frame size
    """
    view = memoryview(data)
    nbytes = view.nbytes
    sample_size = audio_format.sample_size

    if nbytes % sample_size != 0:
        raise InvalidValueError(
            f"buffer length {nbytes} is not a multiple of the {audio_format} sample size ({sample_size})"
        )
    frame_bytes = sample_size * num_channels
    if nbytes % frame_bytes != 0:
        raise InvalidValueError(
            f"buffer length {nbytes} is not a whole number of {num_channels}-channel frames ({frame_bytes} bytes each)"
        )
    if nbytes == 0:
        return np.empty(0, dtype=audio_format.wire_dtype)

    return np.frombuffer(view.cast("B"), dtype=audio_format.wire_dtype)


def encode_samples(samples: np.ndarray, audio_format: AudioFormat) -> bytes:
    """
    Serialize samples to the little-endian wire encoding.

    Args:
        samples: Samples in the format's native dtype (or any dtype castable to it)
        audio_format: Target encoding

    Returns:
        bytes: Wire-encoded samples
    """
    return np.ascontiguousarray(samples).astype(audio_format.wire_dtype, copy=False).tobytes()
