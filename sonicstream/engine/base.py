"""
Base Engine interface for sonicstream.

An engine is a stateful, real-time audio transformation processor. It accepts
interleaved frames, buffers them internally for lookahead, and hands out
transformed frames whenever they become ready. The number of frames produced
for a given input is engine-defined; callers must drain with read_into()
until it returns 0 rather than predict an exact count.

All engines must implement this interface. The Transformer only talks to the
engine through it, so alternative or scripted engines can be substituted.
"""

import enum
from abc import ABC, abstractmethod
from typing import Callable, Union

import numpy as np


class EngineField(enum.Enum):
    """Configurable/queryable engine parameters."""

    VOLUME = "volume"
    SPEED = "speed"
    PITCH = "pitch"
    RATE = "rate"
    QUALITY = "quality"
    SAMPLE_RATE = "sample_rate"
    NUM_CHANNELS = "num_channels"


FieldValue = Union[int, float, bool]


class Engine(ABC):
    """
    Base class for transformation engines.

    Engines own their internal buffers exclusively. Once destroy() has been
    called, every other method raises InvalidStateError; destroy() itself is
    always safe to repeat.
    """

    @abstractmethod
    def destroy(self) -> None:
        """Release the engine. Idempotent."""
        pass

    @property
    @abstractmethod
    def destroyed(self) -> bool:
        """True once destroy() has been called."""
        pass

    @abstractmethod
    def configure(self, field: EngineField, value: FieldValue) -> None:
        """
        Set an engine parameter.

        Args:
            field: Parameter to set
            value: New value (already range-checked by the caller)
        """
        pass

    @abstractmethod
    def query(self, field: EngineField) -> FieldValue:
        """Return the current value of an engine parameter."""
        pass

    @abstractmethod
    def write(self, samples: np.ndarray, frame_count: int) -> None:
        """
        Push interleaved frames into the engine.

        Args:
            samples: Flat int16 or float32 samples (at least frame_count frames)
            frame_count: Number of frames to consume from ``samples``

        Raises:
            EngineWriteError: If the engine refuses the frames
        """
        pass

    @abstractmethod
    def read_into(self, out: np.ndarray, max_frames: int) -> int:
        """
        Move ready frames into a caller buffer.

        Never blocks. The encoding written into ``out`` follows ``out.dtype``
        (int16 or float32).

        Args:
            out: Flat destination buffer with room for max_frames frames
            max_frames: Upper bound on frames to move

        Returns:
            int: Frames written into ``out`` (0 when nothing is ready)
        """
        pass

    @abstractmethod
    def flush(self) -> None:
        """
        Force buffered/lookahead frames to become readable.

        Raises:
            EngineFlushError: If the engine cannot flush
        """
        pass

    @abstractmethod
    def samples_available(self) -> int:
        """Return the number of frames ready to read."""
        pass

    # Convenience accessors over configure()/query()

    @property
    def volume(self) -> float:
        return self.query(EngineField.VOLUME)

    @volume.setter
    def volume(self, value: float) -> None:
        self.configure(EngineField.VOLUME, value)

    @property
    def speed(self) -> float:
        return self.query(EngineField.SPEED)

    @speed.setter
    def speed(self, value: float) -> None:
        self.configure(EngineField.SPEED, value)

    @property
    def pitch(self) -> float:
        return self.query(EngineField.PITCH)

    @pitch.setter
    def pitch(self, value: float) -> None:
        self.configure(EngineField.PITCH, value)

    @property
    def rate(self) -> float:
        return self.query(EngineField.RATE)

    @rate.setter
    def rate(self, value: float) -> None:
        self.configure(EngineField.RATE, value)

    @property
    def quality(self) -> bool:
        return self.query(EngineField.QUALITY)

    @quality.setter
    def quality(self, value: bool) -> None:
        self.configure(EngineField.QUALITY, value)

    @property
    def sample_rate(self) -> int:
        return self.query(EngineField.SAMPLE_RATE)

    @sample_rate.setter
    def sample_rate(self, value: int) -> None:
        self.configure(EngineField.SAMPLE_RATE, value)

    @property
    def num_channels(self) -> int:
        return self.query(EngineField.NUM_CHANNELS)

    @num_channels.setter
    def num_channels(self, value: int) -> None:
        self.configure(EngineField.NUM_CHANNELS, value)


# create(sample_rate, num_channels) -> Engine
EngineFactory = Callable[[int, int], Engine]
