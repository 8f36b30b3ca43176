"""
Transformer options.

TransformSettings holds the validated parameter set of a Transformer. Every
setter clamps its input into the engine's legal range and never rejects a
value. Fields left unset (None) are never pushed to the engine, so the engine
keeps its own defaults.

Options are plain callables applied in order at construction time; a later
option overrides an earlier one on the same field:

    Transformer(sink, 44100, AudioFormat.PCM, with_speed(2.0), with_quality())
"""

from dataclasses import dataclass
from typing import Callable, Optional

from sonicstream.engine import limits
from sonicstream.engine.base import Engine, EngineField


@dataclass
class TransformSettings:
    """
    Clamped transformation parameters.

    Attributes:
        num_channels: Interleaved channel count [1, 32] (default 1)
        volume: Volume scale [0.01, 100] or None for engine default
        speed: Speed factor [0.05, 20] or None for engine default
        pitch: Pitch factor [0.05, 20] or None for engine default
        rate: Playback rate [0.05, 20] or None for engine default
        quality: True disables the engine's speed-up heuristics; None means off
    """

    num_channels: int = 1
    volume: Optional[float] = None
    speed: Optional[float] = None
    pitch: Optional[float] = None
    rate: Optional[float] = None
    quality: Optional[bool] = None

    def set_channels(self, channels: int) -> None:
        self.num_channels = int(limits.clamp(channels, limits.MIN_CHANNELS, limits.MAX_CHANNELS))

    def set_volume(self, volume: float) -> None:
        self.volume = float(limits.clamp(volume, limits.MIN_VOLUME, limits.MAX_VOLUME))

    def set_speed(self, speed: float) -> None:
        self.speed = float(limits.clamp(speed, limits.MIN_SPEED, limits.MAX_SPEED))

    def set_pitch(self, pitch: float) -> None:
        self.pitch = float(limits.clamp(pitch, limits.MIN_PITCH, limits.MAX_PITCH))

    def set_rate(self, rate: float) -> None:
        self.rate = float(limits.clamp(rate, limits.MIN_RATE, limits.MAX_RATE))

    def enable_quality(self) -> None:
        self.quality = True

    def apply_to(self, engine: Engine) -> None:
        """
        Push every set field to the engine.

        Order is volume -> speed -> pitch -> rate -> quality.
        """
        if self.volume is not None:
            engine.configure(EngineField.VOLUME, self.volume)
        if self.speed is not None:
            engine.configure(EngineField.SPEED, self.speed)
        if self.pitch is not None:
            engine.configure(EngineField.PITCH, self.pitch)
        if self.rate is not None:
            engine.configure(EngineField.RATE, self.rate)
        if self.quality is not None:
            engine.configure(EngineField.QUALITY, self.quality)


Option = Callable[[TransformSettings], None]


def with_channels(channels: int) -> Option:
    """
    Set the number of interleaved channels.

    Values outside [1, 32] are clamped. The default is 1 (mono).
    """
    def option(settings: TransformSettings) -> None:
        settings.set_channels(channels)
    return option


def with_volume(volume: float) -> Option:
    """
    Scale the volume by a constant factor.

    Values outside [0.01, 100] are clamped. The engine default is 1.0.
    """
    def option(settings: TransformSettings) -> None:
        settings.set_volume(volume)
    return option


def with_speed(speed: float) -> Option:
    """
    Set the speed-up factor without changing pitch. 2.0 means 2X faster.

    Values outside [0.05, 20] are clamped. The engine default is 1.0.
    """
    def option(settings: TransformSettings) -> None:
        settings.set_speed(speed)
    return option


def with_pitch(pitch: float) -> Option:
    """
    Scale the pitch. 1.3 means 30% higher.

    Values outside [0.05, 20] are clamped. The engine default is 1.0.
    """
    def option(settings: TransformSettings) -> None:
        settings.set_pitch(pitch)
    return option


def with_rate(rate: float) -> Option:
    """
    Scale the playback rate. 2.0 means 2X faster and 2X pitch.

    Values outside [0.05, 20] are clamped. The engine default is 1.0.
    """
    def option(settings: TransformSettings) -> None:
        settings.set_rate(rate)
    return option


def with_quality() -> Option:
    """
    Disable the engine's speed-up heuristics.

    The default (off) is virtually as good and much faster.
    """
    def option(settings: TransformSettings) -> None:
        settings.enable_quality()
    return option
