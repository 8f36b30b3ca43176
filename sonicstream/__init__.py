"""
sonicstream: streaming speed/pitch/rate/volume transformation of raw PCM.

A Transformer wraps a byte sink; bytes written to the Transformer are passed
through a transformation engine and the result is written to the sink.
"""

from sonicstream.config import StreamConfig
from sonicstream.engine import Engine, EngineField, OverlapAddEngine
from sonicstream.errors import (
    EngineCreateError,
    EngineError,
    EngineFlushError,
    EngineWriteError,
    InternalError,
    InvalidStateError,
    InvalidValueError,
    SinkWriteError,
    SonicStreamError,
)
from sonicstream.options import (
    Option,
    TransformSettings,
    with_channels,
    with_pitch,
    with_quality,
    with_rate,
    with_speed,
    with_volume,
)
from sonicstream.pcm import AudioFormat
from sonicstream.transformer import Transformer, transform_bytes

__version__ = "0.1.0"

__all__ = [
    "AudioFormat",
    "Engine",
    "EngineCreateError",
    "EngineError",
    "EngineField",
    "EngineFlushError",
    "EngineWriteError",
    "InternalError",
    "InvalidStateError",
    "InvalidValueError",
    "Option",
    "OverlapAddEngine",
    "SinkWriteError",
    "SonicStreamError",
    "StreamConfig",
    "TransformSettings",
    "Transformer",
    "transform_bytes",
    "with_channels",
    "with_pitch",
    "with_quality",
    "with_rate",
    "with_speed",
    "with_volume",
]
