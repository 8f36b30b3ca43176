"""
Streaming Transformer for sonicstream.

Transformer adapts a sequential byte sink to receive audio that has been passed
through a transformation engine. Callers write raw interleaved PCM bytes; the
Transformer pushes them to the engine in bounded chunks, drains whatever the
engine has ready after every chunk, and writes the result to the sink in the
same little-endian encoding.

Lifecycle:
    Created -> Active (write()/flush() any number of times, any order)
            -> Closed (engine released; write()/flush() raise InvalidStateError)

The Transformer is synchronous and not thread-safe. The sink is borrowed: it is
never closed by the Transformer and must outlive it.
"""

import functools
import io
import logging
import numbers
import weakref
from typing import Optional

import numpy as np

from sonicstream.config import StreamConfig
from sonicstream.engine import limits
from sonicstream.engine.base import Engine, EngineFactory
from sonicstream.engine.overlap_add import OverlapAddEngine
from sonicstream.errors import (
    EngineCreateError,
    EngineFlushError,
    EngineWriteError,
    InternalError,
    InvalidStateError,
    InvalidValueError,
    SinkWriteError,
    SonicStreamError,
)
from sonicstream.options import Option, TransformSettings
from sonicstream.pcm import AudioFormat, encode_samples, sample_view

logger = logging.getLogger(__name__)


def _release_leaked_engine(engine: Engine) -> None:
    """Finalizer hook: destroy an engine whose Transformer was never closed."""
    if not engine.destroyed:
        logger.warning("Transformer garbage-collected without close(); releasing engine")
        engine.destroy()


class Transformer:
    """
    Streaming audio transformer writing to a byte sink.

    Use as a context manager, or call close() explicitly:

        with Transformer(sink, 44100, AudioFormat.PCM, with_speed(2.0)) as t:
            t.write(pcm_bytes)
            t.flush()

    Attributes:
        sink: Borrowed destination with a write(bytes) method
    """

    def __init__(
        self,
        sink,
        sample_rate: int,
        audio_format,
        *options: Option,
        engine_factory: Optional[EngineFactory] = None,
        config: Optional[StreamConfig] = None,
    ) -> None:
        """
        Initialize Transformer and create its engine.

        Args:
            sink: Object with a write(bytes) method
            sample_rate: Stream sample rate in Hz [1000, 500000]
            audio_format: AudioFormat (or its integer tag) of input and output bytes
            *options: Option callables applied in order
            engine_factory: Callable (sample_rate, num_channels) -> Engine.
                            Defaults to OverlapAddEngine.
            config: StreamConfig; defaults to StreamConfig()

        Raises:
            InvalidValueError: If an argument is invalid or an option fails
            EngineCreateError: If the engine cannot be created
        """
        if sink is None or not callable(getattr(sink, "write", None)):
            raise InvalidValueError("sink is None or has no write() method")
        if isinstance(sample_rate, bool) or not isinstance(sample_rate, numbers.Integral):
            raise InvalidValueError(f"sample_rate must be an integer, got {sample_rate!r}")
        if not limits.MIN_SAMPLE_RATE <= sample_rate <= limits.MAX_SAMPLE_RATE:
            raise InvalidValueError(
                f"sample_rate {sample_rate} is out of range "
                f"[{limits.MIN_SAMPLE_RATE}, {limits.MAX_SAMPLE_RATE}]"
            )
        self._format = AudioFormat.coerce(audio_format)

        self.sink = sink
        self._sample_rate = int(sample_rate)
        self._config = config or StreamConfig()
        self._settings = TransformSettings()
        for option in options:
            try:
                option(self._settings)
            except SonicStreamError:
                raise
            except Exception as e:
                raise InvalidValueError(f"option {option!r} failed: {e}") from e

        if engine_factory is None:
            engine_factory = functools.partial(
                OverlapAddEngine,
                min_pitch_hz=self._config.min_pitch_hz,
                max_pitch_hz=self._config.max_pitch_hz,
            )
        try:
            engine = engine_factory(self._sample_rate, self._settings.num_channels)
        except Exception as e:
            raise EngineCreateError(f"failed to create engine: {e}") from e
        if engine is None:
            raise EngineCreateError("engine factory returned None")

        # Release the engine if anything below fails
        try:
            self._settings.apply_to(engine)
            self._chunk_samples = self._config.chunk_samples(
                self._format.sample_size, self._settings.num_channels
            )
            self._scratch = np.empty(self._chunk_samples, dtype=self._format.native_dtype)
        except Exception as e:
            engine.destroy()
            if isinstance(e, SonicStreamError):
                raise
            raise EngineCreateError(f"failed to configure engine: {e}") from e

        self._engine: Optional[Engine] = engine
        self._finalizer = weakref.finalize(self, _release_leaked_engine, engine)

        self._bytes_consumed = 0
        self._bytes_emitted = 0
        self._sink_writes = 0

        logger.info(
            f"Transformer created (sample_rate={self._sample_rate}, channels={self._settings.num_channels}, "
            f"format={self._format}, chunk_samples={self._chunk_samples})"
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def num_channels(self) -> int:
        return self._settings.num_channels

    @property
    def audio_format(self) -> AudioFormat:
        return self._format

    @property
    def settings(self) -> TransformSettings:
        return self._settings

    @property
    def chunk_samples(self) -> int:
        """Maximum samples pushed to the engine per write iteration."""
        return self._chunk_samples

    @property
    def closed(self) -> bool:
        return self._engine is None

    def get_stats(self) -> dict:
        """
        Get transformer statistics.

        Returns:
            dict: bytes_consumed, bytes_emitted, sink_writes
        """
        return {
            "bytes_consumed": self._bytes_consumed,
            "bytes_emitted": self._bytes_emitted,
            "sink_writes": self._sink_writes,
        }

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def write(self, data) -> int:
        """
        Transform a buffer of PCM bytes and write the ready output to the sink.

        Input is pushed to the engine in chunks of at most chunk_samples; after
        each chunk every ready frame is drained to the sink.

        Args:
            data: Bytes-like object in the transformer's audio format

        Returns:
            int: Input bytes consumed (len(data) on success)

        Raises:
            InvalidStateError: If the transformer is closed
            InvalidValueError: If the length is not a whole number of frames
            EngineWriteError: If the engine refuses a chunk
            SinkWriteError: If the sink fails

            Engine and sink failures carry ``bytes_consumed``: input bytes
            already pushed to the engine before the failure.
        """
        engine = self._require_engine()
        if self._format not in (AudioFormat.PCM, AudioFormat.IEEE_FLOAT):
            raise InternalError(f"format is broken: {self._format!r}")

        samples = sample_view(data, self._format, self._settings.num_channels)
        if samples.size == 0:
            return 0

        channels = self._settings.num_channels
        sample_size = self._format.sample_size
        consumed = 0

        for start in range(0, samples.size, self._chunk_samples):
            chunk = samples[start:start + self._chunk_samples]
            try:
                engine.write(chunk, chunk.size // channels)
            except SonicStreamError as e:
                e.bytes_consumed = consumed
                raise
            except Exception as e:
                raise EngineWriteError(f"failed to write samples to engine: {e}", consumed) from e

            consumed += chunk.size * sample_size
            self._bytes_consumed += chunk.size * sample_size
            self._drain(engine, consumed)

        return consumed

    def flush(self) -> None:
        """
        Force the engine's buffered frames out to the sink.

        Raises:
            InvalidStateError: If the transformer is closed
            EngineFlushError: If the engine fails to flush
            SinkWriteError: If the sink fails
        """
        engine = self._require_engine()
        if self._format not in (AudioFormat.PCM, AudioFormat.IEEE_FLOAT):
            raise InternalError(f"format is broken: {self._format!r}")

        try:
            engine.flush()
        except SonicStreamError:
            raise
        except Exception as e:
            raise EngineFlushError(f"failed to flush engine: {e}") from e

        channels = self._settings.num_channels
        available = engine.samples_available()
        while available > 0:
            buffer = np.empty(available * channels, dtype=self._format.native_dtype)
            frames = engine.read_into(buffer, available)
            if frames <= 0:
                raise EngineFlushError(f"engine reported {available} frames available but returned none")
            self._emit(buffer[:frames * channels], 0)
            available = engine.samples_available()

    def close(self) -> None:
        """
        Release the engine and scratch buffer. Idempotent; never raises.
        """
        if self._engine is None:
            return
        engine = self._engine
        self._engine = None
        self._scratch = None
        self._finalizer.detach()
        try:
            engine.destroy()
        except Exception as e:
            logger.warning(f"Engine destroy failed during close: {e}")
        logger.debug(f"Transformer closed (stats={self.get_stats()})")

    def __enter__(self) -> "Transformer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise InvalidStateError("transformer is closed")
        return self._engine

    def _drain(self, engine: Engine, consumed: int) -> None:
        """Read every ready frame through the scratch buffer into the sink."""
        channels = self._settings.num_channels
        max_frames = self._chunk_samples // channels
        while True:
            frames = engine.read_into(self._scratch, max_frames)
            if frames <= 0:
                break
            self._emit(self._scratch[:frames * channels], consumed)

    def _emit(self, samples: np.ndarray, consumed: int) -> None:
        """Encode samples little-endian and write them to the sink."""
        payload = encode_samples(samples, self._format)
        try:
            written = self.sink.write(payload)
        except Exception as e:
            raise SinkWriteError(f"failed to write samples: {e}", consumed, cause=e) from e
        if isinstance(written, int) and written < len(payload):
            raise SinkWriteError(f"short write: sink accepted {written} of {len(payload)} bytes", consumed)

        self._sink_writes += 1
        self._bytes_emitted += len(payload)


def transform_bytes(data, sample_rate: int, audio_format, *options: Option, **kwargs) -> bytes:
    """
    Transform a complete buffer in one call.

    Non-streaming convenience over Transformer: writes ``data``, flushes and
    closes, returning everything the engine produced.

    Args:
        data: Bytes-like PCM input
        sample_rate: Sample rate in Hz
        audio_format: AudioFormat of input and output
        *options: Option callables
        **kwargs: engine_factory / config, forwarded to Transformer

    Returns:
        bytes: Transformed PCM in the same format
    """
    sink = io.BytesIO()
    with Transformer(sink, sample_rate, audio_format, *options, **kwargs) as transformer:
        transformer.write(data)
        transformer.flush()
    return sink.getvalue()
