"""
Overlap-add transformation engine.

This module provides OverlapAddEngine, a numpy implementation of the Engine
interface. It changes speed without changing pitch by skipping or repeating
whole pitch periods (time-domain overlap-add), then resamples to apply the
playback rate, then scales the volume.

Processing chain per write():
    input frames -> time stretch (speed / pitch) -> resample (rate * pitch)
                 -> volume -> output frames

The stretch stage needs two maximum pitch periods of lookahead before it can
emit anything, so output lags input until flush() pads the stream with
silence and trims the result to the expected length.
"""

import logging
import math

import numpy as np

from sonicstream.engine import limits
from sonicstream.engine.base import Engine, EngineField, FieldValue
from sonicstream.errors import EngineWriteError, InvalidStateError, InvalidValueError

logger = logging.getLogger(__name__)

# int16 <-> float conversion factor
INT16_SCALE = 32767.0

# Stretch/resample factors this close to 1.0 are treated as identity
UNITY_TOLERANCE = 1e-5


def _empty(num_channels: int) -> np.ndarray:
    return np.zeros((0, num_channels), dtype=np.float32)


class OverlapAddEngine(Engine):
    """
    Pitch-period overlap-add engine.

    Internal buffers are float32 arrays shaped (frames, channels):
    - _input: frames waiting for the stretch stage (lookahead)
    - _pitch_buffer: stretched frames waiting for the resampler
    - _output: finished frames ready for read_into()

    Attributes:
        min_period: Shortest pitch period searched (frames)
        max_period: Longest pitch period searched (frames)
        max_required: Lookahead needed before a stretch step (frames)
    """

    def __init__(
        self,
        sample_rate: int,
        num_channels: int,
        min_pitch_hz: int = limits.DEFAULT_MIN_PITCH_HZ,
        max_pitch_hz: int = limits.DEFAULT_MAX_PITCH_HZ,
    ) -> None:
        """
        Initialize engine.

        Args:
            sample_rate: Stream sample rate in Hz
            num_channels: Interleaved channel count
            min_pitch_hz: Lowest fundamental frequency considered by the pitch search
            max_pitch_hz: Highest fundamental frequency considered by the pitch search

        Raises:
            InvalidValueError: If any argument is outside its legal range
        """
        if not 0 < min_pitch_hz < max_pitch_hz:
            raise InvalidValueError(
                f"pitch search range must satisfy 0 < min < max, got [{min_pitch_hz}, {max_pitch_hz}]"
            )
        self._min_pitch_hz = int(min_pitch_hz)
        self._max_pitch_hz = int(max_pitch_hz)

        self._volume = 1.0
        self._speed = 1.0
        self._pitch = 1.0
        self._rate = 1.0
        self._quality = False
        self._destroyed = False

        self._allocate(sample_rate, num_channels)

    def _allocate(self, sample_rate: int, num_channels: int) -> None:
        """(Re)size the stream for a sample rate and channel count, dropping buffered audio."""
        if not limits.MIN_SAMPLE_RATE <= sample_rate <= limits.MAX_SAMPLE_RATE:
            raise InvalidValueError(
                f"sample_rate {sample_rate} is out of range "
                f"[{limits.MIN_SAMPLE_RATE}, {limits.MAX_SAMPLE_RATE}]"
            )
        if not limits.MIN_CHANNELS <= num_channels <= limits.MAX_CHANNELS:
            raise InvalidValueError(
                f"num_channels {num_channels} is out of range "
                f"[{limits.MIN_CHANNELS}, {limits.MAX_CHANNELS}]"
            )

        self._sample_rate = int(sample_rate)
        self._num_channels = int(num_channels)
        self.min_period = max(1, self._sample_rate // self._max_pitch_hz)
        self.max_period = max(self.min_period + 1, self._sample_rate // self._min_pitch_hz)
        self.max_required = 2 * self.max_period

        self._input = _empty(self._num_channels)
        self._pitch_buffer = _empty(self._num_channels)
        self._output = _empty(self._num_channels)
        self._remaining_to_copy = 0
        self._resample_pos = 0.0

    # ------------------------------------------------------------------
    # Engine interface
    # ------------------------------------------------------------------

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self._input = None
        self._pitch_buffer = None
        self._output = None
        logger.debug("OverlapAddEngine destroyed")

    def configure(self, field: EngineField, value: FieldValue) -> None:
        self._check_alive()
        if field is EngineField.VOLUME:
            self._volume = float(value)
        elif field is EngineField.SPEED:
            self._speed = float(value)
        elif field is EngineField.PITCH:
            self._pitch = float(value)
        elif field is EngineField.RATE:
            self._rate = float(value)
        elif field is EngineField.QUALITY:
            self._quality = bool(value)
        elif field is EngineField.SAMPLE_RATE:
            logger.debug(f"Sample rate changed to {value}, dropping buffered audio")
            self._allocate(int(value), self._num_channels)
        elif field is EngineField.NUM_CHANNELS:
            logger.debug(f"Channel count changed to {value}, dropping buffered audio")
            self._allocate(self._sample_rate, int(value))
        else:
            raise InvalidValueError(f"unknown engine field: {field!r}")

    def query(self, field: EngineField) -> FieldValue:
        self._check_alive()
        values = {
            EngineField.VOLUME: self._volume,
            EngineField.SPEED: self._speed,
            EngineField.PITCH: self._pitch,
            EngineField.RATE: self._rate,
            EngineField.QUALITY: self._quality,
            EngineField.SAMPLE_RATE: self._sample_rate,
            EngineField.NUM_CHANNELS: self._num_channels,
        }
        try:
            return values[field]
        except KeyError:
            raise InvalidValueError(f"unknown engine field: {field!r}")

    def write(self, samples: np.ndarray, frame_count: int) -> None:
        self._check_alive()
        needed = frame_count * self._num_channels
        if frame_count < 0 or samples.size < needed:
            raise EngineWriteError(
                f"cannot take {frame_count} frames from {samples.size} samples "
                f"({self._num_channels} channels)"
            )
        if frame_count == 0:
            return

        data = samples[:needed]
        if data.dtype.kind == "i":
            frames = data.astype(np.float32) / INT16_SCALE
        elif data.dtype.kind == "f":
            frames = data.astype(np.float32)
        else:
            raise EngineWriteError(f"unsupported sample dtype: {data.dtype}")

        self._input = np.concatenate([self._input, frames.reshape(frame_count, self._num_channels)])
        self._process()

    def read_into(self, out: np.ndarray, max_frames: int) -> int:
        self._check_alive()
        channels = self._num_channels
        count = min(max_frames, len(self._output), out.size // channels)
        if count <= 0:
            return 0

        flat = self._output[:count].reshape(-1)
        self._output = self._output[count:]

        if out.dtype == np.int16:
            out[:count * channels] = np.clip(np.rint(flat * INT16_SCALE), -32768, 32767).astype(np.int16)
        elif out.dtype == np.float32:
            out[:count * channels] = flat
        else:
            raise InvalidValueError(f"unsupported output dtype: {out.dtype}")
        return count

    def flush(self) -> None:
        self._check_alive()
        remaining = len(self._input)
        pending = len(self._pitch_buffer)
        if remaining == 0 and pending == 0:
            return

        stretch = self._speed / self._pitch
        resample = self._rate * self._pitch
        expected = len(self._output) + int((remaining / stretch + pending) / resample + 0.5)

        # Push the lookahead out with silence, then trim whatever the silence produced
        padding = np.zeros((2 * self.max_required, self._num_channels), dtype=np.float32)
        self._input = np.concatenate([self._input, padding])
        self._process()

        if len(self._output) > expected:
            self._output = self._output[:expected]
        self._input = _empty(self._num_channels)
        self._pitch_buffer = _empty(self._num_channels)
        self._remaining_to_copy = 0
        self._resample_pos = 0.0

    def samples_available(self) -> int:
        self._check_alive()
        return len(self._output)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _check_alive(self) -> None:
        if self._destroyed:
            raise InvalidStateError("engine has been destroyed")

    def _process(self) -> None:
        """Run buffered input through stretch, resample and volume stages."""
        stretch = self._speed / self._pitch
        resample = self._rate * self._pitch

        if abs(stretch - 1.0) > UNITY_TOLERANCE:
            produced = self._change_speed(stretch)
        else:
            produced = self._input
            self._input = _empty(self._num_channels)

        if abs(resample - 1.0) > UNITY_TOLERANCE:
            self._pitch_buffer = np.concatenate([self._pitch_buffer, produced])
            produced = self._resample(resample)
        elif len(self._pitch_buffer):
            # Rate went back to unity mid-stream: release what the resampler held
            produced = np.concatenate([self._pitch_buffer, produced])
            self._pitch_buffer = _empty(self._num_channels)
            self._resample_pos = 0.0

        if not len(produced):
            return
        if self._volume != 1.0:
            produced = produced * np.float32(self._volume)
        self._output = np.concatenate([self._output, produced])

    def _change_speed(self, stretch: float) -> np.ndarray:
        """Consume lookahead-sufficient input, skipping or repeating pitch periods."""
        samples = self._input
        total = len(samples)
        if total < self.max_required:
            return _empty(self._num_channels)

        pieces = []
        pos = 0
        while total - pos >= self.max_required:
            if self._remaining_to_copy > 0:
                count = min(self.max_required, self._remaining_to_copy)
                pieces.append(samples[pos:pos + count])
                self._remaining_to_copy -= count
                pos += count
                continue

            period = self._find_pitch_period(samples[pos:pos + self.max_required])
            if stretch > 1.0:
                piece, consumed = self._skip_pitch_period(samples[pos:], stretch, period)
            else:
                piece, consumed = self._insert_pitch_period(samples[pos:], stretch, period)
            pieces.append(piece)
            pos += consumed

        self._input = samples[pos:]
        if not pieces:
            return _empty(self._num_channels)
        return np.concatenate(pieces)

    def _skip_pitch_period(self, samples: np.ndarray, stretch: float, period: int):
        """Blend two adjacent periods into one. Returns (frames, input consumed)."""
        if stretch >= 2.0:
            new_samples = int(period / (stretch - 1.0))
        else:
            new_samples = period
            self._remaining_to_copy = int(period * (2.0 - stretch) / (stretch - 1.0))
        blended = self._overlap_add(samples[:new_samples], samples[period:period + new_samples])
        return blended, period + new_samples

    def _insert_pitch_period(self, samples: np.ndarray, stretch: float, period: int):
        """Emit a period and then a blended repeat of it. Returns (frames, input consumed)."""
        if stretch < 0.5:
            new_samples = max(1, int(period * stretch / (1.0 - stretch)))
        else:
            new_samples = period
            self._remaining_to_copy = int(period * (2.0 * stretch - 1.0) / (1.0 - stretch))
        blended = self._overlap_add(samples[period:period + new_samples], samples[:new_samples])
        return np.concatenate([samples[:period], blended]), new_samples

    @staticmethod
    def _overlap_add(fade_out: np.ndarray, fade_in: np.ndarray) -> np.ndarray:
        count = len(fade_out)
        if count == 0:
            return fade_out[:0]
        ramp = (np.arange(count, dtype=np.float32) / np.float32(count))[:, None]
        return fade_out * (np.float32(1.0) - ramp) + fade_in * ramp

    def _find_pitch_period(self, window: np.ndarray) -> int:
        """
        Estimate the pitch period of a lookahead window by AMDF.

        With quality off the search runs on a decimated signal, which is much
        faster and nearly as good for speech.
        """
        mono = window.mean(axis=1)
        skip = 1 if self._quality else self._sample_rate // limits.AMDF_SEARCH_RATE
        if skip <= 1:
            return self._amdf(mono, self.min_period, self.max_period)

        coarse = self._amdf(mono[::skip], max(1, self.min_period // skip), max(1, self.max_period // skip))
        return int(limits.clamp(coarse * skip, self.min_period, self.max_period))

    @staticmethod
    def _amdf(signal: np.ndarray, min_period: int, max_period: int) -> int:
        best_period = min_period
        best_score = math.inf
        for period in range(min_period, max_period + 1):
            if 2 * period > len(signal):
                break
            diff = float(np.abs(signal[:period] - signal[period:2 * period]).sum())
            score = diff / period
            if score < best_score:
                best_score = score
                best_period = period
        return best_period

    def _resample(self, factor: float) -> np.ndarray:
        """Linear-interpolation resample of the pitch buffer by ``factor`` (streaming)."""
        buf = self._pitch_buffer
        last = len(buf) - 1
        pos = self._resample_pos

        if last > pos:
            count = int(math.ceil((last - pos) / factor))
            positions = pos + factor * np.arange(count, dtype=np.float64)
            positions = positions[positions < last]
            index = positions.astype(np.int64)
            frac = (positions - index).astype(np.float32)[:, None]
            produced = buf[index] * (np.float32(1.0) - frac) + buf[index + 1] * frac
            pos += factor * len(positions)
        else:
            produced = _empty(self._num_channels)

        drop = min(int(pos), len(buf))
        self._pitch_buffer = buf[drop:]
        self._resample_pos = pos - drop
        return produced
