"""
Contract tests for OverlapAddEngine.

Covers the engine call contract (create/destroy/configure/query/write/read/
flush/available) and the coarse shape of its output. Exact frame counts are
engine-defined, so stretch tests assert bounds rather than exact lengths.
"""

import numpy as np
import pytest

from sonicstream.engine import limits
from sonicstream.engine.base import EngineField
from sonicstream.engine.overlap_add import OverlapAddEngine
from sonicstream.errors import EngineWriteError, InvalidStateError, InvalidValueError

SAMPLE_RATE = 44100


def _sine(frames, frequency=220.0, channels=1):
    t = np.arange(frames) / SAMPLE_RATE
    mono = (0.5 * np.sin(2 * np.pi * frequency * t)).astype(np.float32)
    return np.repeat(mono, channels)


def _drain(engine, dtype=np.float32):
    channels = engine.num_channels
    chunks = []
    buf = np.empty(256 * channels, dtype=dtype)
    while True:
        frames = engine.read_into(buf, 256)
        if frames == 0:
            break
        chunks.append(buf[:frames * channels].copy())
    if not chunks:
        return np.empty(0, dtype=dtype)
    return np.concatenate(chunks)


def _run(engine, samples, dtype=np.float32):
    channels = engine.num_channels
    engine.write(samples, samples.size // channels)
    out = [_drain(engine, dtype)]
    engine.flush()
    out.append(_drain(engine, dtype))
    return np.concatenate(out)


@pytest.fixture
def engine():
    eng = OverlapAddEngine(SAMPLE_RATE, 1)
    yield eng
    eng.destroy()


class TestCreation:
    """Tests for engine construction."""

    def test_defaults(self, engine):
        assert engine.sample_rate == SAMPLE_RATE
        assert engine.num_channels == 1
        assert engine.volume == 1.0
        assert engine.speed == 1.0
        assert engine.pitch == 1.0
        assert engine.rate == 1.0
        assert engine.quality is False

    def test_period_range_from_pitch_limits(self, engine):
        assert engine.min_period == SAMPLE_RATE // limits.DEFAULT_MAX_PITCH_HZ
        assert engine.max_period == SAMPLE_RATE // limits.DEFAULT_MIN_PITCH_HZ
        assert engine.max_required == 2 * engine.max_period

    @pytest.mark.parametrize("sample_rate,channels", [
        (limits.MIN_SAMPLE_RATE - 1, 1),
        (limits.MAX_SAMPLE_RATE + 1, 1),
        (SAMPLE_RATE, 0),
        (SAMPLE_RATE, limits.MAX_CHANNELS + 1),
    ])
    def test_rejects_out_of_range(self, sample_rate, channels):
        with pytest.raises(InvalidValueError):
            OverlapAddEngine(sample_rate, channels)

    def test_rejects_inverted_pitch_range(self):
        with pytest.raises(InvalidValueError):
            OverlapAddEngine(SAMPLE_RATE, 1, min_pitch_hz=400, max_pitch_hz=65)


class TestLifecycle:
    """Tests for destroy semantics."""

    def test_destroy_is_idempotent(self):
        eng = OverlapAddEngine(SAMPLE_RATE, 1)
        eng.destroy()
        eng.destroy()
        assert eng.destroyed

    @pytest.mark.parametrize("call", [
        lambda e: e.write(np.zeros(4, dtype=np.int16), 4),
        lambda e: e.read_into(np.zeros(4, dtype=np.int16), 4),
        lambda e: e.flush(),
        lambda e: e.samples_available(),
        lambda e: e.query(EngineField.SPEED),
        lambda e: e.configure(EngineField.SPEED, 2.0),
    ])
    def test_use_after_destroy_raises(self, call):
        eng = OverlapAddEngine(SAMPLE_RATE, 1)
        eng.destroy()
        with pytest.raises(InvalidStateError):
            call(eng)


class TestConfigureQuery:
    """Tests for configure()/query() and the convenience properties."""

    @pytest.mark.parametrize("field,value", [
        (EngineField.VOLUME, 2.5),
        (EngineField.SPEED, 1.5),
        (EngineField.PITCH, 0.8),
        (EngineField.RATE, 1.2),
        (EngineField.QUALITY, True),
    ])
    def test_round_trip(self, engine, field, value):
        engine.configure(field, value)
        assert engine.query(field) == value

    def test_property_setters(self, engine):
        engine.speed = 3.0
        assert engine.query(EngineField.SPEED) == 3.0

    def test_changing_channels_drops_buffered_audio(self, engine):
        engine.speed = 2.0
        engine.write(np.ones(100, dtype=np.float32), 100)
        engine.configure(EngineField.NUM_CHANNELS, 2)
        engine.flush()
        assert engine.num_channels == 2
        assert engine.samples_available() == 0

    def test_changing_sample_rate_resizes_periods(self, engine):
        engine.sample_rate = 8000
        assert engine.max_period == 8000 // limits.DEFAULT_MIN_PITCH_HZ


class TestWriteRead:
    """Tests for write()/read_into() buffering."""

    def test_identity_passes_through_without_lookahead(self, engine):
        samples = np.array([100, -200, 300], dtype=np.int16)
        engine.write(samples, 3)
        assert engine.samples_available() == 3

        out = np.zeros(3, dtype=np.int16)
        assert engine.read_into(out, 3) == 3
        assert out.tolist() == [100, -200, 300]
        assert engine.read_into(out, 3) == 0

    def test_read_respects_max_frames(self, engine):
        engine.write(np.arange(10, dtype=np.int16), 10)
        out = np.zeros(10, dtype=np.int16)
        assert engine.read_into(out, 4) == 4
        assert engine.samples_available() == 6

    def test_int16_extremes_round_trip(self, engine):
        samples = np.array([-32768, -1, 0, 1, 32767], dtype=np.int16)
        engine.write(samples, 5)
        out = np.zeros(5, dtype=np.int16)
        engine.read_into(out, 5)
        assert out.tolist() == samples.tolist()

    def test_big_endian_input(self, engine):
        engine.write(np.array([258], dtype=">i2"), 1)
        out = np.zeros(1, dtype=np.int16)
        engine.read_into(out, 1)
        assert out[0] == 258

    def test_rejects_short_sample_array(self, engine):
        with pytest.raises(EngineWriteError):
            engine.write(np.zeros(2, dtype=np.int16), 3)

    def test_rejects_unsupported_dtype(self, engine):
        with pytest.raises(EngineWriteError):
            engine.write(np.zeros(2, dtype=np.bool_), 2)

    def test_rejects_unsupported_output_dtype(self, engine):
        engine.write(np.zeros(2, dtype=np.int16), 2)
        with pytest.raises(InvalidValueError):
            engine.read_into(np.zeros(2, dtype=np.float64), 2)

    def test_stretch_waits_for_lookahead(self, engine):
        engine.speed = 2.0
        engine.write(np.zeros(engine.max_required - 1, dtype=np.float32), engine.max_required - 1)
        assert engine.samples_available() == 0


class TestFlush:
    """Tests for flush()."""

    def test_flush_without_input_is_noop(self, engine):
        engine.flush()
        assert engine.samples_available() == 0

    def test_flush_releases_lookahead(self, engine):
        engine.speed = 2.0
        engine.write(np.zeros(1000, dtype=np.float32), 1000)
        engine.flush()
        assert 0 < engine.samples_available() < 1000

    def test_flush_twice_adds_nothing(self, engine):
        engine.speed = 2.0
        engine.write(np.zeros(1000, dtype=np.float32), 1000)
        engine.flush()
        available = engine.samples_available()
        engine.flush()
        assert engine.samples_available() == available


class TestTransformShape:
    """Coarse output-length and content checks."""

    def test_volume_scales_and_clips(self, engine):
        engine.volume = 2.0
        out = _run(engine, np.array([100, -200, 20000], dtype=np.int16), dtype=np.int16)
        assert out.tolist() == [200, -400, 32767]

    def test_speed_two_halves_length(self, engine):
        engine.speed = 2.0
        out = _run(engine, _sine(SAMPLE_RATE))
        assert abs(out.size - SAMPLE_RATE // 2) <= 1

    def test_speed_half_doubles_length(self, engine):
        engine.speed = 0.5
        out = _run(engine, _sine(4410))
        assert abs(out.size - 8820) <= 2

    def test_speed_with_quality(self, engine):
        engine.speed = 1.5
        engine.quality = True
        out = _run(engine, _sine(SAMPLE_RATE))
        assert abs(out.size - SAMPLE_RATE / 1.5) <= 2 * engine.max_period

    def test_rate_two_halves_length(self, engine):
        engine.rate = 2.0
        out = _run(engine, _sine(4410))
        assert abs(out.size - 2205) <= 2

    def test_pitch_keeps_duration(self, engine):
        engine.pitch = 1.5
        out = _run(engine, _sine(SAMPLE_RATE))
        assert abs(out.size - SAMPLE_RATE) <= 2 * engine.max_period

    def test_stereo_identity(self):
        eng = OverlapAddEngine(SAMPLE_RATE, 2)
        samples = _sine(100, channels=2)
        out = _run(eng, samples)
        eng.destroy()
        np.testing.assert_array_equal(out, samples)

    def test_silence_stays_silent(self, engine):
        engine.speed = 3.0
        out = _run(engine, np.zeros(5000, dtype=np.float32))
        assert out.size > 0
        assert not np.any(out)
