"""
Shared pytest fixtures for sonicstream contract tests.

Contract tests use test doubles (fakes, stubs) for sinks and engines; only the
end-to-end tests run the bundled OverlapAddEngine.
"""

import pytest

from sonicstream.config import StreamConfig
from sonicstream.tests.contracts.test_doubles import RecordingSink, ScriptedEngineFactory

ENV_VARS = (
    "SONICSTREAM_ENV_FILE",
    "SONICSTREAM_SCRATCH_BUFFER_BYTES",
    "SONICSTREAM_MIN_PITCH_HZ",
    "SONICSTREAM_MAX_PITCH_HZ",
)


@pytest.fixture
def sink():
    """Create a sink that records every write."""
    return RecordingSink()


@pytest.fixture
def engine_factory():
    """Create a pass-through engine factory."""
    return ScriptedEngineFactory()


@pytest.fixture
def small_chunks():
    """Config with an 8-byte scratch buffer (4 int16 samples per chunk)."""
    return StreamConfig(scratch_buffer_bytes=8)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """
    Remove sonicstream variables from the environment for the test.

    Variables set during the test (including by load_dotenv) are removed on
    teardown. The env file points at a path that does not exist.
    """
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("SONICSTREAM_ENV_FILE", str(tmp_path / "missing.env"))
    return monkeypatch
