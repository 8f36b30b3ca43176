"""
Configuration management for sonicstream.

Reads configuration from .env file and environment variables with sensible defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from sonicstream.engine import limits


# Default .env file location
DEFAULT_ENV_FILE = Path("/etc/sonicstream/sonicstream.env")

logger = logging.getLogger(__name__)


def _load_env_file():
    """Load environment variables from .env file if it exists."""
    env_file = os.getenv("SONICSTREAM_ENV_FILE", str(DEFAULT_ENV_FILE))
    env_path = Path(env_file)

    if env_path.exists():
        load_dotenv(env_path, override=False)  # Don't override existing env vars
        logger.debug(f"Loaded environment from {env_path}")


def _parse_positive_int(name: str, default: int) -> int:
    """
    Parse a positive integer environment variable.

    Args:
        name: Environment variable name
        default: Value used when the variable is unset

    Returns:
        Parsed integer

    Raises:
        ValueError: If the value is not an integer or not positive
    """
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"Invalid {name}: {raw} (must be an integer)")
    if value <= 0:
        raise ValueError(f"Invalid {name}: {raw} (must be positive)")
    return value


@dataclass
class StreamConfig:
    """Transformer configuration loaded from .env file and environment variables."""

    # Scratch buffer size in bytes; bounds the frames pushed per write iteration
    scratch_buffer_bytes: int = 4096

    # Pitch-period search range for the overlap-add engine
    min_pitch_hz: int = limits.DEFAULT_MIN_PITCH_HZ
    max_pitch_hz: int = limits.DEFAULT_MAX_PITCH_HZ

    def chunk_samples(self, sample_size: int, num_channels: int) -> int:
        """
        Samples processed per write iteration.

        Rounded down to whole frames, never less than one frame.
        """
        frames = max(1, (self.scratch_buffer_bytes // sample_size) // num_channels)
        return frames * num_channels

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.scratch_buffer_bytes <= 0:
            raise ValueError(f"scratch_buffer_bytes must be positive, got {self.scratch_buffer_bytes}")
        if not 0 < self.min_pitch_hz < self.max_pitch_hz:
            raise ValueError(
                f"pitch range must satisfy 0 < min < max, got [{self.min_pitch_hz}, {self.max_pitch_hz}]"
            )

    @classmethod
    def load_config(cls) -> "StreamConfig":
        """
        Load configuration from environment variables.

        Returns:
            StreamConfig instance with loaded values

        Raises:
            ValueError: If configuration is invalid
        """
        # Load .env file first (if it exists)
        _load_env_file()

        config = cls(
            scratch_buffer_bytes=_parse_positive_int("SONICSTREAM_SCRATCH_BUFFER_BYTES", 4096),
            min_pitch_hz=_parse_positive_int("SONICSTREAM_MIN_PITCH_HZ", limits.DEFAULT_MIN_PITCH_HZ),
            max_pitch_hz=_parse_positive_int("SONICSTREAM_MAX_PITCH_HZ", limits.DEFAULT_MAX_PITCH_HZ),
        )
        config.validate()
        return config
