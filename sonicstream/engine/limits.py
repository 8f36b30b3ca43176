"""
Engine-defined parameter ranges.

Values mirror the limits published by the sonic speech-speed library so that
streams configured for one engine behave the same on another.
"""

MIN_VOLUME = 0.01
MAX_VOLUME = 100.0

MIN_SPEED = 0.05
MAX_SPEED = 20.0

MIN_PITCH = 0.05
MAX_PITCH = 20.0

MIN_RATE = 0.05
MAX_RATE = 20.0

MIN_SAMPLE_RATE = 1000
MAX_SAMPLE_RATE = 500000

MIN_CHANNELS = 1
MAX_CHANNELS = 32

# Pitch-period search range (Hz) used by the overlap-add engine
DEFAULT_MIN_PITCH_HZ = 65
DEFAULT_MAX_PITCH_HZ = 400

# Decimated pitch search targets this effective sample rate when quality is off
AMDF_SEARCH_RATE = 4000


def clamp(value, lower, upper):
    """Constrain value into [lower, upper]."""
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value
