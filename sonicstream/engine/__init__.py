"""
Transformation engines for sonicstream.

Provides the Engine interface and OverlapAddEngine, the bundled numpy implementation.
"""

from sonicstream.engine.base import Engine, EngineFactory, EngineField
from sonicstream.engine.overlap_add import OverlapAddEngine

__all__ = [
    "Engine",
    "EngineFactory",
    "EngineField",
    "OverlapAddEngine",
]
