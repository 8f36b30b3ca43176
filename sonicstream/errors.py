"""
Error taxonomy for sonicstream.

Every failure raised by the library derives from SonicStreamError and carries
``bytes_consumed``: the number of input bytes that had been durably pushed to
the engine when the failure happened. Callers that want to retry a partially
failed write resume from that offset.
"""

from typing import Optional


class SonicStreamError(Exception):
    """
    Base class for all sonicstream failures.

    Attributes:
        bytes_consumed: Input bytes accepted before the failure (0 when the
                        failure happened before any engine interaction)
    """

    def __init__(self, message: str, bytes_consumed: int = 0) -> None:
        super().__init__(message)
        self.bytes_consumed = bytes_consumed


class InvalidValueError(SonicStreamError, ValueError):
    """Malformed caller input. Raised before any engine or sink interaction."""


class EngineError(SonicStreamError):
    """The transformation engine rejected an operation."""


class EngineCreateError(EngineError):
    """The engine could not be instantiated."""


class EngineWriteError(EngineError):
    """The engine refused input frames."""


class EngineFlushError(EngineError):
    """The engine failed to flush or to hand out flushed frames."""


class SinkWriteError(SonicStreamError):
    """
    The downstream sink failed.

    The sink's own exception (if any) is chained as ``__cause__`` and also
    exposed as ``cause``.
    """

    def __init__(self, message: str, bytes_consumed: int = 0, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, bytes_consumed)
        self.cause = cause


class InvalidStateError(SonicStreamError):
    """Operation attempted on a closed transformer or a destroyed engine."""


class InternalError(SonicStreamError):
    """A construction invariant was violated (unreachable code path)."""
