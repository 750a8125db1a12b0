from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ReaderStatus


class AnalyzeError(Exception):
    """Base class for every failure surfaced by a waveform analysis."""
    pass


class InvalidRequest(AnalyzeError):
    """The caller asked for something impossible (e.g. zero samples)."""
    pass


class NoAudioTrack(AnalyzeError):
    """The asset opened but contains no decodable audio."""
    pass


class OpenFailed(AnalyzeError):
    """The asset could not be opened or its metadata could not be read."""
    pass


class Cancelled(AnalyzeError):
    """The caller cancelled the run before any usable output existed."""
    pass


class ReaderError(AnalyzeError):
    """Decoding stopped in a non-completed state without usable output.

    Attributes:
        status: The reader status at the time the read loop ended.
        cause:  The underlying exception reported by the reader, if any.
    """

    def __init__(self, status: ReaderStatus, cause: BaseException | None = None):
        self.status = status
        self.cause = cause
        msg = f"reader stopped with status {status.value}"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)
