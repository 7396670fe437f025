"""Exception hierarchy for the transcoding pipeline.

Only StartupError and ScanError abort a run; everything else is recovered per
file by the batch loop and turned into a skipped or failed result.
"""
from pathlib import Path
from typing import Optional


class TvcodeError(Exception):
    """Base class for all tvcode errors."""


class StartupError(TvcodeError):
    """A required external tool is missing."""


class ScanError(TvcodeError):
    """The target directory cannot be listed."""


class ProbeError(TvcodeError):
    """ffprobe failed or returned output that could not be parsed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path.name}: {reason}")
        self.path = path
        self.reason = reason


class NoMediaStreams(ProbeError):
    """The file has no video stream or no audio stream."""


class EncodeError(TvcodeError):
    """An ffmpeg attempt failed, or every encoder attempt failed."""

    def __init__(self, reason: str, encoder: Optional[str] = None, exit_code: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.encoder = encoder
        self.exit_code = exit_code


class OutputExistsError(TvcodeError):
    """The output file already exists and overwriting is disabled."""

    def __init__(self, path: Path):
        super().__init__(f"output already exists: {path.name}")
        self.path = path
