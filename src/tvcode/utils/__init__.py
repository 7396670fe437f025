"""
Constants, logging and system helpers shared by the transcoding pipeline.

This package holds the fixed tables and environment overrides that drive the
pipeline, the structured logger, and helpers for running and stopping
external commands.
"""

from .constants import (
    BITRATE_TABLE,
    MP4_CONTAINER_ALIASES,
    OUTPUT_SUFFIX,
    OUTPUT_SUFFIX_SUBS,
    PLATFORM_ENCODERS,
    SOFTWARE_ENCODER,
    STATUS_DRY_RUN,
    STATUS_FAIL,
    STATUS_OK,
    STATUS_SKIP,
    VIDEO_EXTENSIONS,
)
from .logger import LogLevel

__all__ = [
    "VIDEO_EXTENSIONS",
    "MP4_CONTAINER_ALIASES",
    "BITRATE_TABLE",
    "PLATFORM_ENCODERS",
    "SOFTWARE_ENCODER",
    "OUTPUT_SUFFIX",
    "OUTPUT_SUFFIX_SUBS",
    "STATUS_OK",
    "STATUS_SKIP",
    "STATUS_FAIL",
    "STATUS_DRY_RUN",
    "LogLevel",
]
