"""
Constants and configuration settings for Apple TV transcoding.

This module contains the fixed tables that drive the pipeline: accepted video
extensions, MP4 container aliases reported by ffprobe, the resolution to
bitrate table, the per-platform encoder fallback order, output naming and the
status labels used in the run summary. A handful of settings can be
overridden through environment variables (a `.env` file is honored).
"""

import os

from dotenv import load_dotenv

from .logger import LogLevel, log

load_dotenv()


def env_int(name: str, default: int) -> int:
    """Read a non-negative integer setting, warning and using default when malformed."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if value < 0:
        log("config.invalid", LogLevel.WARN, name=name, value=raw, default=default)
        return default
    return value


# Run settings
PREFERRED_ENCODER = os.getenv("TVCODE_ENCODER") or None
LOG_FILE = os.getenv("TVCODE_LOG_FILE") or None
PROGRESS_INTERVAL = env_int("TVCODE_PROGRESS_INTERVAL", 30)  # seconds between progress log lines

# Accepted video file extensions (compared lower-cased)
VIDEO_EXTENSIONS = {
    ".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm",
    ".m4v", ".mpg", ".mpeg", ".3gp", ".ts", ".m2ts",
}

# Target format
TARGET_VIDEO_CODEC = "h264"
TARGET_AUDIO_CODEC = "aac"
TARGET_CONTAINER = "mp4"

# ffprobe reports format_name as a comma-joined alias list, e.g. "mov,mp4,m4a,3gp,3g2,mj2"
MP4_CONTAINER_ALIASES = {"mp4", "m4v"}

# (min_height, video_bitrate, max_bitrate); first match wins, heights are inclusive
BITRATE_TABLE = [
    (2000, "20M", "30M"),  # 2160p
    (1000, "8M", "12M"),  # 1080p
    (700, "5M", "7M"),  # 720p
    (0, "3M", "4M"),  # SD
]

# Encoder settings
SOFTWARE_ENCODER = "libx264"
SOFTWARE_PRESET = "medium"
SOFTWARE_CRF = 20
H264_PROFILE = "high"
H264_LEVEL = "4.1"
AUDIO_BITRATE = "192k"
AUDIO_CHANNELS = 2
VAAPI_DEVICE = "/dev/dri/renderD128"

# Hardware encoders in priority order per platform.system(); software is appended last
PLATFORM_ENCODERS = {
    "Darwin": ["h264_videotoolbox"],
    "Windows": ["h264_nvenc", "h264_qsv"],
    "Linux": ["h264_nvenc", "h264_vaapi"],
}

# Probe settings (large values help detect PGS subtitle streams)
PROBE_ANALYZE_DURATION = "100000000"
PROBE_SIZE = "100000000"

# Subtitle codecs that are bitmap based and must be overlaid rather than rendered
BITMAP_SUBTITLE_CODECS = {
    "hdmv_pgs_subtitle", "pgssub", "dvd_subtitle", "dvdsub", "dvb_subtitle", "dvbsub",
}

# Output naming
OUTPUT_SUFFIX = "_appletv"
OUTPUT_SUFFIX_SUBS = "_appletv_subs"

# Processing status codes
STATUS_OK = "OK"
STATUS_SKIP = "SKIP"
STATUS_FAIL = "FAIL"
STATUS_DRY_RUN = "DRY-RUN"

# Exit codes
EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2
EXIT_INTERRUPTED = 130
