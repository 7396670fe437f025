"""Video transcoding functionality for Apple TV conversion.

This package provides three levels of functionality:
- core: ffprobe parsing and the compatibility decision (CodecSummary, TranscodePlan)
- encoder: encoder selection and ffmpeg invocation with fallback
- batch: directory scanning and per-file orchestration
"""

from .core import (
    AlreadyCompatible,
    CodecSummary,
    FFprobeInspector,
    NeedsTranscode,
    SubtitleTrack,
    TranscodePlan,
    decide,
    is_mp4_container,
    select_bitrates,
)
from .encoder import (
    FFmpegEncoder,
    build_ffmpeg_cmd,
    encoder_candidates,
    transcode,
)
from .batch import (
    RunResult,
    output_path_for,
    process_file,
    run_batch,
    scan_directory,
)

__all__ = [
    # Inspection and decision
    "CodecSummary",
    "SubtitleTrack",
    "TranscodePlan",
    "AlreadyCompatible",
    "NeedsTranscode",
    "FFprobeInspector",
    "decide",
    "is_mp4_container",
    "select_bitrates",
    # Encoding
    "FFmpegEncoder",
    "build_ffmpeg_cmd",
    "encoder_candidates",
    "transcode",
    # Batch
    "RunResult",
    "output_path_for",
    "process_file",
    "run_batch",
    "scan_directory",
]
