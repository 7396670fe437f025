"""
Convert a directory of videos into Apple TV compatible H.264/AAC/MP4 files.

Files are inspected with ffprobe; anything that is not already H.264 video
with AAC audio in an MP4 container is transcoded with ffmpeg, preferring the
host's hardware encoder and falling back to libx264.
"""

__version__ = "1.0.0"

# Debug flag for controlling verbose output
DEBUG: bool = False

__all__ = ["__version__", "DEBUG"]
