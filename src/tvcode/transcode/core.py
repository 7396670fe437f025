"""
Functions to gather codec information and decide whether a file needs transcoding.

This module runs ffprobe against a file and parses its JSON report into a
CodecSummary, then applies the Apple TV compatibility rules: H.264 video, AAC
audio and an MP4-family container. Files that fail the check get a
TranscodePlan whose bitrates are picked from the source height.
"""
import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, List, Tuple, Union

from tvcode.errors import NoMediaStreams, ProbeError
from tvcode.utils import system_util, logger, LogLevel
from tvcode.utils.constants import (
    BITMAP_SUBTITLE_CODECS,
    BITRATE_TABLE,
    MP4_CONTAINER_ALIASES,
    PROBE_ANALYZE_DURATION,
    PROBE_SIZE,
    SOFTWARE_ENCODER,
    TARGET_AUDIO_CODEC,
    TARGET_CONTAINER,
    TARGET_VIDEO_CODEC,
)


@dataclass(frozen=True)
class SubtitleTrack:
    index: int  # position among subtitle streams only, as used by 0:s:N and si=N
    codec: str
    language: Optional[str] = None
    title: Optional[str] = None

    @property
    def is_bitmap(self) -> bool:
        return self.codec.lower() in BITMAP_SUBTITLE_CODECS


@dataclass(frozen=True)
class CodecSummary:
    video_codec: str
    audio_codec: str
    container_format: str
    width: int
    height: int
    duration: Optional[float] = None
    subtitles: Tuple[SubtitleTrack, ...] = ()


@dataclass(frozen=True)
class TranscodePlan:
    video_bitrate: str
    max_bitrate: str
    encoder_name: str = SOFTWARE_ENCODER
    use_hardware: bool = False
    subtitle: Optional[SubtitleTrack] = None
    duration: Optional[float] = None
    target_video_codec: str = TARGET_VIDEO_CODEC
    target_audio_codec: str = TARGET_AUDIO_CODEC
    container: str = TARGET_CONTAINER

    def for_encoder(self, encoder: str) -> "TranscodePlan":
        """Return a copy of this plan bound to a specific ffmpeg encoder."""
        return replace(self, encoder_name=encoder, use_hardware=encoder != SOFTWARE_ENCODER)


@dataclass(frozen=True)
class AlreadyCompatible:
    reason: str = "already H.264/AAC/MP4"


@dataclass(frozen=True)
class NeedsTranscode:
    plan: TranscodePlan
    reasons: List[str] = field(default_factory=list)


Decision = Union[AlreadyCompatible, NeedsTranscode]


def _positive_int(value) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def parse_probe_output(path: Path, raw: str) -> CodecSummary:
    """Parse an ffprobe -show_format -show_streams JSON report."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProbeError(path, f"unparseable ffprobe output ({e})") from e
    if not isinstance(data, dict):
        raise ProbeError(path, "unexpected ffprobe output shape")

    streams = data.get("streams") or []
    video = None
    audio = None
    subtitles = []
    for s in streams:
        codec_type = s.get("codec_type")
        if codec_type == "video" and video is None:
            # Cover art is reported as a video stream
            if (s.get("disposition") or {}).get("attached_pic") == 1:
                continue
            video = s
        elif codec_type == "audio" and audio is None:
            audio = s
        elif codec_type == "subtitle":
            tags = s.get("tags") or {}
            subtitles.append(SubtitleTrack(
                index=len(subtitles),
                codec=s.get("codec_name", "unknown"),
                language=tags.get("language"),
                title=tags.get("title"),
            ))

    if video is None and audio is None:
        raise NoMediaStreams(path, "no video or audio stream")
    if video is None:
        raise NoMediaStreams(path, "no video stream")
    if audio is None:
        raise NoMediaStreams(path, "no audio stream")

    container = (data.get("format") or {}).get("format_name")
    if not container:
        raise ProbeError(path, "missing container format")

    width = _positive_int(video.get("width"))
    height = _positive_int(video.get("height"))
    if width is None or height is None:
        raise ProbeError(path, "missing video dimensions")

    duration = None
    try:
        duration = float(data["format"]["duration"])
    except (KeyError, TypeError, ValueError):
        pass

    return CodecSummary(
        video_codec=video.get("codec_name") or "unknown",
        audio_codec=audio.get("codec_name") or "unknown",
        container_format=container,
        width=width,
        height=height,
        duration=duration,
        subtitles=tuple(subtitles),
    )


class FFprobeInspector:
    """Probe media files with ffprobe."""

    def __init__(self, binary: str = "ffprobe"):
        self.binary = binary

    def command(self, path: Path) -> List[str]:
        return [
            self.binary, "-v", "error",
            "-print_format", "json",
            "-show_format", "-show_streams",
            "-analyzeduration", PROBE_ANALYZE_DURATION,
            "-probesize", PROBE_SIZE,
            str(path),
        ]

    def probe(self, path: Path) -> CodecSummary:
        """Probe a file, raising ProbeError (or NoMediaStreams) on failure."""
        try:
            code, out, err = system_util.run_cmd(self.command(path))
        except OSError as e:
            raise ProbeError(path, f"could not run {self.binary}: {e}") from e
        if code != 0:
            detail = err.strip().splitlines()[-1] if err.strip() else f"exit code {code}"
            raise ProbeError(path, f"ffprobe failed: {detail}")

        summary = parse_probe_output(path, out)
        logger.log("probe.complete", LogLevel.DEBUG,
                   file=path.name,
                   video=summary.video_codec,
                   audio=summary.audio_codec,
                   container=summary.container_format,
                   res=f"{summary.width}x{summary.height}",
                   subtitles=len(summary.subtitles))
        return summary


def is_mp4_container(container_format: str) -> bool:
    """Check a comma-joined ffprobe format_name list for an MP4-family alias."""
    aliases = {a.strip().lower() for a in container_format.split(",")}
    return bool(aliases & MP4_CONTAINER_ALIASES)


def select_bitrates(height: int) -> Tuple[str, str]:
    """Pick (video_bitrate, max_bitrate) for a source height."""
    for min_height, bitrate, max_bitrate in BITRATE_TABLE:
        if height >= min_height:
            return bitrate, max_bitrate
    return BITRATE_TABLE[-1][1], BITRATE_TABLE[-1][2]


def incompatibilities(summary: CodecSummary) -> List[str]:
    """List the reasons a file is not Apple TV compatible (empty if it is)."""
    reasons = []
    if summary.video_codec.lower() != TARGET_VIDEO_CODEC:
        reasons.append(f"video {summary.video_codec}")
    if summary.audio_codec.lower() != TARGET_AUDIO_CODEC:
        reasons.append(f"audio {summary.audio_codec}")
    if not is_mp4_container(summary.container_format):
        reasons.append(f"container {summary.container_format}")
    return reasons


def decide(summary: CodecSummary, subtitle: Optional[SubtitleTrack] = None) -> Decision:
    """Decide whether a file can be left alone or needs transcoding."""
    reasons = incompatibilities(summary)
    if subtitle is not None:
        reasons.append(f"burn subtitle track {subtitle.index}")
    if not reasons:
        return AlreadyCompatible()

    bitrate, max_bitrate = select_bitrates(summary.height)
    plan = TranscodePlan(
        video_bitrate=bitrate,
        max_bitrate=max_bitrate,
        subtitle=subtitle,
        duration=summary.duration,
    )
    return NeedsTranscode(plan=plan, reasons=reasons)
