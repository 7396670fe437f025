"""
Functions to pick an H.264 encoder and run ffmpeg with hardware-to-software fallback.

Hardware encoders are tried in the platform's priority order, restricted to
the ones the local ffmpeg build actually provides, with libx264 always last.
A failed attempt (non-zero exit, or a missing/empty output file) removes the
partial output and moves on to the next encoder.
"""
import platform
import subprocess
import tempfile
import time
from functools import lru_cache
from pathlib import Path
from typing import Optional, List, Dict, Iterable

from tvcode.errors import EncodeError
from tvcode.utils import system_util, logger, time_util, LogLevel
from tvcode.utils.constants import (
    AUDIO_BITRATE,
    AUDIO_CHANNELS,
    H264_LEVEL,
    H264_PROFILE,
    PLATFORM_ENCODERS,
    PROBE_ANALYZE_DURATION,
    PROBE_SIZE,
    PROGRESS_INTERVAL,
    SOFTWARE_CRF,
    SOFTWARE_ENCODER,
    SOFTWARE_PRESET,
    TARGET_AUDIO_CODEC,
    TARGET_CONTAINER,
    VAAPI_DEVICE,
)
from .core import TranscodePlan, SubtitleTrack


@lru_cache(maxsize=4)
def available_ffmpeg_encoders(binary: str = "ffmpeg") -> frozenset:
    """Return the (cached) set of video encoders the local ffmpeg provides."""
    code, out, _ = system_util.run_cmd([binary, "-hide_banner", "-encoders"])
    if code != 0:
        return frozenset()

    encoders = set()
    for line in out.splitlines():
        parts = line.split()
        # Lines look like: " V....D h264_videotoolbox    VideoToolbox H.264 Encoder"
        if len(parts) >= 2 and parts[0].startswith("V"):
            encoders.add(parts[1])
    return frozenset(encoders)


def known_h264_encoders(platform_encoders: Optional[Dict[str, List[str]]] = None) -> set:
    mapping = PLATFORM_ENCODERS if platform_encoders is None else platform_encoders
    known = {SOFTWARE_ENCODER}
    for names in mapping.values():
        known.update(names)
    return known


def encoder_candidates(system: Optional[str] = None,
                       available: Optional[Iterable[str]] = None,
                       preferred: Optional[str] = None,
                       platform_encoders: Optional[Dict[str, List[str]]] = None) -> List[str]:
    """Ordered encoders to try for this host, software encoder last."""
    mapping = PLATFORM_ENCODERS if platform_encoders is None else platform_encoders
    system = system or platform.system()
    available = set(available_ffmpeg_encoders() if available is None else available)

    candidates = [e for e in mapping.get(system, []) if e in available]

    if preferred:
        if preferred in known_h264_encoders(mapping) and (preferred in available or preferred == SOFTWARE_ENCODER):
            candidates = [preferred] + [e for e in candidates if e != preferred]
        else:
            logger.log("encoder.unavailable", LogLevel.WARN,
                       requested=preferred,
                       msg="not an available H.264 encoder, falling back automatically")

    if SOFTWARE_ENCODER not in candidates:
        candidates.append(SOFTWARE_ENCODER)
    return candidates


def _double_rate(rate: str) -> str:
    """Double an ffmpeg rate string such as '12M'."""
    number, unit = rate[:-1], rate[-1]
    if unit.isdigit():
        return str(int(rate) * 2)
    return f"{int(number) * 2}{unit}"


def _escape_filter_path(path: Path) -> str:
    return (str(path)
            .replace("\\", "\\\\")
            .replace(":", "\\:")
            .replace("'", "'\\''"))


def _subtitle_args(src: Path, track: SubtitleTrack) -> List[str]:
    if track.is_bitmap:
        return ["-filter_complex", f"[0:v][0:s:{track.index}]overlay"]
    return ["-vf", f"subtitles='{_escape_filter_path(src)}':si={track.index}"]


def _video_args(plan: TranscodePlan) -> List[str]:
    encoder = plan.encoder_name
    if not plan.use_hardware:
        return [
            "-c:v", encoder,
            "-preset", SOFTWARE_PRESET,
            "-crf", str(SOFTWARE_CRF),
            "-profile:v", H264_PROFILE,
            "-level", H264_LEVEL,
            "-pix_fmt", "yuv420p",
        ]

    rate_args = [
        "-b:v", plan.video_bitrate,
        "-maxrate", plan.max_bitrate,
        "-bufsize", _double_rate(plan.max_bitrate),
    ]
    if encoder == "h264_vaapi":
        return ["-vf", "format=nv12,hwupload", "-c:v", encoder] + rate_args + ["-profile:v", H264_PROFILE]

    args = ["-c:v", encoder]
    if encoder == "h264_nvenc":
        args += ["-preset", "p7"]
    elif encoder == "h264_qsv":
        args += ["-preset", "veryslow"]
    args += rate_args + ["-profile:v", H264_PROFILE, "-level", H264_LEVEL, "-pix_fmt", "yuv420p"]
    if encoder == "h264_videotoolbox":
        args += ["-allow_sw", "1"]
    return args


def build_ffmpeg_cmd(src: Path, dst: Path, plan: TranscodePlan, binary: str = "ffmpeg") -> List[str]:
    """Build the ffmpeg command line for one encoder attempt."""
    cmd = [
        binary,
        "-hide_banner",
        "-nostdin",
        "-loglevel", "error",
        "-nostats",
        "-progress", "pipe:1",
        "-y",
    ]
    if plan.use_hardware and plan.encoder_name == "h264_vaapi":
        cmd += ["-vaapi_device", VAAPI_DEVICE]

    cmd += [
        "-analyzeduration", PROBE_ANALYZE_DURATION,
        "-probesize", PROBE_SIZE,
        "-i", str(src),
    ]

    if plan.subtitle is not None:
        # Filters need frames in system memory, so burning is software only
        cmd += _subtitle_args(src, plan.subtitle)
    cmd += _video_args(plan)

    cmd += [
        "-c:a", TARGET_AUDIO_CODEC,
        "-b:a", AUDIO_BITRATE,
        "-ac", str(AUDIO_CHANNELS),
        "-sn",
        "-movflags", "+faststart",
        "-f", TARGET_CONTAINER,
        str(dst),
    ]
    return cmd


class FFmpegEncoder:
    """Run ffmpeg for a single encoder attempt, logging throttled progress."""

    def __init__(self, binary: str = "ffmpeg", progress_interval: int = PROGRESS_INTERVAL):
        self.binary = binary
        self.progress_interval = progress_interval

    def encode(self, src: Path, dst: Path, plan: TranscodePlan) -> None:
        """Encode src into dst, raising EncodeError on a non-zero exit."""
        cmd = build_ffmpeg_cmd(src, dst, plan, self.binary)
        logger.log("transcode.command", LogLevel.DEBUG, file=src.name, cmd=" ".join(cmd))

        with tempfile.TemporaryFile(mode="w+", encoding="utf-8", errors="replace") as stderr_file:
            try:
                process = subprocess.Popen(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=stderr_file,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                )
            except OSError as e:
                raise EncodeError(f"could not run {self.binary}: {e}", plan.encoder_name) from e

            try:
                self._watch_progress(process, src, plan)
                code = process.wait()
            finally:
                # Reached with the process still running only when interrupted
                system_util.stop_process(process)
                process.stdout.close()

            stderr_file.seek(0)
            stderr_text = stderr_file.read().strip()

        if code != 0:
            detail = stderr_text.splitlines()[-1] if stderr_text else "no error output"
            raise EncodeError(f"ffmpeg exited with code {code}: {detail}", plan.encoder_name, code)

    def _watch_progress(self, process: subprocess.Popen, src: Path, plan: TranscodePlan) -> None:
        # -progress emits key=value blocks, each ending with progress=continue|end
        last_progress_log = time.time()
        out_seconds = None
        speed = None
        for line in process.stdout:
            key, _, value = line.strip().partition("=")
            if key == "out_time":
                out_seconds = time_util.parse_ffmpeg_time(value)
            elif key == "speed":
                try:
                    speed = float(value.strip().rstrip("x"))
                except ValueError:
                    speed = None
            elif key == "progress":
                now = time.time()
                if value == "end" or now - last_progress_log < self.progress_interval:
                    continue
                last_progress_log = now
                self._log_progress(src, plan, out_seconds, speed)

    @staticmethod
    def _log_progress(src: Path, plan: TranscodePlan, out_seconds: Optional[float], speed: Optional[float]) -> None:
        if out_seconds is None:
            return
        fields = {"file": src.name, "encoder": plan.encoder_name}
        if plan.duration:
            fields["pct"] = round(min(100.0, out_seconds / plan.duration * 100), 1)
            if speed:
                fields["eta"] = time_util.get_eta_single_file(plan.duration, speed, out_seconds)
        else:
            fields["pct"] = "N/A"
        if speed is not None:
            fields["speed"] = f"{speed}x"
        logger.log("transcode.progress", LogLevel.INFO, **fields)


def _remove_partial(dst: Path) -> None:
    try:
        dst.unlink(missing_ok=True)
    except OSError as e:
        logger.log("transcode.cleanup_failed", LogLevel.WARN, file=dst.name, error=str(e))


def transcode(src: Path, dst: Path, plan: TranscodePlan, runner, encoders: List[str]) -> str:
    """
    Transcode src into dst, walking the encoder list until one succeeds.

    Args:
        src: Source video file path
        dst: Destination MP4 path
        plan: Transcode plan from the compatibility decision
        runner: Object with encode(src, dst, plan) raising EncodeError on failure
        encoders: Encoders to try in order

    Returns:
        The name of the encoder that produced the output

    Raises:
        EncodeError: every encoder attempt failed; no output is left behind
    """
    if plan.subtitle is not None:
        encoders = [SOFTWARE_ENCODER]

    failures = []
    for encoder in encoders:
        attempt = plan.for_encoder(encoder)
        logger.log("transcode.start", LogLevel.INFO,
                   file=src.name,
                   dst=dst.name,
                   encoder=encoder,
                   hardware=attempt.use_hardware,
                   bitrate=attempt.video_bitrate if attempt.use_hardware else f"crf {SOFTWARE_CRF}",
                   subtitle=attempt.subtitle.index if attempt.subtitle else None)
        try:
            runner.encode(src, dst, attempt)
            if not dst.exists() or dst.stat().st_size == 0:
                raise EncodeError("output file missing or empty", encoder)
        except EncodeError as e:
            _remove_partial(dst)
            failures.append(f"{encoder}: {e.reason}")
            logger.log("transcode.attempt_failed", LogLevel.WARN,
                       file=src.name,
                       encoder=encoder,
                       exit_code=e.exit_code,
                       error=e.reason)
            continue
        except BaseException:
            # Interrupts and unexpected errors leave no partial output either
            _remove_partial(dst)
            raise

        logger.log("transcode.complete", LogLevel.INFO,
                   file=src.name,
                   dst=dst.name,
                   encoder=encoder)
        return encoder

    raise EncodeError("all encoders failed (" + "; ".join(failures) + ")")
