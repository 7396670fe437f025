"""
Command-line entry point: convert every video in a directory for Apple TV.
"""
import argparse
import os
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

import tvcode as tvcode_module
from tvcode import transcode
from tvcode.errors import ScanError, StartupError
from tvcode.utils import LogLevel, logger, system_util, time_util
from tvcode.utils.constants import (
    EXIT_FAILURES,
    EXIT_FATAL,
    EXIT_INTERRUPTED,
    EXIT_OK,
    LOG_FILE,
    PREFERRED_ENCODER,
    STATUS_DRY_RUN,
    STATUS_FAIL,
    STATUS_OK,
    STATUS_SKIP,
)


def _signal_handler(signum, frame):
    """Turn SIGTERM into the same interrupt path as Ctrl-C."""
    if tvcode_module.DEBUG:
        logger.log("tvcode.signal", LogLevel.DEBUG, signal=signal.Signals(signum).name)
    raise KeyboardInterrupt(f"signal {signum}")


def prompt_subtitle(src: Path, tracks: Sequence[transcode.SubtitleTrack],
                    input_fn=input) -> Optional[transcode.SubtitleTrack]:
    """Ask which subtitle track to burn into src (None to skip)."""
    logger.safe_print(f"\nSubtitle tracks in {src.name}:")
    for position, track in enumerate(tracks, start=1):
        title = f" - {track.title}" if track.title else ""
        kind = "bitmap" if track.is_bitmap else "text"
        logger.safe_print(f"  [{position}] {track.language or 'unknown'} ({track.codec}, {kind}){title}")
    logger.safe_print("  [0] Skip subtitle burning")

    try:
        answer = input_fn(f"Select subtitle track [0-{len(tracks)}]: ").strip()
    except EOFError:
        # stdin closed or not a terminal
        answer = ""
    try:
        choice = int(answer)
    except ValueError:
        choice = -1
    if choice == 0:
        return None
    if 1 <= choice <= len(tracks):
        return tracks[choice - 1]
    logger.safe_print("Invalid selection, skipping subtitle burning")
    return None


def _print_summary(results: List[transcode.RunResult]) -> None:
    logger.safe_print("")
    for r in results:
        if r.status == STATUS_OK:
            logger.safe_print(f"[{r.status}] {r.source.name} -> {r.output.name} ({r.encoder})")
        elif r.status == STATUS_DRY_RUN:
            logger.safe_print(f"[{r.status}] {r.source.name} -> {r.output.name} ({r.reason})")
        else:
            logger.safe_print(f"[{r.status}] {r.source.name} ({r.reason})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tvcode",
        description="Convert videos in a directory to Apple TV compatible H.264/AAC/MP4. "
                    "Uses hardware acceleration when available and falls back to libx264.",
        epilog="Example: cd ~/Movies && tvcode",
    )
    parser.add_argument("directory", nargs="?", default=None,
                        help="Directory to scan (default: current working directory)")
    parser.add_argument("-s", "--subtitles", action="store_true",
                        help="Prompt for a subtitle track to burn into each converted video")
    parser.add_argument("--overwrite", action="store_true",
                        help="Replace existing *_appletv.mp4 outputs (default: skip those files)")
    parser.add_argument("--encoder",
                        help="Preferred H.264 encoder (e.g. h264_videotoolbox, h264_nvenc, libx264). "
                             "Defaults to the best available for your OS, or $TVCODE_ENCODER.")
    parser.add_argument("--dry-run", action="store_true", help="Probe and report without transcoding")
    parser.add_argument("--log-file", help="Also write log output to this file (or $TVCODE_LOG_FILE)")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {tvcode_module.__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Environment fallbacks
    if not args.log_file and LOG_FILE:
        args.log_file = LOG_FILE
    if not args.encoder and PREFERRED_ENCODER:
        args.encoder = PREFERRED_ENCODER

    tvcode_module.DEBUG = args.debug
    logger.set_log_level(LogLevel.DEBUG if tvcode_module.DEBUG else LogLevel.INFO)
    if args.log_file:
        logger.set_log_file(Path(args.log_file).expanduser().resolve())

    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        return _run(args)
    finally:
        logger.set_log_file(None)


def _run(args) -> int:
    logger.safe_print(f"tvcode v{tvcode_module.__version__} - Apple TV Video Transcoder")

    try:
        system_util.require_binaries(["ffmpeg", "ffprobe"])
    except StartupError as e:
        logger.log("startup.error", LogLevel.ERROR, msg=str(e))
        return EXIT_FATAL

    directory = Path(args.directory).expanduser().resolve() if args.directory else Path.cwd()
    try:
        files = transcode.scan_directory(directory)
    except ScanError as e:
        logger.log("scan.error", LogLevel.ERROR, msg=str(e))
        return EXIT_FATAL

    if not files:
        logger.safe_print(f"0 files found in {directory}")
        return EXIT_OK

    encoders = transcode.encoder_candidates(preferred=args.encoder)
    start_time = time.time()
    logger.log("tvcode.start", LogLevel.INFO,
               pid=os.getpid(),
               directory=str(directory),
               files_found=len(files),
               encoders=",".join(encoders),
               subtitles=args.subtitles,
               overwrite=args.overwrite,
               dry_run=args.dry_run)

    try:
        results = transcode.run_batch(
            files,
            transcode.FFprobeInspector(),
            transcode.FFmpegEncoder(),
            encoders,
            overwrite=args.overwrite,
            dry_run=args.dry_run,
            choose_subtitle=prompt_subtitle if args.subtitles else None,
            show_progress=not args.subtitles,
        )
    except KeyboardInterrupt:
        logger.log("tvcode.interrupted", LogLevel.WARN,
                   runtime=time_util.format_runtime(time.time() - start_time))
        return EXIT_INTERRUPTED

    _print_summary(results)

    converted = sum(1 for r in results if r.status == STATUS_OK)
    skipped = sum(1 for r in results if r.status == STATUS_SKIP)
    failed = sum(1 for r in results if r.status == STATUS_FAIL)
    dry = sum(1 for r in results if r.status == STATUS_DRY_RUN)

    logger.log("tvcode.end", LogLevel.INFO,
               pid=os.getpid(),
               runtime=time_util.format_runtime(time.time() - start_time),
               converted=converted,
               skipped=skipped,
               failed=failed,
               dry_run=dry)
    logger.safe_print(f"\nDone. converted={converted} skipped={skipped} failed={failed} dry-run={dry}")

    return EXIT_FAILURES if failed else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
