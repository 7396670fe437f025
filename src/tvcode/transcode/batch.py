"""
This module provides directory scanning and the per-file pipeline.

Each discovered file is probed, checked for Apple TV compatibility and, when
needed, transcoded next to the original as `{stem}_appletv.mp4`. Per-file
problems become skipped or failed results and never stop the batch.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from tqdm import tqdm

from tvcode.errors import EncodeError, NoMediaStreams, OutputExistsError, ProbeError, ScanError
from tvcode.utils import logger, LogLevel
from tvcode.utils.constants import (
    OUTPUT_SUFFIX,
    OUTPUT_SUFFIX_SUBS,
    STATUS_DRY_RUN,
    STATUS_FAIL,
    STATUS_OK,
    STATUS_SKIP,
    TARGET_CONTAINER,
    VIDEO_EXTENSIONS,
)
from . import core, encoder as encoder_mod

SubtitleChooser = Callable[[Path, Sequence[core.SubtitleTrack]], Optional[core.SubtitleTrack]]


@dataclass
class RunResult:
    """Outcome of processing one file."""

    source: Path
    status: str
    output: Optional[Path] = None
    reason: str = ""
    encoder: Optional[str] = None

    @classmethod
    def skipped(cls, source: Path, reason: str) -> "RunResult":
        return cls(source, STATUS_SKIP, reason=reason)

    @classmethod
    def converted(cls, source: Path, output: Path, encoder: str) -> "RunResult":
        return cls(source, STATUS_OK, output=output, encoder=encoder)

    @classmethod
    def failed(cls, source: Path, reason: str) -> "RunResult":
        return cls(source, STATUS_FAIL, reason=reason)


def scan_directory(directory: Path) -> List[Path]:
    """List video files directly inside directory, sorted by name."""
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        raise ScanError(f"cannot read directory {directory}: {e.strerror or e}") from e

    files = []
    for p in entries:
        if p.suffix.lower() not in VIDEO_EXTENSIONS:
            continue
        try:
            if p.is_file():
                files.append(p)
        except OSError as e:
            logger.log("scan.unreadable", LogLevel.WARN, file=p.name, error=str(e))
    return sorted(files, key=lambda f: f.name)


def output_path_for(src: Path, burn_subtitles: bool = False) -> Path:
    suffix = OUTPUT_SUFFIX_SUBS if burn_subtitles else OUTPUT_SUFFIX
    return src.with_name(f"{src.stem}{suffix}.{TARGET_CONTAINER}")


def check_output(dst: Path, overwrite: bool) -> None:
    """Refuse to replace an earlier conversion unless overwriting was requested."""
    if dst.exists() and not overwrite:
        raise OutputExistsError(dst)


def process_file(src: Path, inspector, runner, encoders: List[str], overwrite: bool = False,
                 dry_run: bool = False, choose_subtitle: Optional[SubtitleChooser] = None) -> RunResult:
    """Probe, decide and transcode a single file."""
    try:
        summary = inspector.probe(src)
    except NoMediaStreams as e:
        logger.log("probe.no_streams", LogLevel.WARN, file=src.name, reason=e.reason)
        return RunResult.skipped(src, e.reason)
    except ProbeError as e:
        logger.log("probe.failed", LogLevel.WARN, file=src.name, reason=e.reason)
        return RunResult.skipped(src, f"probe failed: {e.reason}")

    subtitle = None
    if choose_subtitle is not None and summary.subtitles:
        subtitle = choose_subtitle(src, summary.subtitles)

    decision = core.decide(summary, subtitle)
    if isinstance(decision, core.AlreadyCompatible):
        logger.log("decide.compatible", LogLevel.INFO, file=src.name)
        return RunResult.skipped(src, decision.reason)

    logger.log("decide.transcode", LogLevel.INFO,
               file=src.name,
               reasons=", ".join(decision.reasons),
               res=f"{summary.width}x{summary.height}",
               bitrate=decision.plan.video_bitrate,
               maxrate=decision.plan.max_bitrate)

    dst = output_path_for(src, subtitle is not None)
    try:
        check_output(dst, overwrite)
    except OutputExistsError as e:
        logger.log("transcode.output_exists", LogLevel.WARN, file=src.name, dst=dst.name)
        return RunResult.skipped(src, str(e))

    if dry_run:
        return RunResult(src, STATUS_DRY_RUN, output=dst, reason=", ".join(decision.reasons))

    try:
        used = encoder_mod.transcode(src, dst, decision.plan, runner, encoders)
    except EncodeError as e:
        logger.log("transcode.failed", LogLevel.ERROR, file=src.name, error=e.reason)
        return RunResult.failed(src, e.reason)
    return RunResult.converted(src, dst, used)


def run_batch(files: List[Path], inspector, runner, encoders: List[str], overwrite: bool = False,
              dry_run: bool = False, choose_subtitle: Optional[SubtitleChooser] = None,
              show_progress: bool = True) -> List[RunResult]:
    """Process every file in order and collect the results."""
    results = []
    for src in tqdm(files, desc="Converting", unit="file", disable=not show_progress):
        result = process_file(src, inspector, runner, encoders,
                              overwrite=overwrite, dry_run=dry_run, choose_subtitle=choose_subtitle)
        results.append(result)
    return results
