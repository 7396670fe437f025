from pathlib import Path

import pytest

from tvcode.errors import EncodeError
from tvcode.transcode import CodecSummary


def make_summary(video="hevc", audio="ac3", container="matroska,webm", width=1920, height=1080,
                 duration=120.0, subtitles=()):
    return CodecSummary(video_codec=video, audio_codec=audio, container_format=container,
                        width=width, height=height, duration=duration, subtitles=tuple(subtitles))


class FakeInspector:
    """Returns canned summaries (or raises canned errors) keyed by file name."""

    def __init__(self, results):
        self.results = results
        self.probed = []

    def probe(self, path: Path):
        self.probed.append(path.name)
        result = self.results[path.name]
        if isinstance(result, Exception):
            raise result
        return result


class FakeEncoder:
    """Scripted encoder: behaviour per encoder name is 'ok', 'fail', 'empty' or 'partial'."""

    def __init__(self, behaviour):
        self.behaviour = behaviour
        self.calls = []

    def encode(self, src: Path, dst: Path, plan):
        self.calls.append((src.name, plan.encoder_name))
        mode = self.behaviour.get(plan.encoder_name, "ok")
        if mode == "ok":
            dst.write_bytes(b"\x00\x00\x00\x18ftypmp42")
        elif mode == "empty":
            dst.write_bytes(b"")
        elif mode == "partial":
            dst.write_bytes(b"half-written")
            raise EncodeError("ffmpeg exited with code 1: encoder init failed", plan.encoder_name, 1)
        else:
            raise EncodeError("ffmpeg exited with code 1", plan.encoder_name, 1)


@pytest.fixture
def video_dir(tmp_path):
    """A directory with a few placeholder input files."""
    for name in ("b_movie.mkv", "a_clip.AVI", "c_ready.mp4"):
        (tmp_path / name).write_bytes(b"video")
    return tmp_path
