import json
from pathlib import Path

import pytest

from tvcode.errors import NoMediaStreams, ProbeError
from tvcode.transcode import core
from tvcode.transcode.core import (
    AlreadyCompatible,
    FFprobeInspector,
    NeedsTranscode,
    SubtitleTrack,
    decide,
    is_mp4_container,
    parse_probe_output,
    select_bitrates,
)
from conftest import make_summary


def _probe_json(streams, format_name="matroska,webm", duration="61.5"):
    fmt = {"format_name": format_name}
    if duration is not None:
        fmt["duration"] = duration
    return json.dumps({"streams": streams, "format": fmt})


VIDEO = {"index": 0, "codec_type": "video", "codec_name": "hevc", "width": 3840, "height": 2160}
AUDIO = {"index": 1, "codec_type": "audio", "codec_name": "eac3"}


class TestParseProbeOutput:
    def test_basic_fields(self):
        summary = parse_probe_output(Path("a.mkv"), _probe_json([VIDEO, AUDIO]))
        assert summary.video_codec == "hevc"
        assert summary.audio_codec == "eac3"
        assert summary.container_format == "matroska,webm"
        assert (summary.width, summary.height) == (3840, 2160)
        assert summary.duration == pytest.approx(61.5)
        assert summary.subtitles == ()

    def test_subtitles_are_indexed_among_subtitle_streams(self):
        streams = [
            VIDEO, AUDIO,
            {"index": 2, "codec_type": "subtitle", "codec_name": "subrip", "tags": {"language": "eng"}},
            {"index": 3, "codec_type": "subtitle", "codec_name": "hdmv_pgs_subtitle",
             "tags": {"language": "fra", "title": "Forced"}},
        ]
        summary = parse_probe_output(Path("a.mkv"), _probe_json(streams))
        assert [s.index for s in summary.subtitles] == [0, 1]
        assert summary.subtitles[0].language == "eng"
        assert not summary.subtitles[0].is_bitmap
        assert summary.subtitles[1].is_bitmap
        assert summary.subtitles[1].title == "Forced"

    def test_cover_art_is_not_the_video_stream(self):
        cover = {"codec_type": "video", "codec_name": "mjpeg", "width": 600, "height": 600,
                 "disposition": {"attached_pic": 1}}
        summary = parse_probe_output(Path("a.mp4"), _probe_json([cover, VIDEO, AUDIO]))
        assert summary.video_codec == "hevc"

    def test_missing_duration_is_none(self):
        summary = parse_probe_output(Path("a.ts"), _probe_json([VIDEO, AUDIO], duration=None))
        assert summary.duration is None

    @pytest.mark.parametrize("streams, message", [
        ([AUDIO], "no video stream"),
        ([VIDEO], "no audio stream"),
        ([], "no video or audio stream"),
    ])
    def test_missing_streams(self, streams, message):
        with pytest.raises(NoMediaStreams) as exc:
            parse_probe_output(Path("a.mkv"), _probe_json(streams))
        assert exc.value.reason == message

    def test_garbage_output(self):
        with pytest.raises(ProbeError) as exc:
            parse_probe_output(Path("a.mkv"), "not json")
        assert not isinstance(exc.value, NoMediaStreams)

    def test_zero_dimensions_are_a_probe_failure(self):
        video = dict(VIDEO, width=0, height=0)
        with pytest.raises(ProbeError, match="dimensions"):
            parse_probe_output(Path("a.mkv"), _probe_json([video, AUDIO]))

    def test_missing_format(self):
        raw = json.dumps({"streams": [VIDEO, AUDIO]})
        with pytest.raises(ProbeError, match="container"):
            parse_probe_output(Path("a.mkv"), raw)


class TestInspector:
    def test_probe_runs_ffprobe_json(self, monkeypatch):
        seen = {}

        def fake_run(cmd):
            seen["cmd"] = cmd
            return 0, _probe_json([VIDEO, AUDIO]), ""

        monkeypatch.setattr(core.system_util, "run_cmd", fake_run)
        summary = FFprobeInspector().probe(Path("/videos/a.mkv"))
        assert summary.video_codec == "hevc"
        assert seen["cmd"][0] == "ffprobe"
        assert "-show_streams" in seen["cmd"] and "-show_format" in seen["cmd"]
        assert seen["cmd"][-1] == "/videos/a.mkv"

    def test_non_zero_exit(self, monkeypatch):
        monkeypatch.setattr(core.system_util, "run_cmd",
                            lambda cmd: (1, "", "a.mkv: Invalid data found when processing input\n"))
        with pytest.raises(ProbeError, match="Invalid data"):
            FFprobeInspector().probe(Path("a.mkv"))


class TestContainer:
    @pytest.mark.parametrize("name", ["mov,mp4,m4a,3gp,3g2,mj2", "MP4", "mp4", "m4v"])
    def test_mp4_family(self, name):
        assert is_mp4_container(name)

    @pytest.mark.parametrize("name", ["matroska,webm", "avi", "mpegts", "asf", "flv"])
    def test_not_mp4(self, name):
        assert not is_mp4_container(name)


class TestBitrates:
    @pytest.mark.parametrize("height, expected", [
        (1, ("3M", "4M")),
        (480, ("3M", "4M")),
        (699, ("3M", "4M")),
        (700, ("5M", "7M")),
        (720, ("5M", "7M")),
        (999, ("5M", "7M")),
        (1000, ("8M", "12M")),
        (1080, ("8M", "12M")),
        (1999, ("8M", "12M")),
        (2000, ("20M", "30M")),
        (2160, ("20M", "30M")),
        (4320, ("20M", "30M")),
    ])
    def test_table(self, height, expected):
        assert select_bitrates(height) == expected


class TestDecide:
    def test_mp4_alias_list_is_compatible(self):
        summary = make_summary(video="h264", audio="aac", container="mov,mp4,m4a,3gp,3g2,mj2")
        assert isinstance(decide(summary), AlreadyCompatible)

    def test_case_insensitive_codecs(self):
        summary = make_summary(video="H264", audio="AAC", container="mov,mp4,m4a,3gp,3g2,mj2")
        assert isinstance(decide(summary), AlreadyCompatible)

    def test_matroska_forces_transcode(self):
        decision = decide(make_summary(video="h264", audio="aac", container="matroska,webm"))
        assert isinstance(decision, NeedsTranscode)
        assert decision.reasons == ["container matroska,webm"]

    def test_plan_from_height(self):
        decision = decide(make_summary(video="hevc", audio="ac3", container="mov,mp4,m4a,3gp,3g2,mj2",
                                       width=1280, height=720))
        assert isinstance(decision, NeedsTranscode)
        plan = decision.plan
        assert (plan.video_bitrate, plan.max_bitrate) == ("5M", "7M")
        assert (plan.target_video_codec, plan.target_audio_codec, plan.container) == ("h264", "aac", "mp4")
        assert plan.use_hardware is False
        assert decision.reasons == ["video hevc", "audio ac3"]

    def test_subtitle_forces_transcode(self):
        summary = make_summary(video="h264", audio="aac", container="mov,mp4,m4a,3gp,3g2,mj2")
        track = SubtitleTrack(index=0, codec="subrip")
        decision = decide(summary, track)
        assert isinstance(decision, NeedsTranscode)
        assert decision.plan.subtitle == track

    def test_for_encoder(self):
        plan = decide(make_summary()).plan
        hw = plan.for_encoder("h264_nvenc")
        assert hw.use_hardware and hw.encoder_name == "h264_nvenc"
        assert not hw.for_encoder("libx264").use_hardware
        assert plan.encoder_name == "libx264"
