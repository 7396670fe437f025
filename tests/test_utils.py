import subprocess
import sys

import pytest

from tvcode.errors import StartupError
from tvcode.utils import constants, logger, system_util, time_util
from tvcode.utils.logger import LogLevel


@pytest.mark.parametrize("value, expected", [
    ("00:01:40.500000", 100.5),
    ("01:00:00", 3600.0),
    ("N/A", None),
    ("-9223372036854775807", None),
])
def test_parse_ffmpeg_time(value, expected):
    assert time_util.parse_ffmpeg_time(value) == expected


def test_format_runtime_and_duration():
    assert time_util.format_runtime(3725) == "01:02:05"
    assert time_util.format_duration(3725) == "1h2m5s"
    assert time_util.format_duration(65) == "1m5s"
    assert time_util.format_duration(9) == "9s"


def test_format_kv_keeps_single_line():
    text = logger._format_kv({"file": 'a "b"\nc', "ok": True, "code": None, "pct": 12.5})
    assert text == 'file="a \\"b\\"\\nc" | ok=true | code=null | pct=12.5'


def test_log_respects_level(capsys):
    previous = logger.get_log_level()
    try:
        logger.set_log_level(LogLevel.WARN)
        logger.log("probe.complete", LogLevel.INFO, file="a.mkv")
        logger.log("probe.failed", LogLevel.WARN, file="a.mkv")
    finally:
        logger.set_log_level(previous)
    out = capsys.readouterr().out
    assert "probe.complete" not in out
    assert '[WARN] | probe.failed | file="a.mkv"' in out


def test_require_binaries(monkeypatch):
    monkeypatch.setattr(system_util.shutil, "which", lambda name: None if name == "ffprobe" else "/usr/bin/" + name)
    with pytest.raises(StartupError, match="ffprobe"):
        system_util.require_binaries(["ffmpeg", "ffprobe"])
    monkeypatch.setattr(system_util.shutil, "which", lambda name: "/usr/bin/" + name)
    system_util.require_binaries(["ffmpeg", "ffprobe"])


def test_stop_process_terminates_child():
    process = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    system_util.stop_process(process, timeout=5)
    assert process.poll() is not None


class TestEnvInt:
    def test_unset_uses_default(self, monkeypatch):
        monkeypatch.delenv("TVCODE_PROGRESS_INTERVAL", raising=False)
        assert constants.env_int("TVCODE_PROGRESS_INTERVAL", 30) == 30

    def test_valid_value(self, monkeypatch):
        monkeypatch.setenv("TVCODE_PROGRESS_INTERVAL", "5")
        assert constants.env_int("TVCODE_PROGRESS_INTERVAL", 30) == 5

    @pytest.mark.parametrize("raw", ["abc", "1.5", "-3"])
    def test_malformed_value_warns_and_uses_default(self, monkeypatch, capsys, raw):
        monkeypatch.setenv("TVCODE_PROGRESS_INTERVAL", raw)
        assert constants.env_int("TVCODE_PROGRESS_INTERVAL", 30) == 30
        out = capsys.readouterr().out
        assert "[WARN] | config.invalid" in out
        assert 'name="TVCODE_PROGRESS_INTERVAL"' in out
