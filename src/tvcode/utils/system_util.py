"""
Utility functions for running system commands and verifying binary availability.

Functions:
    - run_cmd: Executes a system command and returns its exit code along with its
      standard output and error streams.
    - require_binaries: Checks that every required binary is on PATH and raises
      StartupError naming the missing ones otherwise.
    - stop_process: Terminates a child process, escalating to kill if it does
      not exit in time, so no encoder survives an interrupted run.
"""
import shutil
import subprocess
from typing import Tuple, List, Iterable

from tvcode.errors import StartupError

TERMINATE_TIMEOUT = 10


def run_cmd(cmd: List[str]) -> Tuple[int, str, str]:
    """Run a command and return (code, stdout, stderr)."""
    p = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True,
                       encoding="utf-8", errors="replace")
    return p.returncode, p.stdout, p.stderr


def require_binaries(binaries: Iterable[str]) -> None:
    """Raise StartupError if any binary is missing from PATH."""
    missing = [b for b in binaries if shutil.which(b) is None]
    if missing:
        raise StartupError(
            f"{', '.join(missing)} not found on PATH. "
            "Install ffmpeg first (e.g. brew install ffmpeg, apt install ffmpeg)."
        )


def stop_process(process: subprocess.Popen, timeout: float = TERMINATE_TIMEOUT) -> None:
    """Terminate a running child process and reap it."""
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()
