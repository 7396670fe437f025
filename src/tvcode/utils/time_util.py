from datetime import datetime, timedelta, timezone


def parse_ffmpeg_time(value):
    """Parse an ffmpeg HH:MM:SS[.us] timestamp into seconds (None if malformed)."""
    parts = value.strip().split(":")
    if len(parts) != 3:
        return None
    try:
        return float(parts[0]) * 3600 + float(parts[1]) * 60 + float(parts[2])
    except ValueError:
        return None


def get_eta_single_file(video_duration, speed_val, elapsed_seconds):
    remaining_seconds = max(0.0, video_duration - elapsed_seconds) / speed_val
    return _get_eta_string(remaining_seconds)


def format_runtime(total_seconds):
    total_seconds = int(total_seconds)
    hours = total_seconds // 3600
    mins = (total_seconds % 3600) // 60
    secs = total_seconds % 60
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def format_duration(time_in_seconds):
    eta_hours = int(time_in_seconds // 3600)
    eta_mins = int((time_in_seconds % 3600) // 60)
    eta_secs = int(time_in_seconds % 60)
    if eta_hours > 0:
        return f"{eta_hours}h{eta_mins}m{eta_secs}s"
    if eta_mins > 0:
        return f"{eta_mins}m{eta_secs}s"
    return f"{eta_secs}s"


def _get_eta_string(time_in_seconds):
    completion_time = (datetime.now(timezone.utc) + timedelta(
        seconds=time_in_seconds)).strftime("%Y-%m-%d %H:%M:%S")
    return f"{completion_time} ({format_duration(time_in_seconds)})"
