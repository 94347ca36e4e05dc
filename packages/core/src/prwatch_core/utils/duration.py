import re

DEFAULT_INTERVAL_SECONDS = 30

_INTERVAL_RE = re.compile(r"^(\d+)([sm])?$")


def parse_interval(interval) -> int:
    """Turn "30s", "2m" or a bare number into seconds.

    Unparseable input falls back to the default polling interval.
    """
    if isinstance(interval, int) and not isinstance(interval, bool):
        return interval if interval > 0 else DEFAULT_INTERVAL_SECONDS
    match = _INTERVAL_RE.match(str(interval).strip().lower())
    if not match:
        return DEFAULT_INTERVAL_SECONDS
    value = int(match.group(1))
    if value <= 0:
        return DEFAULT_INTERVAL_SECONDS
    return value * 60 if match.group(2) == "m" else value


def format_duration(seconds: float) -> str:
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
