"""Common utility functions for Helm index restore."""

import sys
import time
from datetime import datetime, timezone


def log(message: str, verbose: bool = False):
    """Print message only if verbose mode is enabled."""
    if verbose:
        print(message, file=sys.stderr)


def normalize_prefix(prefix: str) -> str:
    """
    Normalize an S3 key prefix so it can be joined with object names.

    An empty prefix stays empty (bucket root), anything else gets a
    trailing slash if it does not have one yet.
    """
    if prefix and not prefix.endswith("/"):
        return prefix + "/"
    return prefix or ""


def format_rfc3339_nano(moment: datetime, nanosecond: int = None) -> str:
    """
    Format a timezone-aware datetime as RFC3339 with fractional seconds.

    Trailing zeros of the fraction are dropped (the fraction disappears
    entirely for whole seconds) and UTC is written as 'Z', matching the
    timestamps helm itself writes into index.yaml.

    Args:
        moment: Datetime to format; naive values are treated as UTC
        nanosecond: Optional sub-second part in nanoseconds, overrides the
                    microseconds carried by the datetime

    Returns:
        str: e.g. '2024-03-01T10:15:30.1234Z' or '2024-03-01T12:15:30+02:00'
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)

    if nanosecond is None:
        nanosecond = moment.microsecond * 1000

    result = moment.strftime("%Y-%m-%dT%H:%M:%S")

    fraction = f"{nanosecond:09d}".rstrip("0")
    if fraction:
        result += "." + fraction

    offset = moment.utcoffset()
    total_minutes = int(offset.total_seconds()) // 60
    if total_minutes == 0:
        return result + "Z"

    sign = "+" if total_minutes > 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{result}{sign}{hours:02d}:{minutes:02d}"


def now_rfc3339_nano() -> str:
    """Current local time as an RFC3339 timestamp with nanosecond precision."""
    now_ns = time.time_ns()
    seconds, nanosecond = divmod(now_ns, 1_000_000_000)
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc).astimezone()
    return format_rfc3339_nano(moment, nanosecond)
