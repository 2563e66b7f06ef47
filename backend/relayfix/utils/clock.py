"""UTC wall clock in epoch milliseconds.

Services take an optional ``now`` argument and fall back to ``now_ms()`` so
tests can pin time without patching datetime.
"""
from datetime import datetime, timezone
import time


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
