from __future__ import annotations

import threading
from datetime import datetime

_clock_lock = threading.Lock()
_last_issued: datetime | None = None


def _wall_clock() -> datetime:
    return datetime.now().astimezone()


def now_iso() -> str:
    """Return timezone-aware current local time in ISO format.

    Never earlier than a previously returned value, even if the system clock
    is stepped back.
    """
    global _last_issued
    with _clock_lock:
        now = _wall_clock()
        if _last_issued is not None and now < _last_issued:
            now = _last_issued
        _last_issued = now
    return now.isoformat(timespec="microseconds")


def format_duration(seconds: float | None) -> str:
    """Render elapsed seconds as e.g. ``1.234s``; unknown renders as zero."""
    if seconds is None:
        seconds = 0.0
    return f"{seconds:.3f}s"
