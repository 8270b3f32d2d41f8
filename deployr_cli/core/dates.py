"""Destination-folder names for job results."""

from datetime import datetime, tzinfo
from typing import Optional


def format_timestamp(timestamp_ms: float, tz: Optional[tzinfo] = None) -> str:
    """
    Format a server timestamp (epoch milliseconds) as a result folder name.

    ``job-YYYY-MM-DD HH:MM:SS +HHMM`` in the local timezone unless ``tz``
    is given. Epoch 0 at UTC-5 gives ``job-1969-12-31 19:00:00 -0500``.
    """
    seconds = timestamp_ms / 1000.0
    if tz is None:
        moment = datetime.fromtimestamp(seconds).astimezone()
    else:
        moment = datetime.fromtimestamp(seconds, tz)

    # utcoffset() is positive east of UTC
    offset_min = int(moment.utcoffset().total_seconds() // 60)
    sign = "+" if offset_min >= 0 else "-"
    offset_min = abs(offset_min)

    return (
        f"job-{moment:%Y-%m-%d %H:%M:%S} "
        f"{sign}{offset_min // 60:02d}{offset_min % 60:02d}"
    )
