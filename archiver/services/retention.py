"""Retention cutoff for the daily purge."""

from datetime import datetime, time, timedelta
from typing import Optional

# Ten minutes before midnight absorbs jitter between the trigger and the run.
CUTOFF_TIME = time(23, 50, 0)


def compute_cutoff(now: Optional[datetime] = None) -> int:
    """Return the purge cutoff as milliseconds since the epoch.

    The cutoff is 23:50:00 local time on the calendar day before `now`.
    It is recomputed on every call and is the same for any `now` within
    one calendar day.

    Args:
        now: Current time (default: local wall clock). Naive values are
            local time; aware values keep their timezone.

    Returns:
        Cutoff timestamp in epoch milliseconds
    """
    if now is None:
        now = datetime.now()
    previous_day = now.date() - timedelta(days=1)
    cutoff = datetime.combine(previous_day, CUTOFF_TIME, tzinfo=now.tzinfo)
    return int(cutoff.timestamp() * 1000)
