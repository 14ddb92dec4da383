"""
UTC datetime utilities for consistent timezone handling.

All datetime values in the system should be timezone-aware UTC.
Use these helpers instead of datetime.now() or datetime.utcnow().
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current UTC datetime with timezone info."""
    return datetime.now(UTC)


def epoch_ms(dt: datetime | None = None) -> int:
    """
    Return a millisecond Unix timestamp for dt (default: now).

    Recompute metadata stores createdAt in milliseconds so it stays
    readable by services that use JavaScript-style timestamps.

    Args:
        dt: Timezone-aware datetime; defaults to utc_now()

    Returns:
        Milliseconds since the epoch
    """
    return int((dt or utc_now()).timestamp() * 1000)
