"""Time helpers"""

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(now: Optional[datetime]) -> datetime:
    """Return ``now`` as an aware datetime; naive values are taken as UTC, None means now"""
    if now is None:
        return utc_now()
    if now.tzinfo is None or now.tzinfo.utcoffset(now) is None:
        return now.replace(tzinfo=timezone.utc)
    return now
