"""
Timezone helpers.

All timestamps are stored and compared as timezone-aware UTC. SQLite hands
DateTime(timezone=True) columns back naive, so reads go through ensure_utc.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
