"""Common domain types."""
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

Clock = Callable[[], datetime]


def generate_id() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def isoformat(value: datetime) -> str:
    """ISO-8601 with millisecond precision and a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def short_id(value: str | None) -> str:
    """First 8 characters of an id, used in human-facing notification text."""
    return (value or "")[:8]
