from __future__ import annotations

from datetime import datetime, timezone

EPOCH = datetime(1970, 1, 1)


def utc_now() -> datetime:
    """Naive UTC datetime, the format every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    delta = value - EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
