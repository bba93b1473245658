"""
Clock and id factory shared by the services.

Both are injected into the services so tests can pin time and ids; nothing
here keeps state between calls.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import uuid4

Clock = Callable[[], datetime]
IdFactory = Callable[[], str]


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid4())


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from ``start`` to ``end``, rounded up."""
    return int(math.ceil((end - start).total_seconds() / 60.0))
