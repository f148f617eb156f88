"""Deadline proximity evaluation (core domain)."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

from core.models import FUTURE, IMMINENT, PAST, DeadlineClassification

IMMINENT_WINDOW_HOURS = 24
_SECONDS_PER_HOUR = 3600


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_deadline(value: str) -> datetime:
    """Parse an ISO-8601 deadline string into an aware UTC datetime.

    Raises ValueError for anything that is not a valid timestamp.
    """

    text = value.strip()
    if not text:
        raise ValueError("Empty deadline")
    # fromisoformat only understands the trailing "Z" on newer interpreters.
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def hours_until(deadline: datetime, now: Optional[datetime] = None) -> int:
    """Return the signed hour delta, rounded up from the fractional value."""

    reference = as_utc(now) if now is not None else utc_now()
    seconds = (as_utc(deadline) - reference).total_seconds()
    # ceil(-0.5) is -0.0 as a float but int() folds it into 0.
    return int(math.ceil(seconds / _SECONDS_PER_HOUR))


def classify(deadline: datetime, now: Optional[datetime] = None) -> DeadlineClassification:
    """Classify a deadline as past, imminent (within 24h) or future.

    The boundary is inclusive: a deadline exactly 24 hours away is imminent,
    while 24h01m rounds up to 25 and is future.
    """

    delta = hours_until(deadline, now)
    if delta <= 0:
        status = PAST
    elif delta <= IMMINENT_WINDOW_HOURS:
        status = IMMINENT
    else:
        status = FUTURE
    return DeadlineClassification(status=status, delta_hours=delta)
