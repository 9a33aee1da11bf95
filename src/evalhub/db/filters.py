# evalhub/db/filters.py
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from sqlalchemy import DateTime, column
from sqlalchemy.sql.elements import ColumnElement

logger = logging.getLogger(__name__)

# Unqualified so they bind to whatever relation exposes these names
START_TIME = column("start_time", DateTime(timezone=True))
END_TIME = column("end_time", DateTime(timezone=True))


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_hours(value: Union[str, float, int, None]) -> Optional[float]:
    if value is None:
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(hours) or math.isinf(hours):
        return None
    return hours


def get_date_range_filters(
    start_time: Optional[str],
    end_time: Optional[str],
    past_hours: Union[str, float, int, None],
    *,
    now: Optional[datetime] = None,
) -> list[ColumnElement[bool]]:
    """
    Build time-window predicates for trace-like relations.

    ``past_hours`` wins when it is a number: rows that started within the last
    N hours. Otherwise ``start_time`` (and optional ``end_time``, defaulting to
    now) bound ``end_time`` on both sides. With neither, no predicates.
    """
    now = now or datetime.now(timezone.utc)

    hours = _parse_hours(past_hours)
    if hours is not None:
        return [START_TIME > now - timedelta(hours=hours)]

    if past_hours not in (None, ""):
        logger.debug("Ignoring non-numeric pastHours=%r", past_hours)

    if start_time:
        lower = parse_timestamp(start_time)
        upper = parse_timestamp(end_time) if end_time else now
        return [END_TIME > lower, END_TIME < upper]

    return []
