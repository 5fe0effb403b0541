"""Schedule parsing for ``At`` resources.

Schedules are absolute UTC timestamps in the fixed layout ``YYYY-MM-DDThh:mm:ssZ``.
Nothing else is accepted: no offsets, no fractional seconds, no lenient widths.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Final

from .errors import ScheduleValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

SCHEDULE_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%SZ"
_SCHEDULE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}Z"
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_schedule(value: str) -> datetime:
    """Parse ``value`` into an aware UTC datetime or raise ``ScheduleValidationError``."""

    if not _SCHEDULE_PATTERN.fullmatch(value):
        raise ScheduleValidationError(
            f"Invalid schedule {value!r}: expected layout YYYY-MM-DDThh:mm:ssZ"
        )
    try:
        parsed = datetime.strptime(value, SCHEDULE_FORMAT)  # noqa: DTZ007
    except ValueError as exc:
        raise ScheduleValidationError(f"Invalid schedule {value!r}: {exc}") from exc
    return parsed.replace(tzinfo=UTC)


def format_schedule(moment: datetime) -> str:
    """Render ``moment`` in the schedule layout, converting to UTC first."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime(SCHEDULE_FORMAT)


def time_until_schedule(
    schedule: str,
    *,
    now_provider: Callable[[], datetime] = _utcnow,
) -> timedelta:
    """Return how long until ``schedule``; negative once it is overdue."""

    target = parse_schedule(schedule)
    return target - now_provider().astimezone(UTC)
