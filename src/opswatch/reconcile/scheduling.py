"""Next-run computation for cron schedules."""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from opswatch.reconcile.errors import BadScheduleError


def compute_next_run(cron_expr: str, timezone: str = "UTC", now: datetime | None = None) -> str:
    """Return the next trigger instant after ``now`` as an ISO-8601 UTC timestamp.

    The expression is evaluated in ``timezone``. Raises BadScheduleError for
    invalid expressions or unknown timezones.
    """
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise BadScheduleError(f"Unknown timezone {timezone!r}") from e

    expr = cron_expr.strip()
    if not croniter.is_valid(expr):
        raise BadScheduleError(f"Invalid cron expression {cron_expr!r}")

    start = (now or datetime.now(UTC)).astimezone(tz)
    try:
        next_run = croniter(expr, start).get_next(datetime)
    except (ValueError, KeyError) as e:
        raise BadScheduleError(f"Invalid cron expression {cron_expr!r}: {e}") from e
    return next_run.astimezone(UTC).isoformat()
