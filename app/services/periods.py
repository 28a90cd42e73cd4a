"""
Period resolution for dashboards and reports.

A period is either a relative token (``<N><unit>``, unit one of d/w/m/y),
one of the literals ``ytd`` / ``all``, or an explicit ``from``/``to`` pair
taken from the query string. Resolution never raises: anything unusable
falls through to the next strategy and finally to "last month".
"""
from __future__ import annotations

import calendar
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from app.core.config import report_timezone, settings


PERIOD_PATTERN = re.compile(r"(\d+)([dwmy])", re.ASCII)
EPOCH_FLOOR = date(2000, 1, 1)
FALLBACK_LABEL = "Last Month"

PERIOD_PRESETS: tuple[tuple[str, str], ...] = (
    ("1d", "Last 24 Hours"),
    ("7d", "Last 7 Days"),
    ("1w", "Last Week"),
    ("1m", "Last Month"),
    ("3m", "Last 3 Months"),
    ("6m", "Last 6 Months"),
    ("1y", "Last Year"),
    ("ytd", "Year to Date"),
    ("all", "All Time"),
)

# unit -> (singular label, plural noun)
_UNIT_LABELS = {
    "d": ("Last 24 Hours", "Days"),
    "w": ("Last Week", "Weeks"),
    "m": ("Last Month", "Months"),
    "y": ("Last Year", "Years"),
}


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime
    label: str

    def as_dict(self) -> dict[str, str]:
        return {
            "from": self.start.isoformat(),
            "to": self.end.isoformat(),
            "label": self.label,
        }


def _at(day: date, clock: time, tz) -> datetime:
    naive = datetime.combine(day, clock)
    if tz is None:
        return naive
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def start_of_day(day: date, tz=None) -> datetime:
    return _at(day, time.min, tz)


def end_of_day(day: date, tz=None) -> datetime:
    return _at(day, time.max, tz)


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def _shift_back(today: date, count: int, unit: str) -> date:
    if unit == "d":
        return today - timedelta(days=count)
    if unit == "w":
        return today - timedelta(weeks=count)
    if unit == "m":
        return add_months(today, -count)
    return add_months(today, -12 * count)


def _current_instant(now: datetime | None) -> tuple[datetime, object]:
    if now is None:
        tz = report_timezone()
        return datetime.now(tz), tz
    return now, now.tzinfo


def _relative_label(count: int, unit: str) -> str:
    singular, plural_noun = _UNIT_LABELS[unit]
    if count == 1:
        return singular
    return f"Last {count} {plural_noun}"


def parse_period(token: str | None, *, now: datetime | None = None) -> DateRange | None:
    """Parse a period token into a DateRange, or None when it is not a period."""
    if not token:
        return None

    current, tz = _current_instant(now)
    today = current.date()
    end = end_of_day(today, tz)

    if token == "ytd":
        return DateRange(start_of_day(date(today.year, 1, 1), tz), end, "Year to Date")
    if token == "all":
        return DateRange(start_of_day(EPOCH_FLOOR, tz), end, "All Time")

    match = PERIOD_PATTERN.fullmatch(token)
    if not match:
        return None

    count = int(match.group(1))
    unit = match.group(2)
    try:
        first_day = _shift_back(today, count, unit)
    except (OverflowError, ValueError):
        # N so large the calendar underflows year 1
        return None

    return DateRange(start_of_day(first_day, tz), end, _relative_label(count, unit))


def _parse_explicit_date(raw: str | None, tz=None) -> date | None:
    value = (raw or "").strip()
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        # offset-carrying bounds land on the business-zone calendar day
        try:
            parsed = parsed.astimezone(tz or report_timezone())
        except OverflowError:
            return None
    return parsed.date()


def resolve_date_range(
    period: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    default_period: str | None = None,
    *,
    now: datetime | None = None,
) -> DateRange:
    current, tz = _current_instant(now)

    parsed = parse_period(period, now=current)
    if parsed:
        return parsed

    first_day = _parse_explicit_date(date_from, tz)
    last_day = _parse_explicit_date(date_to, tz)
    if first_day and last_day:
        if first_day > last_day:
            first_day, last_day = last_day, first_day
        return DateRange(start_of_day(first_day, tz), end_of_day(last_day, tz), "Custom Range")

    fallback = parse_period(default_period or settings.DEFAULT_PERIOD, now=current)
    if fallback:
        return fallback

    today = current.date()
    return DateRange(
        start_of_day(add_months(today, -1), tz),
        end_of_day(today, tz),
        FALLBACK_LABEL,
    )


def resolve_date_range_from_params(
    params: Mapping[str, str | None],
    default_period: str | None = None,
    *,
    now: datetime | None = None,
) -> DateRange:
    return resolve_date_range(
        params.get("period"),
        params.get("from"),
        params.get("to"),
        default_period,
        now=now,
    )
