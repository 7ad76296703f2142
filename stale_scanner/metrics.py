# stale_scanner/metrics.py
"""How far behind a dependency is: elapsed time and number of releases."""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence, Union

from .models import UNAVAILABLE

DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365


def parse_short_date(value) -> Optional[date]:
    """Reads month/day/year dates as produced by models.format_date."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or value == UNAVAILABLE:
        return None
    try:
        return datetime.strptime(value.strip(), "%m/%d/%Y").date()
    except ValueError:
        return None


def _round_half_up(value: float, places: int = 0) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def _plural(count, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def time_difference(current_date, latest_date) -> str:
    """
    "<n> days" under a month, "<n> months" under a year, then years with
    one decimal place when it is not a whole number.
    """
    start = parse_short_date(current_date)
    end = parse_short_date(latest_date)
    if start is None or end is None:
        return UNAVAILABLE
    days = abs((end - start).days)
    if days < DAYS_PER_MONTH:
        return _plural(days, "day")
    if days < DAYS_PER_YEAR:
        return _plural(int(_round_half_up(days / DAYS_PER_MONTH)), "month")
    years = _round_half_up(days / DAYS_PER_YEAR, 1)
    if years == years.to_integral_value():
        return _plural(int(years), "year")
    return f"{years} years"


def version_count(versions: Optional[Sequence[str]], current: Optional[str], latest: Optional[str]) -> Union[int, str]:
    """Number of releases between `current` and `latest` in a release-ordered list."""
    if not versions or not current or not latest or "unknown" in (current, latest):
        return UNAVAILABLE
    if current == latest:
        return 0
    try:
        return abs(versions.index(latest) - versions.index(current))
    except ValueError:
        return UNAVAILABLE
