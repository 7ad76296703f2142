# stale_scanner/sorting.py
import re
from typing import Callable, Iterable

import click

from .models import UNAVAILABLE, VersionRecord

LEADING_DIGITS_PATTERN = re.compile(r'^(\d+)(.*)$')
TIME_DIFF_PATTERN = re.compile(r'^([\d.]+)\s+(day|month|year)s?$')

MISSING_VALUES = (UNAVAILABLE, "unknown", "", None)
LOWEST_VERSION = (-1, -1, -1, "")
DAYS_PER_UNIT = {"day": 1, "month": 30, "year": 365}

SORT_NAME = "name"
SORT_CURRENT = "current"
SORT_DATE = "date"
SORT_LATEST = "latest"
SORT_TIME_BEHIND = "time-behind"
SORT_VERSIONS_BEHIND = "version-count-behind"

# Column titles as shown in the report map onto the same keys
SORT_ALIASES = {
    "behind by(time)": SORT_TIME_BEHIND,
    "behind by (time)": SORT_TIME_BEHIND,
    "time": SORT_TIME_BEHIND,
    "behind by(versions)": SORT_VERSIONS_BEHIND,
    "behind by (versions)": SORT_VERSIONS_BEHIND,
    "versions": SORT_VERSIONS_BEHIND,
    "current date": SORT_DATE,
}


def version_key(version) -> tuple:
    """1.10.2.rc1 -> (1, 10, 2, 'rc1'); missing versions sort lowest."""
    if version in MISSING_VALUES:
        return LOWEST_VERSION
    parts = str(version).split(".")
    numbers = []
    remainder = []
    for part in parts[:3]:
        match = LEADING_DIGITS_PATTERN.match(part)
        if match:
            numbers.append(int(match.group(1)))
            if match.group(2):
                remainder.append(match.group(2))
        else:
            numbers.append(0)
            remainder.append(part)
    while len(numbers) < 3:
        numbers.append(0)
    remainder.extend(parts[3:])
    return (numbers[0], numbers[1], numbers[2], ".".join(remainder))


def date_key(value) -> tuple:
    """month/day/year -> (year, month, day)."""
    if value in MISSING_VALUES:
        return (0, 0, 0)
    try:
        month, day, year = (int(part) for part in str(value).split("/"))
    except ValueError:
        return (0, 0, 0)
    return (year, month, day)


def time_behind_days(value) -> float:
    match = TIME_DIFF_PATTERN.match(str(value or "").strip())
    if not match:
        return 0
    return float(match.group(1)) * DAYS_PER_UNIT[match.group(2)]


def versions_behind(value) -> int:
    return value if isinstance(value, int) else 0


SORT_KEYS: dict[str, Callable[[VersionRecord], object]] = {
    SORT_NAME: lambda record: click.unstyle(record.name or "").lower(),
    SORT_CURRENT: lambda record: version_key(record.current),
    SORT_DATE: lambda record: date_key(record.current_date),
    SORT_LATEST: lambda record: version_key(record.latest),
    SORT_TIME_BEHIND: lambda record: time_behind_days(record.time_diff),
    SORT_VERSIONS_BEHIND: lambda record: versions_behind(record.version_count),
}


def normalize_sort_key(sort_by) -> str:
    """Accepts a key or a column title; anything unrecognized sorts by name."""
    key = str(sort_by or "").strip().lower()
    key = SORT_ALIASES.get(key, key)
    return key if key in SORT_KEYS else SORT_NAME


def sort_records(records: Iterable[VersionRecord], sort_by=SORT_TIME_BEHIND, descending: bool = True, direct_only: bool = False) -> list[VersionRecord]:
    selected = [record for record in records if record.direct] if direct_only else list(records)
    ordered = sorted(selected, key=SORT_KEYS[normalize_sort_key(sort_by)])
    if descending:
        ordered.reverse()
    return ordered
