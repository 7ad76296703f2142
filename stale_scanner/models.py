# stale_scanner/models.py
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import NamedTuple, Optional, Union

# Placeholder for any metric or date that could not be determined
UNAVAILABLE = "N/A"

SEVERITY_BUCKETS = ("critical", "high", "medium", "low", "unknown")


class OutdatedEntry(NamedTuple):
    """One (name, current, latest) triple as reported by a package manager."""
    name: str
    current: str
    latest: str


@dataclass(frozen=True)
class VulnerabilityRecord:
    name: str
    version: str
    severity: str
    title: str
    advisory: Optional[str] = None

    @property
    def severity_bucket(self) -> str:
        value = (self.severity or "").strip().lower()
        if value == "moderate":
            return "medium"
        if value in SEVERITY_BUCKETS:
            return value
        return "unknown"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class VersionRecord:
    name: str
    current: str
    current_date: str
    latest: str
    latest_date: str
    time_diff: str
    # Number of releases between current and latest, or UNAVAILABLE
    version_count: Union[int, str]
    direct: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class VersionCatalog:
    """Release dates for every published version of one dependency."""
    release_dates: dict[str, date] = field(default_factory=dict)
    # Ordered by release date, oldest first
    versions: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.versions)

    def release_date(self, version: str) -> str:
        released = self.release_dates.get(version)
        if released is None:
            return UNAVAILABLE
        return format_date(released)


def format_date(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


@dataclass
class ScanIssue:
    """A sub-scan that was skipped or failed, kept for the report."""
    ecosystem: str
    check: str
    message: str
    details: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ScanResult:
    gem_vulnerabilities: list[VulnerabilityRecord] = field(default_factory=list)
    gem_versions: list[VersionRecord] = field(default_factory=list)
    package_vulnerabilities: list[VulnerabilityRecord] = field(default_factory=list)
    package_versions: list[VersionRecord] = field(default_factory=list)
    skipped: list[ScanIssue] = field(default_factory=list)
    failures: list[ScanIssue] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def to_dict(self) -> dict:
        return {
            "gemVulnerabilities": [r.to_dict() for r in self.gem_vulnerabilities],
            "gemVersions": [r.to_dict() for r in self.gem_versions],
            "packageVulnerabilities": [r.to_dict() for r in self.package_vulnerabilities],
            "packageVersions": [r.to_dict() for r in self.package_versions],
            "skipped": [i.to_dict() for i in self.skipped],
            "failures": [i.to_dict() for i in self.failures],
        }
