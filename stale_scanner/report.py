# stale_scanner/report.py
import json
from typing import Sequence

import click

from .models import UNAVAILABLE, ScanResult, VersionRecord, VulnerabilityRecord

SEVERITY_ICONS = {"critical": "🔴", "high": "🟠", "medium": "🟡", "low": "🟢"}
TITLE_WIDTH = 50


def truncate(text: str, length: int = TITLE_WIDTH) -> str:
    if len(text) <= length:
        return text
    return f"{text[:length - 3]}..."


def severity_label(record: VulnerabilityRecord) -> str:
    label = (record.severity or "unknown").capitalize()
    icon = SEVERITY_ICONS.get(record.severity_bucket)
    return f"{icon} {label}" if icon else label


def format_table(headings: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    widths = [len(h) for h in headings]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(click.unstyle(cell)))

    def render(cells):
        return "  ".join(cell + " " * (widths[i] - len(click.unstyle(cell))) for i, cell in enumerate(cells)).rstrip()

    lines = [render(headings), "  ".join("-" * w for w in widths)]
    lines.extend(render(row) for row in rows)
    return "\n".join(lines)


def vulnerability_table(records: Sequence[VulnerabilityRecord]) -> str:
    rows = [[severity_label(r), r.name, r.version, truncate(r.title)] for r in records]
    return format_table(["Level", "Name", "Version", "Vulnerability"], rows)


def version_table(records: Sequence[VersionRecord]) -> str:
    rows = [
        [
            click.style(r.name, bold=True) if r.direct else r.name,
            r.current,
            r.current_date or UNAVAILABLE,
            r.latest,
            r.latest_date or UNAVAILABLE,
            r.time_diff or UNAVAILABLE,
            str(r.version_count),
        ]
        for r in records
    ]
    return format_table(["Name", "Current", "Date", "Latest", "Date", "Behind By", "Versions"], rows)


def print_section(title: str, table: str, empty_message: str, has_rows: bool) -> None:
    click.echo(f"{title}:\n")
    click.echo(table if has_rows else f"  ✅ {empty_message}")
    click.echo("")


def print_text_report(result: ScanResult, gem_versions: Sequence[VersionRecord], package_versions: Sequence[VersionRecord], gems: bool = True, packages: bool = True) -> None:
    """Version sequences are passed in already sorted/filtered."""
    if gems:
        print_section("Gem Vulnerabilities", vulnerability_table(result.gem_vulnerabilities), "No vulnerabilities found!", bool(result.gem_vulnerabilities))
        print_section("Gem Versions", version_table(gem_versions), "All gems are up to date!", bool(gem_versions))
    if packages:
        print_section("Package Vulnerabilities", vulnerability_table(result.package_vulnerabilities), "No vulnerabilities found!", bool(result.package_vulnerabilities))
        print_section("Package Versions", version_table(package_versions), "All packages are up to date!", bool(package_versions))
    for issue in result.skipped:
        click.secho(f"ℹ️  {issue.message}", fg="yellow", err=True)
        if issue.details:
            click.echo(f"   {issue.details}", err=True)
    for issue in result.failures:
        click.secho(f"Error: {issue.message}", fg="red", err=True)
        if issue.details:
            click.echo(issue.details, err=True)


def print_json_report(result: ScanResult, gem_versions: Sequence[VersionRecord], package_versions: Sequence[VersionRecord]) -> None:
    output_data = result.to_dict()
    output_data["gemVersions"] = [r.to_dict() for r in gem_versions]
    output_data["packageVersions"] = [r.to_dict() for r in package_versions]
    click.echo(json.dumps(output_data, indent=2))
