# stale_scanner/parser.py
import re
import json
import logging
from typing import Optional, Sequence

from .errors import OutputMalformed
from .models import OutdatedEntry, VulnerabilityRecord

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Vulnerability detected"
UNKNOWN = "unknown"

# bundle-audit prints one "Key: value" line per field, blocks separated by blank lines
AUDIT_FIELD_PATTERN = re.compile(r'^(Name|Version|CVE|GHSA|Advisory|Criticality|Title):\s*(.*)$')
# name (newest 8.1.0, installed 7.3.0, requested ~> 7.0)
BUNDLE_OUTDATED_PATTERN = re.compile(r'^\s*(?:\*\s+)?(\S+)\s+\(newest\s+(.+?),\s+installed\s+(.+?)(?:,|\))')
# Status chatter yarn mixes into its table output
YARN_NOISE_PATTERN = re.compile(r'^(info|warning|error|success)\s|Done in [\d.]+m?s')


def _block_to_record(block: dict) -> Optional[VulnerabilityRecord]:
    if not block.get("Name") or not block.get("Version"):
        return None
    advisory = block.get("CVE") or block.get("Advisory") or block.get("GHSA")
    return VulnerabilityRecord(
        name=block["Name"],
        version=block["Version"],
        severity=block.get("Criticality") or UNKNOWN,
        title=block.get("Title") or advisory or DEFAULT_TITLE,
        advisory=advisory,
    )


def parse_bundle_audit(output: str) -> list[VulnerabilityRecord]:
    """
    Parses `bundle-audit check` text output.
    A record is emitted at each Title: line; an unterminated block is flushed
    when the next Name: line or the end of output is reached.
    """
    records = []
    block: dict = {}
    for line in output.splitlines():
        match = AUDIT_FIELD_PATTERN.match(line.strip())
        if not match:
            continue
        key, value = match.group(1), match.group(2).strip()
        if key == "Name":
            pending = _block_to_record(block)
            if pending:
                records.append(pending)
            block = {"Name": value}
            continue
        if not block:
            continue
        block[key] = value
        if key == "Title":
            record = _block_to_record(block)
            if record:
                records.append(record)
            else:
                logger.debug(f"Dropping incomplete audit block: {block}")
            block = {}
    pending = _block_to_record(block)
    if pending:
        records.append(pending)
    elif block:
        logger.debug(f"Dropping incomplete audit block: {block}")
    logger.info(f"Parsed {len(records)} gem vulnerabilities from bundle-audit output.")
    return records


def parse_bundle_outdated(output: str) -> list[OutdatedEntry]:
    """Parses `bundle outdated --parseable`; headers and blank lines are ignored."""
    entries = []
    for line in output.splitlines():
        match = BUNDLE_OUTDATED_PATTERN.match(line)
        if match:
            entries.append(OutdatedEntry(name=match.group(1).strip(), current=match.group(3).strip(), latest=match.group(2).strip()))
    logger.info(f"Parsed {len(entries)} outdated gems.")
    return entries


def _load_json(output: str, command: list[str]):
    try:
        return json.loads(output)
    except json.JSONDecodeError as e:
        raise OutputMalformed(command, output, str(e)) from e


def _via_details(via) -> tuple[str, Optional[str]]:
    if isinstance(via, str):
        return via, None
    if isinstance(via, list) and via and isinstance(via[0], dict):
        first = via[0]
        return first.get("title") or DEFAULT_TITLE, first.get("url") or (str(first["source"]) if first.get("source") else None)
    return DEFAULT_TITLE, None


def parse_npm_audit(output: str, command: Sequence[str] = ("npm", "audit", "--json")) -> list[VulnerabilityRecord]:
    """Parses `npm audit --json` (the report format with a top-level "vulnerabilities" map)."""
    data = _load_json(output, list(command))
    records = []
    vulnerabilities = data.get("vulnerabilities") if isinstance(data, dict) else None
    if not isinstance(vulnerabilities, dict):
        return records
    for name, info in vulnerabilities.items():
        if not isinstance(info, dict):
            continue
        title, advisory = _via_details(info.get("via"))
        records.append(VulnerabilityRecord(
            name=name,
            version=info.get("range") or info.get("version") or UNKNOWN,
            severity=info.get("severity") or UNKNOWN,
            title=title,
            advisory=advisory,
        ))
    logger.info(f"Parsed {len(records)} package vulnerabilities from npm audit output.")
    return records


def parse_yarn_audit(output: str) -> list[VulnerabilityRecord]:
    """Parses `yarn audit --json`, which prints one JSON document per line."""
    records = []
    seen = set()
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Ignoring non-JSON yarn audit line: {line[:80]}")
            continue
        if not isinstance(event, dict) or event.get("type") != "auditAdvisory":
            continue
        advisory = (event.get("data") or {}).get("advisory") or {}
        name = advisory.get("module_name")
        if not name:
            continue
        findings = advisory.get("findings") or []
        version = next((f.get("version") for f in findings if isinstance(f, dict) and f.get("version")), UNKNOWN)
        cves = advisory.get("cves") or []
        advisory_id = cves[0] if cves else (str(advisory["id"]) if advisory.get("id") is not None else None)
        key = (name, version, advisory_id)
        if key in seen:
            continue
        seen.add(key)
        records.append(VulnerabilityRecord(
            name=name,
            version=version,
            severity=advisory.get("severity") or UNKNOWN,
            title=advisory.get("title") or DEFAULT_TITLE,
            advisory=advisory_id,
        ))
    logger.info(f"Parsed {len(records)} package vulnerabilities from yarn audit output.")
    return records


def parse_npm_outdated(output: str, command: Sequence[str] = ("npm", "outdated", "--json")) -> list[OutdatedEntry]:
    """Parses `npm outdated --json`: {name: {"current": ..., "latest": ...}}."""
    if not output.strip():
        return []
    data = _load_json(output, list(command))
    if not isinstance(data, dict):
        raise OutputMalformed(list(command), output, "expected a JSON object")
    entries = []
    for name, info in data.items():
        # Workspaces report one entry per location
        if isinstance(info, list):
            info = next((item for item in info if isinstance(item, dict)), None)
        if not isinstance(info, dict):
            continue
        entries.append(OutdatedEntry(name=name, current=info.get("current") or UNKNOWN, latest=info.get("latest") or UNKNOWN))
    logger.info(f"Parsed {len(entries)} outdated packages from npm outdated output.")
    return entries


def parse_yarn_outdated(output: str) -> list[OutdatedEntry]:
    """
    Parses the columnar `yarn outdated` table:
    Package  Current  Wanted  Latest  Package Type  URL
    The latest version comes from the fourth column, not "Wanted".
    """
    lines = output.splitlines()
    start = 1
    for index, line in enumerate(lines):
        columns = line.split()
        if len(columns) >= 4 and columns[0] == "Package" and columns[1] == "Current":
            start = index + 1
            break
    entries = []
    for line in lines[start:]:
        if YARN_NOISE_PATTERN.search(line.strip()):
            continue
        columns = line.split()
        if len(columns) < 4:
            continue
        name, current, latest = columns[0], columns[1], columns[3]
        if current == latest:
            continue
        entries.append(OutdatedEntry(name=name, current=current, latest=latest))
    logger.info(f"Parsed {len(entries)} outdated packages from yarn outdated output.")
    return entries
