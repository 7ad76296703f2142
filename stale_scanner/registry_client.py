# stale_scanner/registry_client.py
import logging
from datetime import date, datetime
from typing import Optional
from urllib.parse import quote

import requests

from .models import VersionCatalog

logger = logging.getLogger(__name__)

RUBYGEMS_VERSIONS_URL = "https://rubygems.org/api/v1/versions"
NPM_REGISTRY_URL = "https://registry.npmjs.org"
CONNECT_TIMEOUT = 2.0
READ_TIMEOUT = 3.0

# Entries in the npm "time" map that are not versions
NPM_TIME_METADATA_KEYS = ("created", "modified")


def parse_timestamp(value) -> Optional[date]:
    """Reads the date part of an ISO-8601 timestamp such as 2024-03-05T14:22:11.123Z."""
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def build_catalog(published: list[tuple[str, date]]) -> VersionCatalog:
    """Orders (version, release date) pairs oldest first; ties keep their given order."""
    ordered = sorted(published, key=lambda item: item[1])
    return VersionCatalog(
        release_dates={version: released for version, released in ordered},
        versions=[version for version, _ in ordered],
    )


class RegistryClient:
    """
    Fetches the release history of one dependency per call.
    Any failure (timeout, HTTP error, bad payload) yields an empty catalog.
    """
    ecosystem = "generic"

    def __init__(self, base_url: str, connect_timeout: float = CONNECT_TIMEOUT, read_timeout: float = READ_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    def catalog_url(self, name: str) -> str:
        raise NotImplementedError

    def parse_payload(self, name: str, payload) -> list[tuple[str, date]]:
        raise NotImplementedError

    def fetch_catalog(self, name: str) -> VersionCatalog:
        url = self.catalog_url(name)
        try:
            response = requests.get(url, timeout=(self.connect_timeout, self.read_timeout), headers={"Accept": "application/json"})
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            logger.debug(f"Registry lookup failed for {self.ecosystem} '{name}': {e}")
            return VersionCatalog()
        except ValueError as e:
            # json.JSONDecodeError (and requests' own JSONDecodeError) subclass ValueError
            logger.debug(f"Registry returned malformed JSON for {self.ecosystem} '{name}': {e}")
            return VersionCatalog()
        try:
            published = self.parse_payload(name, payload)
        except (AttributeError, KeyError, TypeError) as e:
            logger.debug(f"Unexpected registry payload for {self.ecosystem} '{name}': {e}")
            return VersionCatalog()
        if not published:
            logger.debug(f"No release dates found for {self.ecosystem} '{name}'")
        return build_catalog(published)


class RubyGemsClient(RegistryClient):
    ecosystem = "rubygems"

    def __init__(self, base_url: str = RUBYGEMS_VERSIONS_URL, **kwargs):
        super().__init__(base_url, **kwargs)

    def catalog_url(self, name: str) -> str:
        return f"{self.base_url}/{quote(name, safe='')}.json"

    def parse_payload(self, name: str, payload) -> list[tuple[str, date]]:
        earliest: dict[str, date] = {}
        if not isinstance(payload, list):
            return []
        # The API lists newest first; reverse so same-day releases stay in release order
        for entry in reversed(payload):
            if not isinstance(entry, dict):
                continue
            number = entry.get("number")
            released = parse_timestamp(entry.get("created_at"))
            if not number or not released:
                continue
            # Platform builds (e.g. nokogiri x86_64-linux) share a number; keep the earliest
            if number not in earliest or released < earliest[number]:
                earliest[number] = released
        return list(earliest.items())


class NpmRegistryClient(RegistryClient):
    ecosystem = "npm"

    def __init__(self, base_url: str = NPM_REGISTRY_URL, **kwargs):
        super().__init__(base_url, **kwargs)

    def catalog_url(self, name: str) -> str:
        # @scope/name -> @scope%2Fname
        return f"{self.base_url}/{quote(name, safe='@')}"

    def parse_payload(self, name: str, payload) -> list[tuple[str, date]]:
        published = []
        if not isinstance(payload, dict):
            return published
        times = payload.get("time")
        if not isinstance(times, dict):
            return published
        for version, timestamp in times.items():
            if version in NPM_TIME_METADATA_KEYS:
                continue
            released = parse_timestamp(timestamp)
            if released:
                published.append((version, released))
        return published
