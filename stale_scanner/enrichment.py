# stale_scanner/enrichment.py
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

from .manifest import ManifestClassifier
from .metrics import time_difference, version_count
from .models import UNAVAILABLE, OutdatedEntry, VersionCatalog, VersionRecord
from .registry_client import RegistryClient

logger = logging.getLogger(__name__)

# Upper bound on concurrent requests against a public registry
MAX_WORKERS = 10

ProgressCallback = Callable[[int, int], None]


def degraded_record(entry: OutdatedEntry, direct: bool = False) -> VersionRecord:
    return VersionRecord(
        name=entry.name,
        current=entry.current,
        current_date=UNAVAILABLE,
        latest=entry.latest,
        latest_date=UNAVAILABLE,
        time_diff=UNAVAILABLE,
        version_count=UNAVAILABLE,
        direct=direct,
    )


class EnrichmentPool:
    """
    Turns outdated (name, current, latest) entries into VersionRecords.

    Registry lookups run on a fixed number of threads. Each worker writes into
    its own slot of a list sized up front, so the output order always matches
    the input order whatever order the lookups finish in. A failed lookup only
    degrades that record's dates and metrics to UNAVAILABLE.
    """

    def __init__(
        self,
        client: RegistryClient,
        classifier: ManifestClassifier,
        max_workers: int = MAX_WORKERS,
        progress: Optional[ProgressCallback] = None,
    ):
        self.client = client
        self.classifier = classifier
        self.max_workers = max(1, min(max_workers, MAX_WORKERS))
        self.progress = progress
        self._lock = threading.Lock()
        self._completed = 0

    def enrich(self, entries: Sequence[OutdatedEntry]) -> list[VersionRecord]:
        total = len(entries)
        if total == 0:
            return []
        self._completed = 0
        # Read the manifest once, before any worker needs it
        self.classifier.names
        results: list[Optional[VersionRecord]] = [None] * total

        def work(index: int, entry: OutdatedEntry) -> None:
            results[index] = self._enrich_one(entry)
            self._report_progress(total)

        with ThreadPoolExecutor(max_workers=min(self.max_workers, total)) as executor:
            futures = [executor.submit(work, index, entry) for index, entry in enumerate(entries)]
            for future in futures:
                future.result()
        return [record if record is not None else degraded_record(entries[i]) for i, record in enumerate(results)]

    def _enrich_one(self, entry: OutdatedEntry) -> VersionRecord:
        direct = self.classifier.is_direct(entry.name)
        try:
            catalog = self.client.fetch_catalog(entry.name)
            return build_record(entry, catalog, direct)
        except Exception as e:
            logger.warning(f"Could not enrich '{entry.name}': {e}")
            return degraded_record(entry, direct)

    def _report_progress(self, total: int) -> None:
        with self._lock:
            self._completed += 1
            completed = self._completed
            if self.progress:
                self.progress(completed, total)


def build_record(entry: OutdatedEntry, catalog: VersionCatalog, direct: bool) -> VersionRecord:
    current_date = catalog.release_date(entry.current)
    latest_date = catalog.release_date(entry.latest)
    return VersionRecord(
        name=entry.name,
        current=entry.current,
        current_date=current_date,
        latest=entry.latest,
        latest_date=latest_date,
        time_diff=time_difference(current_date, latest_date),
        version_count=version_count(catalog.versions, entry.current, entry.latest),
        direct=direct,
    )
