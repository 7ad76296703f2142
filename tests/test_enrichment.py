import random
import threading
import time
import unittest
from datetime import date
from unittest.mock import patch

import requests

from stale_scanner.enrichment import MAX_WORKERS, EnrichmentPool
from stale_scanner.manifest import ManifestClassifier
from stale_scanner.models import UNAVAILABLE, OutdatedEntry, VersionCatalog
from stale_scanner.registry_client import RubyGemsClient, build_catalog


class StaticClassifier(ManifestClassifier):
    def __init__(self, names=()):
        super().__init__()
        self._declared = set(names)

    def _load(self):
        return self._declared


class SlowClient:
    """Returns a fixed catalog after a random delay and tracks concurrency."""

    def __init__(self, catalog: VersionCatalog, max_delay: float = 0.02):
        self.catalog = catalog
        self.max_delay = max_delay
        self.calls = []
        self.in_flight = 0
        self.peak = 0
        self._lock = threading.Lock()

    def fetch_catalog(self, name):
        with self._lock:
            self.calls.append(name)
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        time.sleep(random.uniform(0, self.max_delay))
        with self._lock:
            self.in_flight -= 1
        return self.catalog


SIDEKIQ_CATALOG = build_catalog([
    ("7.3.0", date(2024, 3, 5)),
    ("7.3.1", date(2024, 5, 1)),
    ("8.0.0", date(2024, 9, 1)),
    ("8.1.0", date(2024, 11, 11)),
])


class TestEnrichmentPool(unittest.TestCase):
    def test_output_order_matches_input_order(self):
        for count in (0, 1, 7, 35):
            entries = [OutdatedEntry(f"gem-{i}", "7.3.0", "8.1.0") for i in range(count)]
            client = SlowClient(SIDEKIQ_CATALOG)
            records = EnrichmentPool(client, StaticClassifier()).enrich(entries)
            self.assertEqual([r.name for r in records], [e.name for e in entries])

    def test_concurrency_is_bounded(self):
        entries = [OutdatedEntry(f"pkg-{i}", "7.3.0", "8.1.0") for i in range(40)]
        client = SlowClient(SIDEKIQ_CATALOG, max_delay=0.05)
        EnrichmentPool(client, StaticClassifier()).enrich(entries)
        self.assertLessEqual(client.peak, MAX_WORKERS)
        self.assertEqual(len(client.calls), 40)

    def test_worker_count_cannot_exceed_ceiling(self):
        entries = [OutdatedEntry(f"pkg-{i}", "7.3.0", "8.1.0") for i in range(40)]
        client = SlowClient(SIDEKIQ_CATALOG, max_delay=0.05)
        pool = EnrichmentPool(client, StaticClassifier(), max_workers=40)
        self.assertEqual(pool.max_workers, MAX_WORKERS)
        pool.enrich(entries)
        self.assertLessEqual(client.peak, MAX_WORKERS)

    def test_duplicate_names_are_fetched_separately(self):
        entries = [OutdatedEntry("rack", "2.0.0", "3.0.0"), OutdatedEntry("rack", "2.0.0", "3.0.0")]
        client = SlowClient(VersionCatalog())
        EnrichmentPool(client, StaticClassifier()).enrich(entries)
        self.assertEqual(client.calls, ["rack", "rack"])

    def test_metrics_and_direct_flag(self):
        entries = [OutdatedEntry("sidekiq", "7.3.0", "8.1.0"), OutdatedEntry("connection_pool", "7.3.0", "8.0.0")]
        records = EnrichmentPool(SlowClient(SIDEKIQ_CATALOG), StaticClassifier(["sidekiq"])).enrich(entries)

        sidekiq = records[0]
        self.assertEqual(sidekiq.current_date, "3/5/2024")
        self.assertEqual(sidekiq.latest_date, "11/11/2024")
        self.assertEqual(sidekiq.time_diff, "8 months")
        self.assertEqual(sidekiq.version_count, 3)
        self.assertTrue(sidekiq.direct)
        self.assertFalse(records[1].direct)
        self.assertEqual(records[1].version_count, 2)

    def test_progress_is_reported(self):
        seen = []
        entries = [OutdatedEntry(f"gem-{i}", "7.3.0", "8.1.0") for i in range(12)]
        pool = EnrichmentPool(SlowClient(SIDEKIQ_CATALOG), StaticClassifier(), progress=lambda done, total: seen.append((done, total)))
        pool.enrich(entries)
        self.assertEqual(seen, [(i, 12) for i in range(1, 13)])

    @patch("stale_scanner.registry_client.requests.get")
    def test_registry_timeout_degrades_record(self, mock_get):
        mock_get.side_effect = requests.exceptions.ReadTimeout("read timed out")
        entries = [OutdatedEntry("sidekiq", "7.3.0", "8.1.0"), OutdatedEntry("puma", "4.3.8", "6.4.0")]
        records = EnrichmentPool(RubyGemsClient(), StaticClassifier(["puma"])).enrich(entries)

        self.assertEqual([r.name for r in records], ["sidekiq", "puma"])
        for record in records:
            self.assertEqual(record.current_date, UNAVAILABLE)
            self.assertEqual(record.latest_date, UNAVAILABLE)
            self.assertEqual(record.time_diff, UNAVAILABLE)
            self.assertEqual(record.version_count, UNAVAILABLE)
        self.assertEqual((records[0].current, records[0].latest), ("7.3.0", "8.1.0"))
        self.assertTrue(records[1].direct)

    def test_unexpected_worker_error_does_not_abort_pool(self):
        class BrokenClient:
            def fetch_catalog(self, name):
                if name == "bad":
                    raise RuntimeError("boom")
                return SIDEKIQ_CATALOG

        entries = [OutdatedEntry("good", "7.3.0", "8.1.0"), OutdatedEntry("bad", "1.0", "2.0")]
        records = EnrichmentPool(BrokenClient(), StaticClassifier()).enrich(entries)
        self.assertEqual(records[0].time_diff, "8 months")
        self.assertEqual(records[1].time_diff, UNAVAILABLE)
        self.assertEqual(records[1].current, "1.0")


if __name__ == "__main__":
    unittest.main()
