import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

import stalescan
from stale_scanner.models import ScanIssue, ScanResult, VersionRecord, VulnerabilityRecord


def version(name, time_diff, direct=False):
    return VersionRecord(name, "1.0.0", "1/1/2023", "2.0.0", "1/1/2024", time_diff, 3, direct)


def canned_result(failures=()):
    return ScanResult(
        gem_vulnerabilities=[VulnerabilityRecord("rails", "7.0.0", "critical", "ActiveRecord attack", "CVE-2024-1")],
        gem_versions=[version("sidekiq", "3 months", direct=True), version("rack", "2 years")],
        failures=list(failures),
    )


class FakeScanner:
    result = None
    calls = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs

    def scan(self, gems=True, packages=True):
        FakeScanner.calls.append((gems, packages))
        return FakeScanner.result


class TestCli(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self._tmp = tempfile.TemporaryDirectory()
        self.project = Path(self._tmp.name)
        FakeScanner.calls = []
        FakeScanner.result = canned_result()

    def tearDown(self):
        self._tmp.cleanup()

    def test_help(self):
        result = self.runner.invoke(stalescan.cli, ["scan", "--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("--gems-only", result.output)
        self.assertIn("--sort-by", result.output)

    def test_version(self):
        result = self.runner.invoke(stalescan.cli, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(stalescan.__version__, result.output)

    def test_empty_project(self):
        result = self.runner.invoke(stalescan.cli, ["scan", "--path", str(self.project)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("All gems are up to date!", result.output)
        self.assertIn("All packages are up to date!", result.output)

    def test_conflicting_scope_flags(self):
        result = self.runner.invoke(stalescan.cli, ["scan", "--path", str(self.project), "-g", "-p"])
        self.assertEqual(result.exit_code, 2)
        self.assertIn("mutually exclusive", result.output)

    @patch("stalescan.Scanner", FakeScanner)
    def test_json_report_sorted(self):
        result = self.runner.invoke(stalescan.cli, ["scan", "--path", str(self.project), "--format", "json", "--gems-only"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.output)
        self.assertEqual([r["name"] for r in data["gemVersions"]], ["rack", "sidekiq"])
        self.assertEqual(data["gemVulnerabilities"][0]["advisory"], "CVE-2024-1")
        self.assertEqual(data["failures"], [])
        self.assertEqual(FakeScanner.calls, [(True, False)])

    @patch("stalescan.Scanner", FakeScanner)
    def test_ascending_and_direct_only(self):
        result = self.runner.invoke(stalescan.cli, ["scan", "--path", str(self.project), "--format", "json", "-s", "name", "--asc"])
        self.assertEqual([r["name"] for r in json.loads(result.output)["gemVersions"]], ["rack", "sidekiq"])

        result = self.runner.invoke(stalescan.cli, ["scan", "--path", str(self.project), "--format", "json", "--direct-only"])
        self.assertEqual([r["name"] for r in json.loads(result.output)["gemVersions"]], ["sidekiq"])

    @patch("stalescan.Scanner", FakeScanner)
    def test_text_report_and_failure_exit(self):
        FakeScanner.result = canned_result([ScanIssue("packages", "versions", "'npm outdated --json' exited with status 2", "npm ERR! broken")])
        result = self.runner.invoke(stalescan.cli, ["scan", "--path", str(self.project)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Gem Vulnerabilities", result.output)
        self.assertIn("🔴 Critical", result.output)
        self.assertIn("npm ERR! broken", result.output)


if __name__ == "__main__":
    unittest.main()
