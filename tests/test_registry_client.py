import unittest
from datetime import date
from unittest.mock import MagicMock, patch

import requests

from stale_scanner.models import UNAVAILABLE
from stale_scanner.registry_client import NpmRegistryClient, RubyGemsClient, parse_timestamp

RUBYGEMS_PAYLOAD = [
    {"number": "8.1.0", "created_at": "2024-11-11T10:00:00.000Z"},
    {"number": "8.0.0", "created_at": "2024-09-01T10:00:00.000Z"},
    {"number": "7.3.0", "created_at": "2024-03-05T10:00:00.000Z"},
    {"number": "7.3.0", "platform": "java", "created_at": "2024-03-06T10:00:00.000Z"},
    {"number": "7.2.0", "created_at": "2023-12-01T10:00:00.000Z"},
]

NPM_PAYLOAD = {
    "name": "@babel/core",
    "versions": {"7.15.0": {}, "7.16.0": {}, "7.23.6": {}},
    "time": {
        "created": "2014-01-01T00:00:00.000Z",
        "modified": "2024-12-01T00:00:00.000Z",
        "7.23.6": "2023-12-11T00:00:00.000Z",
        "7.15.0": "2021-08-04T00:00:00.000Z",
        "7.16.0": "2021-10-29T00:00:00.000Z",
    },
}


def fake_response(payload=None, status=200, json_error=None):
    response = MagicMock()
    response.status_code = status
    if status >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status} Error")
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestRubyGemsClient(unittest.TestCase):
    @patch("stale_scanner.registry_client.requests.get")
    def test_catalog_is_ordered_oldest_first(self, mock_get):
        mock_get.return_value = fake_response(RUBYGEMS_PAYLOAD)
        catalog = RubyGemsClient(connect_timeout=1.5, read_timeout=2.5).fetch_catalog("sidekiq")

        self.assertEqual(catalog.versions, ["7.2.0", "7.3.0", "8.0.0", "8.1.0"])
        self.assertEqual(catalog.release_date("7.3.0"), "3/5/2024")
        self.assertEqual(catalog.release_date("8.1.0"), "11/11/2024")
        self.assertEqual(catalog.release_date("9.9.9"), UNAVAILABLE)
        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], "https://rubygems.org/api/v1/versions/sidekiq.json")
        self.assertEqual(kwargs["timeout"], (1.5, 2.5))

    @patch("stale_scanner.registry_client.requests.get")
    def test_timeout_returns_empty_catalog(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectTimeout("timed out")
        catalog = RubyGemsClient().fetch_catalog("sidekiq")
        self.assertFalse(catalog)
        self.assertEqual(catalog.versions, [])

    @patch("stale_scanner.registry_client.requests.get")
    def test_not_found_returns_empty_catalog(self, mock_get):
        mock_get.return_value = fake_response(status=404)
        self.assertFalse(RubyGemsClient().fetch_catalog("no-such-gem"))

    @patch("stale_scanner.registry_client.requests.get")
    def test_malformed_json_returns_empty_catalog(self, mock_get):
        mock_get.return_value = fake_response(json_error=ValueError("Expecting value"))
        self.assertFalse(RubyGemsClient().fetch_catalog("sidekiq"))

    @patch("stale_scanner.registry_client.requests.get")
    def test_unexpected_shape_returns_empty_catalog(self, mock_get):
        mock_get.return_value = fake_response({"error": "This rubygem could not be found."})
        self.assertFalse(RubyGemsClient().fetch_catalog("sidekiq"))


class TestNpmRegistryClient(unittest.TestCase):
    @patch("stale_scanner.registry_client.requests.get")
    def test_scoped_name_is_encoded(self, mock_get):
        mock_get.return_value = fake_response(NPM_PAYLOAD)
        catalog = NpmRegistryClient().fetch_catalog("@babel/core")

        self.assertEqual(mock_get.call_args[0][0], "https://registry.npmjs.org/@babel%2Fcore")
        self.assertEqual(catalog.versions, ["7.15.0", "7.16.0", "7.23.6"])
        self.assertNotIn("created", catalog.release_dates)
        self.assertNotIn("modified", catalog.release_dates)
        self.assertEqual(catalog.release_date("7.23.6"), "12/11/2023")

    @patch("stale_scanner.registry_client.requests.get")
    def test_custom_base_url(self, mock_get):
        mock_get.return_value = fake_response(NPM_PAYLOAD)
        NpmRegistryClient("https://npm.example.org/").fetch_catalog("vue")
        self.assertEqual(mock_get.call_args[0][0], "https://npm.example.org/vue")

    @patch("stale_scanner.registry_client.requests.get")
    def test_missing_time_map(self, mock_get):
        mock_get.return_value = fake_response({"name": "vue", "versions": {}})
        self.assertFalse(NpmRegistryClient().fetch_catalog("vue"))

    @patch("stale_scanner.registry_client.requests.get")
    def test_read_timeout_returns_empty_catalog(self, mock_get):
        mock_get.side_effect = requests.exceptions.ReadTimeout("read timed out")
        self.assertFalse(NpmRegistryClient().fetch_catalog("vue"))


class TestParseTimestamp(unittest.TestCase):
    def test_values(self):
        self.assertEqual(parse_timestamp("2024-03-05T14:22:11.123Z"), date(2024, 3, 5))
        self.assertIsNone(parse_timestamp("yesterday"))
        self.assertIsNone(parse_timestamp(None))


if __name__ == "__main__":
    unittest.main()
