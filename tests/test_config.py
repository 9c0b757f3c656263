"""
test_config.py — Environment Settings Loader
==============================================
"""

from __future__ import annotations

import os
import unittest
from unittest import mock

from armystats.config import Settings, load_settings


class TestLoadSettings(unittest.TestCase):

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_defaults_without_key(self):
        settings = load_settings()
        self.assertEqual(settings.lastfm_api_key, "")
        self.assertEqual(settings.lastfm_base_url, "https://ws.audioscrobbler.com/2.0/")
        self.assertEqual(settings.rate_limit_capacity, 5)
        self.assertEqual(settings.rate_limit_per_second, 5.0)
        self.assertEqual(settings.sample_interval, 4)

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_require_api_key(self):
        with self.assertRaises(EnvironmentError):
            load_settings(require_api_key=True)

    @mock.patch.dict(os.environ, {
        "LASTFM_API_KEY": "abc",
        "LASTFM_TIMEOUT": "7.5",
        "LASTFM_RETRIES": "0",
        "TIMELINE_SAMPLE_INTERVAL": "2",
        "TIMELINE_DEADLINE": "0",
    }, clear=True)
    def test_overrides(self):
        settings = load_settings(require_api_key=True)
        self.assertEqual(settings.lastfm_api_key, "abc")
        self.assertEqual(settings.request_timeout, 7.5)
        self.assertEqual(settings.request_retries, 0)
        self.assertEqual(settings.sample_interval, 2)
        self.assertEqual(settings.timeline_deadline, 0.0)

    @mock.patch.dict(os.environ, {"LASTFM_RETRIES": "lots"}, clear=True)
    def test_bad_number_names_variable(self):
        with self.assertRaises(ValueError) as ctx:
            load_settings()
        self.assertIn("LASTFM_RETRIES", str(ctx.exception))

    def test_settings_are_frozen(self):
        with self.assertRaises(Exception):
            Settings().lastfm_api_key = "x"  # type: ignore[misc]


if __name__ == "__main__":
    unittest.main()
