"""
test_cli.py — Command-Line Entry Point
========================================
The settings loader and client factory are patched; no network access.
"""

from __future__ import annotations

import io
import json
import pathlib
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest import mock

from armystats import cli
from armystats.config import Settings
from armystats.lastfm_client import LastFmAPIError, LastFmFetchError, TopItemsPage
from armystats.models import WeeklyChart, normalize_track
from armystats.timeline import build_bts_timeline


def _client() -> mock.Mock:
    client = mock.Mock()
    client.get_weekly_chart_list.return_value = [WeeklyChart(1_600_000_000, 1_600_604_800)]
    client.get_weekly_track_chart.return_value = [
        normalize_track({"name": "Dynamite", "artist": {"#text": "BTS"},
                         "album": {"#text": "BE"}, "playcount": "6"}),
    ]
    client.get_top_tracks.return_value = TopItemsPage(items=[
        normalize_track({"name": "Butter", "artist": {"name": "BTS"}, "playcount": "9"}),
    ], total=1)
    return client


SETTINGS = Settings(lastfm_api_key="test-key", timeline_deadline=120.0)


class TestCli(unittest.TestCase):

    def _run(self, argv, client):
        out = io.StringIO()
        with mock.patch("armystats.cli.load_settings", return_value=SETTINGS), \
                mock.patch("armystats.cli.create_lastfm_client", return_value=client), \
                redirect_stdout(out):
            code = cli.main(argv)
        return code, out.getvalue()

    def test_full_timeline_with_csv_and_log(self):
        with tempfile.TemporaryDirectory() as tmp:
            csv_path = pathlib.Path(tmp) / "evolution.csv"
            log_path = pathlib.Path(tmp) / "runs" / "log.jsonl"
            code, output = self._run(
                ["ana", "--csv", str(csv_path), "--log", str(log_path)], _client(),
            )

            self.assertEqual(code, 0)
            self.assertIn("BTS LISTENING TIMELINE — ana", output)
            self.assertTrue(csv_path.exists())
            record = json.loads(log_path.read_text().splitlines()[0])
            self.assertEqual(record["mode"], "full")
            self.assertEqual(record["result"]["total_plays"], 6)
            self.assertEqual(record["result"]["favorite_era"], {"album": "BE", "plays": 6})

    def test_falls_back_to_simple_when_charts_unavailable(self):
        client = _client()
        client.get_weekly_chart_list.side_effect = LastFmFetchError("down")
        with tempfile.TemporaryDirectory() as tmp:
            log_path = pathlib.Path(tmp) / "log.jsonl"
            code, _ = self._run(["ana", "--log", str(log_path)], client)
            record = json.loads(log_path.read_text())
        self.assertEqual(code, 0)
        self.assertEqual(record["mode"], "simple")
        self.assertEqual(record["result"]["total_plays"], 9)

    def test_user_not_found_exit_code(self):
        client = _client()
        client.get_weekly_chart_list.side_effect = LastFmAPIError(6, "User not found")
        code, _ = self._run(["ghost"], client)
        self.assertEqual(code, 1)

    def test_full_mode_uses_configured_deadline(self):
        with mock.patch("armystats.cli.build_bts_timeline", wraps=build_bts_timeline) as built:
            code, output = self._run(["ana"], _client())

        self.assertEqual(code, 0)
        self.assertEqual(built.call_args.kwargs["deadline"], 120.0)
        self.assertIn("BTS LISTENING TIMELINE — ana", output)

    def test_zero_deadline_disables_budget(self):
        with mock.patch("armystats.cli.build_bts_timeline", wraps=build_bts_timeline) as built:
            code, _ = self._run(["ana", "--deadline", "0"], _client())

        self.assertEqual(code, 0)
        self.assertIsNone(built.call_args.kwargs["deadline"])

    def test_simple_mode(self):
        client = _client()
        code, output = self._run(["ana", "--mode", "simple"], client)
        self.assertEqual(code, 0)
        client.get_weekly_chart_list.assert_not_called()
        self.assertIn("Total sampled plays", output)


if __name__ == "__main__":
    unittest.main()
