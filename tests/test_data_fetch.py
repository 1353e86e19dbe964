import os
import sys
import unittest
from datetime import datetime, timedelta, timezone

REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
APP_DIR = os.path.join(REPO_ROOT, "app")
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

from core.data_fetch import load_chart_points, normalize_symbol
from core.data_providers.yahoo import ProviderError
from core.models import RawBar

NOW = datetime(2024, 1, 7, 18, 0, tzinfo=timezone.utc)


def _session(day: int, volume) -> list:
    start = datetime(2024, 1, day, 14, 30, tzinfo=timezone.utc)
    return [RawBar(start + timedelta(minutes=5 * i), 10.0, 10.5, 9.5, 10.25, volume) for i in range(4)]


class _RecordingFetcher:
    def __init__(self, bars=None, error=None):
        self.bars = bars or []
        self.error = error
        self.calls = []

    def __call__(self, symbol, start, interval):
        self.calls.append((symbol, start, interval))
        if self.error is not None:
            raise self.error
        return list(self.bars)


class LoadChartPointsTests(unittest.TestCase):
    def test_one_day_keeps_only_last_traded_session(self):
        fetcher = _RecordingFetcher(_session(4, 100) + _session(5, 200) + _session(6, 0))
        result = load_chart_points("aapl", "1d", now=NOW, fetcher=fetcher)
        self.assertTrue(result.ok)
        self.assertEqual(result.symbol, "AAPL")
        self.assertEqual(len(result.points), 4)
        first = datetime.fromtimestamp(result.points[0].time, tz=timezone.utc)
        self.assertEqual(first.date().isoformat(), "2024-01-05")
        self.assertEqual(fetcher.calls[0][2], "5m")
        self.assertEqual(fetcher.calls[0][1], NOW - timedelta(days=6))

    def test_other_ranges_are_not_session_filtered(self):
        fetcher = _RecordingFetcher(_session(4, 100) + _session(5, 200))
        result = load_chart_points("AAPL", "5d", now=NOW, fetcher=fetcher)
        self.assertEqual(len(result.points), 8)
        self.assertEqual(fetcher.calls[0][2], "30m")

    def test_daily_ranges_use_iso_dates(self):
        fetcher = _RecordingFetcher(_session(5, 200)[:1])
        result = load_chart_points("AAPL", "1mo", now=NOW, fetcher=fetcher)
        self.assertEqual(result.points[0].time, "2024-01-05")

    def test_provider_failure_yields_empty_failed_result(self):
        fetcher = _RecordingFetcher(error=ProviderError("Provider error: No data found"))
        with self.assertLogs("core.data_fetch", level="WARNING"):
            result = load_chart_points("ZZZZ", "1y", now=NOW, fetcher=fetcher)
        self.assertFalse(result.ok)
        self.assertTrue(result.is_empty)
        self.assertIn("No data found", result.error)

    def test_unexpected_exception_is_contained(self):
        fetcher = _RecordingFetcher(error=KeyError("timestamp"))
        with self.assertLogs("core.data_fetch", level="WARNING"):
            result = load_chart_points("AAPL", "1y", now=NOW, fetcher=fetcher)
        self.assertFalse(result.ok)
        self.assertEqual(result.points, ())

    def test_unknown_range_falls_back_to_one_year(self):
        fetcher = _RecordingFetcher(_session(5, 1))
        result = load_chart_points("AAPL", "max", now=NOW, fetcher=fetcher)
        self.assertEqual(result.range_token, "1y")
        self.assertEqual(fetcher.calls[0][2], "1d")

    def test_empty_symbol_skips_provider(self):
        fetcher = _RecordingFetcher(_session(5, 1))
        result = load_chart_points("   ", "1y", now=NOW, fetcher=fetcher)
        self.assertFalse(result.ok)
        self.assertEqual(fetcher.calls, [])

    def test_malformed_bars_do_not_reach_output(self):
        bars = _session(5, 10)
        bars[1] = RawBar(bars[1].date, 10.0, None, 9.0, 10.0, 10)
        result = load_chart_points("AAPL", "1d", now=NOW, fetcher=_RecordingFetcher(bars))
        self.assertEqual(len(result.points), 3)

    def test_normalize_symbol(self):
        self.assertEqual(normalize_symbol(" msft "), "MSFT")
        self.assertEqual(normalize_symbol(None), "")


if __name__ == "__main__":
    unittest.main()
