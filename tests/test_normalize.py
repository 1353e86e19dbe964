import math
import os
import sys
import unittest
from datetime import datetime, timezone

REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
APP_DIR = os.path.join(REPO_ROOT, "app")
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

from core.models import CanonicalPoint, RawBar
from core.normalize import drop_malformed, is_complete, normalize_bars, point_x, round_price


def _ts(day: int, hour: int = 14, minute: int = 30) -> datetime:
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


class SeriesNormalizerTests(unittest.TestCase):
    def test_bar_missing_low_is_dropped_and_neighbours_kept(self):
        bars = [
            RawBar(_ts(3), 10.0, 11.0, 9.5, 10.5, 100),
            RawBar(_ts(4), 10.5, 11.5, None, 11.0, 200),
            RawBar(_ts(5), 11.0, 12.0, 10.75, 11.25, 300),
        ]
        points = normalize_bars(bars, intraday=False)
        self.assertEqual(
            points,
            (
                CanonicalPoint(time="2024-01-03", open=10.0, high=11.0, low=9.5, close=10.5, volume=100),
                CanonicalPoint(time="2024-01-05", open=11.0, high=12.0, low=10.75, close=11.25, volume=300),
            ),
        )

    def test_nan_values_count_as_missing(self):
        bar = RawBar(_ts(3), 10.0, 11.0, 9.0, float("nan"), 1)
        self.assertFalse(is_complete(bar))
        self.assertEqual(drop_malformed([bar]), [])

    def test_rounding_is_half_up_to_two_places(self):
        self.assertEqual(round_price(1.005), 1.01)
        self.assertEqual(round_price(2.675), 2.68)
        self.assertEqual(round_price(10.004), 10.0)
        self.assertEqual(round_price(187.4449), 187.44)

    def test_every_price_has_at_most_two_decimals(self):
        bars = [RawBar(_ts(3, minute=m), 100.123 + m / 7, 101.987, 99.0001, 100.555, 10) for m in range(20)]
        for p in normalize_bars(bars, intraday=True):
            for value in (p.open, p.high, p.low, p.close):
                self.assertEqual(round(value, 2), value)

    def test_volume_defaults_to_zero(self):
        bars = [
            RawBar(_ts(3), 1.0, 1.0, 1.0, 1.0, None),
            RawBar(_ts(4), 1.0, 1.0, 1.0, 1.0, float("nan")),
            RawBar(_ts(5), 1.0, 1.0, 1.0, 1.0, 1234.9),
        ]
        self.assertEqual([p.volume for p in normalize_bars(bars, intraday=False)], [0, 0, 1234])

    def test_time_representation(self):
        bar = RawBar(datetime(2024, 1, 5, 14, 35, 59, tzinfo=timezone.utc), 1.0, 1.0, 1.0, 1.0, 1)
        intraday = normalize_bars([bar], intraday=True)[0]
        daily = normalize_bars([bar], intraday=False)[0]
        self.assertEqual(intraday.time, int(bar.date.timestamp()))
        self.assertIsInstance(intraday.time, int)
        self.assertEqual(daily.time, "2024-01-05")

    def test_input_order_is_preserved(self):
        bars = [RawBar(_ts(5), 1.0, 1.0, 1.0, 1.0, 1), RawBar(_ts(3), 2.0, 2.0, 2.0, 2.0, 1)]
        self.assertEqual([p.time for p in normalize_bars(bars, intraday=False)], ["2024-01-05", "2024-01-03"])

    def test_output_never_longer_than_input_and_time_non_decreasing(self):
        bars = [RawBar(_ts(3, minute=m), 1.0, 2.0, None if m % 4 == 0 else 0.5, 1.5, m) for m in range(30)]
        points = normalize_bars(bars, intraday=True)
        self.assertLessEqual(len(points), len(bars))
        times = [p.time for p in points]
        self.assertEqual(times, sorted(times))

    def test_point_x(self):
        self.assertEqual(point_x(CanonicalPoint("2024-01-05", 1, 1, 1, 1, 0)), datetime(2024, 1, 5, tzinfo=timezone.utc).timestamp())
        self.assertTrue(math.isclose(point_x(CanonicalPoint(1704465300, 1, 1, 1, 1, 0)), 1704465300.0))


if __name__ == "__main__":
    unittest.main()
