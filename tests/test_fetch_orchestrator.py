import os
import sys
import threading
import time
import unittest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
APP_DIR = os.path.join(REPO_ROOT, "app")
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

from PyQt6.QtWidgets import QApplication

from core.fetch_orchestrator import FetchOrchestrator
from core.models import CanonicalPoint, ChartResult


def _app():
    return QApplication.instance() or QApplication([])


def _wait_until(predicate, timeout=5.0):
    app = _app()
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        app.processEvents()
        if predicate():
            return True
        time.sleep(0.01)
    app.processEvents()
    return predicate()


class _GatedLoader:
    """Loader whose calls block until the test opens the gate for that symbol."""

    def __init__(self):
        self.gates = {}
        self.lock = threading.Lock()

    def gate(self, symbol):
        with self.lock:
            return self.gates.setdefault(symbol, threading.Event())

    def __call__(self, symbol, range_token):
        self.gate(symbol).wait(5.0)
        point = CanonicalPoint("2024-01-05", 1.0, 1.0, 1.0, 1.0, 1)
        return ChartResult(symbol=symbol, range_token=range_token, points=(point,))


class FetchOrchestratorTests(unittest.TestCase):
    def setUp(self):
        self.app = _app()
        self.loader = _GatedLoader()
        self.orch = FetchOrchestrator(loader=self.loader)
        self.applied = []
        self.dropped = []
        self.started = []
        self.orch.points_ready.connect(self.applied.append)
        self.orch.stale_dropped.connect(self.dropped.append)
        self.orch.started.connect(lambda s, r: self.started.append((s, r)))

    def tearDown(self):
        for event in list(self.loader.gates.values()):
            event.set()
        self.orch.shutdown()
        _wait_until(lambda: self.orch.pending == 0, timeout=2.0)

    def test_older_request_finishing_last_is_never_applied(self):
        first = self.orch.request("aapl", "1y")
        second = self.orch.request("msft", "1y")
        self.assertEqual((first, second), (1, 2))
        self.assertEqual(self.started, [("AAPL", "1y"), ("MSFT", "1y")])

        self.loader.gate("MSFT").set()
        self.assertTrue(_wait_until(lambda: len(self.applied) == 1))
        self.loader.gate("AAPL").set()
        self.assertTrue(_wait_until(lambda: self.dropped == [first]))

        self.assertEqual([r.symbol for r in self.applied], ["MSFT"])

    def test_in_order_completion_applies_only_latest(self):
        first = self.orch.request("AAPL", "1y")
        self.orch.request("AAPL", "5d")
        self.loader.gate("AAPL").set()
        self.assertTrue(_wait_until(lambda: len(self.applied) == 1 and len(self.dropped) == 1))
        self.assertEqual(self.applied[0].range_token, "5d")
        self.assertEqual(self.dropped, [first])

    def test_invalidate_drops_in_flight_result(self):
        generation = self.orch.request("AAPL", "1y")
        self.orch.invalidate()
        self.loader.gate("AAPL").set()
        self.assertTrue(_wait_until(lambda: self.dropped == [generation]))
        self.assertEqual(self.applied, [])

    def test_workers_are_released(self):
        self.orch.request("AAPL", "1y")
        self.assertEqual(self.orch.pending, 1)
        self.loader.gate("AAPL").set()
        self.assertTrue(_wait_until(lambda: self.orch.pending == 0))

    def test_unknown_range_is_coerced_before_fetch(self):
        self.orch.request("AAPL", "weird")
        self.assertEqual(self.started, [("AAPL", "1y")])

    def test_results_after_shutdown_are_ignored(self):
        generation = self.orch.request("AAPL", "1y")
        self.orch.shutdown(wait_ms=0)
        self.assertFalse(self.orch.is_current(generation))
        self.orch._on_worker_ready(generation, ChartResult(symbol="AAPL", range_token="1y"))
        self.assertEqual(self.applied, [])

    def test_loader_exception_becomes_failed_result(self):
        def boom(symbol, range_token):
            raise RuntimeError("kaput")

        orch = FetchOrchestrator(loader=boom)
        results = []
        orch.points_ready.connect(results.append)
        orch.request("AAPL", "1y")
        self.assertTrue(_wait_until(lambda: len(results) == 1))
        self.assertFalse(results[0].ok)
        self.assertEqual(results[0].error, "kaput")
        orch.shutdown()


if __name__ == "__main__":
    unittest.main()
