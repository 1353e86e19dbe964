from __future__ import annotations

import logging
from typing import Callable, List, Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from core.data_fetch import load_chart_points, normalize_symbol
from core.models import ChartResult
from core.ranges import coerce_range

logger = logging.getLogger(__name__)

Loader = Callable[[str, str], ChartResult]


class ChartFetchWorker(QThread):
    ready = pyqtSignal(int, object)

    def __init__(self, generation: int, symbol: str, range_token: str, loader: Loader) -> None:
        super().__init__()
        self.generation = generation
        self.symbol = symbol
        self.range_token = range_token
        self._loader = loader

    def run(self) -> None:
        try:
            result = self._loader(self.symbol, self.range_token)
        except Exception as exc:
            result = ChartResult(symbol=self.symbol, range_token=self.range_token, ok=False, error=str(exc))
        self.ready.emit(self.generation, result)


class FetchOrchestrator(QObject):
    """
    Issues chart fetches and applies only the newest one.

    Each request captures the generation counter at issue time. A result is passed on
    only if that generation is still current when it arrives; anything older is
    dropped. Running workers are never aborted, their results are simply ignored.
    """

    started = pyqtSignal(str, str)
    points_ready = pyqtSignal(object)
    stale_dropped = pyqtSignal(int)

    def __init__(self, loader: Optional[Loader] = None, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._loader: Loader = loader or load_chart_points
        self._generation = 0
        self._workers: List[ChartFetchWorker] = []
        self._closed = False

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def request(self, symbol: str, range_token: str) -> int:
        symbol = normalize_symbol(symbol)
        range_token = coerce_range(range_token)
        self._generation += 1
        generation = self._generation
        worker = ChartFetchWorker(generation, symbol, range_token, self._loader)
        worker.ready.connect(self._on_worker_ready)
        worker.finished.connect(self._on_worker_finished)
        self._workers.append(worker)
        self.started.emit(symbol, range_token)
        logger.debug('Fetch #%d started for %s %s', generation, symbol, range_token)
        worker.start()
        return generation

    def invalidate(self) -> None:
        self._generation += 1

    def _on_worker_ready(self, generation: int, result: ChartResult) -> None:
        if not self.is_current(generation):
            logger.debug('Dropping stale fetch #%d (current #%d)', generation, self._generation)
            self.stale_dropped.emit(generation)
            return
        self.points_ready.emit(result)

    def _on_worker_finished(self) -> None:
        worker = self.sender()
        try:
            self._workers.remove(worker)
        except ValueError:
            return
        worker.deleteLater()

    @property
    def pending(self) -> int:
        return len(self._workers)

    def shutdown(self, wait_ms: int = 1500) -> None:
        self._closed = True
        self.invalidate()
        for worker in list(self._workers):
            if worker.isRunning():
                worker.wait(wait_ms)
