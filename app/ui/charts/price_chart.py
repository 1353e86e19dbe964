from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import pyqtgraph as pg
from PyQt6.QtCore import QEvent, QObject, Qt, pyqtSignal
from PyQt6.QtGui import QBrush, QColor, QLinearGradient
from PyQt6.QtWidgets import QLabel, QWidget

from core.models import CanonicalPoint, ChartResult
from core.normalize import point_x
from core.ranges import DEFAULT_RANGE, coerce_range
from ..theme import theme
from .candlestick_chart import CandlestickItem
from .volume_histogram import VolumeHistogramItem

PLOT_TYPES = ('area', 'candle')
# Empty bars kept to the right of the last point, like a chart's right offset.
RIGHT_OFFSET_BARS = 5


class ChartState(Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    RENDERED = 'rendered'
    EMPTY = 'empty'


def _tint(color: str, alpha: int) -> QColor:
    c = QColor(color)
    c.setAlpha(alpha)
    return c


class ChartViewBox(pg.ViewBox):
    """Wheel zooms the time axis around the cursor; it never scrolls."""

    def wheelEvent(self, ev, axis=None) -> None:
        if ev is None:
            return
        try:
            delta = ev.delta()
        except AttributeError:
            delta = ev.angleDelta().y()
        if delta == 0:
            return
        scale = 1.06 ** (delta / 120.0)
        self.scaleBy((1.0 / scale, 1.0), center=self.mapToView(ev.pos()))
        ev.accept()


class ResizeWatcher(QObject):
    resized = pyqtSignal(int, int)

    def eventFilter(self, obj, event) -> bool:
        if event.type() == QEvent.Type.Resize:
            size = event.size()
            self.resized.emit(size.width(), size.height())
        return False

    def receiver_count(self) -> int:
        return self.receivers(self.resized)


class PinchZoomFilter(QObject):
    def __init__(self, view_box: pg.ViewBox, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._view_box = view_box

    def eventFilter(self, obj, event) -> bool:
        if event.type() != QEvent.Type.Gesture:
            return False
        pinch = event.gesture(Qt.GestureType.PinchGesture)
        if pinch is None:
            return False
        factor = float(pinch.scaleFactor())
        if factor > 0:
            self._view_box.scaleBy((1.0 / factor, 1.0))
        event.accept()
        return True


class ListenerSet:
    """Signal connections and event filters registered for one plot instance."""

    def __init__(self) -> None:
        self._connections: List[Tuple[Any, Any]] = []
        self._filters: List[Tuple[QObject, QObject]] = []

    def connect(self, signal, slot) -> None:
        handle = signal.connect(slot)
        self._connections.append((signal, handle))

    def install_filter(self, target: QObject, event_filter: QObject) -> None:
        target.installEventFilter(event_filter)
        self._filters.append((target, event_filter))

    def __len__(self) -> int:
        return len(self._connections) + len(self._filters)

    def release(self) -> None:
        while self._connections:
            signal, handle = self._connections.pop()
            try:
                signal.disconnect(handle)
            except (TypeError, RuntimeError):
                # Sender already destroyed; nothing left to detach.
                pass
        while self._filters:
            target, event_filter = self._filters.pop()
            try:
                target.removeEventFilter(event_filter)
            except RuntimeError:
                # Target widget already deleted along with its filters.
                pass


class PriceChart(QObject):
    """
    Owns the chart's plot widget and rebuilds it whenever what it shows changes.

    At most one PlotWidget exists at a time. Changing the points, the plot type or
    the range disposes the current widget (listeners first, then items, then the
    widget itself) before a new one is built; nothing is reused across rebuilds.
    """

    state_changed = pyqtSignal(object)

    def __init__(self, container: QWidget, height: int = theme.CHART_HEIGHT) -> None:
        super().__init__(container)
        self.container = container
        self._height = int(height)
        self.container.setMinimumHeight(self._height)
        self._plot: Optional[pg.PlotWidget] = None
        self._listeners = ListenerSet()
        self._primary_item: Optional[pg.GraphicsObject] = None
        self._volume_item: Optional[VolumeHistogramItem] = None
        self._points: Tuple[CanonicalPoint, ...] = ()
        self._xs: Optional[np.ndarray] = None
        self._lows: Optional[np.ndarray] = None
        self._highs: Optional[np.ndarray] = None
        self._bar_spacing = 1.0
        self._plot_type = 'area'
        self._range_token = DEFAULT_RANGE
        self._symbol = ''
        self._pending: Optional[Tuple[str, str]] = None
        self._state = ChartState.IDLE
        self._torn_down = False
        self.build_count = 0
        self.dispose_count = 0

        self._watcher = ResizeWatcher(self)
        self.container.installEventFilter(self._watcher)
        self._watcher.resized.connect(self._place_overlay)

        self._overlay = QLabel('', self.container)
        self._overlay.setObjectName('ChartOverlay')
        self._overlay.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._overlay.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, True)
        self._overlay.hide()

    @property
    def state(self) -> ChartState:
        return self._state

    @property
    def points(self) -> Tuple[CanonicalPoint, ...]:
        return self._points

    @property
    def plot_type(self) -> str:
        return self._plot_type

    @property
    def range_token(self) -> str:
        return self._range_token

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def plot_widget(self) -> Optional[pg.PlotWidget]:
        return self._plot

    @property
    def primary_item(self) -> Optional[pg.GraphicsObject]:
        return self._primary_item

    @property
    def volume_item(self) -> Optional[VolumeHistogramItem]:
        return self._volume_item

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def overlay_text(self) -> str:
        return self._overlay.text() if self._overlay.isVisibleTo(self.container) else ''

    def resize_receiver_count(self) -> int:
        return self._watcher.receiver_count()

    def _set_state(self, state: ChartState) -> None:
        if state == self._state:
            return
        self._state = state
        self.state_changed.emit(state)

    def begin_loading(self, symbol: str, range_token: str) -> None:
        """
        Drop the shown series and wait for (symbol, range_token).

        `symbol` and `range_token` keep describing what is on screen (nothing,
        until the result arrives); the request being waited on is `pending`.
        """
        if self._torn_down:
            return
        self._pending = (symbol, coerce_range(range_token))
        self._points = ()
        self.dispose()
        self._show_overlay('Loading…')
        self._set_state(ChartState.LOADING)

    @property
    def pending(self) -> Optional[Tuple[str, str]]:
        return self._pending

    def apply_result(self, result: ChartResult) -> None:
        if self._torn_down:
            return
        self._pending = None
        self._hide_overlay()
        if result.symbol:
            self._symbol = result.symbol
        self._range_token = coerce_range(result.range_token)
        if result.is_empty:
            self._points = ()
            self.dispose()
            self._show_overlay('No data')
            self._set_state(ChartState.EMPTY)
            return
        self._points = tuple(result.points)
        self.rebuild()
        self._set_state(ChartState.RENDERED)

    def set_points(self, points: Sequence[CanonicalPoint]) -> None:
        points = tuple(points)
        if points == self._points:
            return
        self._points = points
        self.rebuild()

    def set_plot_type(self, plot_type: str) -> None:
        if plot_type not in PLOT_TYPES:
            raise ValueError(f'Unknown plot type: {plot_type!r}')
        if plot_type == self._plot_type:
            return
        self._plot_type = plot_type
        if self._points:
            self.rebuild()

    def set_range(self, range_token: str) -> None:
        range_token = coerce_range(range_token)
        if range_token == self._range_token:
            return
        self._range_token = range_token
        if self._points:
            self.rebuild()

    def rebuild(self) -> None:
        self.dispose()
        if self._torn_down or not self._points:
            return
        self._build()

    def dispose(self) -> None:
        plot = self._plot
        if plot is None:
            return
        self._listeners.release()
        self._plot = None
        self._primary_item = None
        self._volume_item = None
        self._xs = None
        self._lows = None
        self._highs = None
        plot.clear()
        plot.hide()
        plot.setParent(None)
        plot.deleteLater()
        self.dispose_count += 1

    def shutdown(self) -> None:
        self._torn_down = True
        self.dispose()
        self.container.removeEventFilter(self._watcher)

    def is_positive(self) -> bool:
        points = self._points
        return len(points) > 1 and points[-1].close >= points[0].open

    def _build(self) -> None:
        points = self._points
        xs = np.array([point_x(p) for p in points], dtype=np.float64)
        opens = np.array([p.open for p in points], dtype=np.float64)
        highs = np.array([p.high for p in points], dtype=np.float64)
        lows = np.array([p.low for p in points], dtype=np.float64)
        closes = np.array([p.close for p in points], dtype=np.float64)
        volumes = np.array([p.volume for p in points], dtype=np.float64)
        spacing = float(np.median(np.diff(xs))) if xs.size > 1 else 0.0
        if spacing <= 0:
            spacing = 300.0 if isinstance(points[0].time, int) else 86_400.0
        self._bar_spacing = spacing
        self._xs = xs

        intraday = isinstance(points[0].time, int)
        axis = pg.DateAxisItem(orientation='bottom', utcOffset=None if intraday else 0)
        view_box = ChartViewBox()
        plot = pg.PlotWidget(parent=self.container, viewBox=view_box, axisItems={'bottom': axis})
        plot.setBackground(QColor(0, 0, 0, 0))
        plot.showGrid(x=True, y=True, alpha=0.15)
        plot.hideAxis('left')
        plot.showAxis('right')
        plot.setClipToView(True)
        plot.getPlotItem().hideButtons()
        self._apply_axis_style(plot)

        view_box.setMenuEnabled(False)
        view_box.setMouseEnabled(x=True, y=False)
        view_box.enableAutoRange(x=False, y=False)
        view_box.setLimits(
            xMin=float(xs[0]) - spacing,
            xMax=float(xs[-1]) + spacing * RIGHT_OFFSET_BARS,
            minXRange=spacing * 2,
        )

        positive = self.is_positive()
        line_color = theme.UP if positive else theme.DOWN
        if self._plot_type == 'candle':
            primary = CandlestickItem(
                QColor(theme.UP),
                QColor(theme.DOWN),
                wick_up_color=_tint(theme.UP, theme.WICK_ALPHA),
                wick_down_color=_tint(theme.DOWN, theme.WICK_ALPHA),
            )
            primary.set_arrays(xs, opens, highs, lows, closes, candle_width=spacing * 0.8)
            self._lows, self._highs = lows, highs
        else:
            gradient = QLinearGradient(0, 0, 0, 1)
            gradient.setCoordinateMode(QLinearGradient.CoordinateMode.ObjectBoundingMode)
            gradient.setColorAt(0.0, _tint(line_color, theme.AREA_TOP_ALPHA))
            gradient.setColorAt(1.0, _tint(line_color, theme.AREA_BOTTOM_ALPHA))
            span = float(closes.max() - closes.min()) or abs(float(closes.min())) or 1.0
            primary = pg.PlotDataItem(
                xs,
                closes,
                pen=pg.mkPen(line_color, width=2),
                fillLevel=float(closes.min()) - span * 2,
                fillBrush=QBrush(gradient),
            )
            self._lows, self._highs = closes, closes
        primary.setZValue(10)
        plot.addItem(primary)

        volume = VolumeHistogramItem(
            up_color=_tint(theme.UP, theme.VOLUME_ALPHA),
            down_color=_tint(theme.DOWN, theme.VOLUME_ALPHA),
            bar_width=spacing * 0.8,
            volume_height_ratio=theme.VOLUME_HEIGHT_RATIO,
        )
        volume.set_arrays(xs, volumes, closes >= opens)
        volume.setZValue(5)
        plot.addItem(volume, ignoreBounds=True)

        plot.setGeometry(0, 0, max(self.container.width(), 1), self._height)
        plot.viewport().grabGesture(Qt.GestureType.PinchGesture)

        self._listeners.connect(self._watcher.resized, self._on_container_resized)
        self._listeners.connect(plot.scene().sigMouseClicked, self._on_scene_clicked)
        self._listeners.connect(view_box.sigXRangeChanged, self._on_x_range_changed)
        self._listeners.connect(view_box.sigRangeChanged, self._on_view_range_changed)
        self._listeners.install_filter(plot.viewport(), PinchZoomFilter(view_box, plot))

        self._plot = plot
        self._primary_item = primary
        self._volume_item = volume
        self.build_count += 1
        plot.show()
        self._overlay.raise_()
        self.fit_content()

    def _apply_axis_style(self, plot: pg.PlotWidget) -> None:
        axis_pen = pg.mkPen(_tint(theme.GRID, 0x50))
        text_pen = pg.mkPen(theme.TEXT)
        for axis_name in ('bottom', 'right'):
            axis = plot.getAxis(axis_name)
            axis.setPen(axis_pen)
            axis.setTextPen(text_pen)

    def fit_content(self) -> None:
        if self._plot is None or self._xs is None or self._xs.size == 0:
            return
        x0 = float(self._xs[0])
        x1 = float(self._xs[-1])
        if x1 <= x0:
            x0 -= self._bar_spacing
            x1 += self._bar_spacing
        self._plot.getViewBox().setXRange(x0, x1, padding=0.02)
        self._fit_y()

    def _fit_y(self) -> None:
        if self._plot is None or self._xs is None or self._lows is None or self._highs is None:
            return
        view_box = self._plot.getViewBox()
        (x_min, x_max), _ = view_box.viewRange()
        start = int(np.searchsorted(self._xs, x_min, side='left'))
        end = int(np.searchsorted(self._xs, x_max, side='right'))
        if end <= start:
            start, end = 0, self._xs.size
        lo = float(np.min(self._lows[start:end]))
        hi = float(np.max(self._highs[start:end]))
        span = hi - lo
        if span <= 0:
            span = abs(hi) * 0.01 or 1.0
        total = span / (1.0 - theme.PRICE_MARGIN_TOP - theme.PRICE_MARGIN_BOTTOM)
        view_box.setYRange(lo - total * theme.PRICE_MARGIN_BOTTOM, hi + total * theme.PRICE_MARGIN_TOP, padding=0)

    def _on_x_range_changed(self, *args) -> None:
        self._fit_y()

    def _on_view_range_changed(self, *args) -> None:
        if self._plot is None or self._volume_item is None:
            return
        (x_min, x_max), (y_min, y_max) = self._plot.getViewBox().viewRange()
        self._volume_item.set_view_bounds(x_min, x_max, y_min, y_max)

    def _on_scene_clicked(self, ev) -> None:
        if ev.double():
            self.fit_content()
            ev.accept()

    def _on_container_resized(self, width: int, height: int) -> None:
        if self._plot is None:
            return
        self._plot.resize(max(width, 1), self._height)

    def _place_overlay(self, width: int = -1, height: int = -1) -> None:
        if width < 0:
            width = self.container.width()
        self._overlay.setGeometry(0, 0, max(width, 1), self._height)

    def _show_overlay(self, text: str) -> None:
        self._overlay.setText(text)
        self._place_overlay()
        self._overlay.show()
        self._overlay.raise_()

    def _hide_overlay(self) -> None:
        self._overlay.hide()
