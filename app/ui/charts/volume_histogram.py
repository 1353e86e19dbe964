from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pyqtgraph as pg
from PyQt6.QtCore import QRectF
from PyQt6.QtGui import QColor, QPainter, QPicture


class VolumeHistogramItem(pg.GraphicsObject):
    """
    Volume bars pinned to the bottom of the price view.

    The item is added with ``ignoreBounds=True`` and draws in price coordinates:
    every paint maps the tallest visible bar to ``volume_height_ratio`` of the
    current y-range, so zooming the time axis rescales the bars and panning never
    pushes them off screen. Bars are recorded into QPictures per chunk of
    ``chunk_size`` points; a chunk is re-recorded only when the scale changes.
    """

    def __init__(
        self,
        up_color: QColor,
        down_color: QColor,
        bar_width: float,
        volume_height_ratio: float,
        chunk_size: int = 300,
    ) -> None:
        super().__init__()
        self._brushes = (pg.mkBrush(QColor(down_color)), pg.mkBrush(QColor(up_color)))
        self._no_pen = pg.mkPen(None)
        self._half_width = float(bar_width) / 2.0
        self._ratio = float(volume_height_ratio)
        self._chunk = max(1, int(chunk_size))
        self._x = np.empty(0, dtype=np.float64)
        self._volume = np.empty(0, dtype=np.float64)
        self._rising = np.empty(0, dtype=bool)
        self._pictures: Dict[int, QPicture] = {}
        self._scale: Optional[Tuple[float, float, float]] = None
        self._bounds = QRectF(0, 0, 1, 1)

    def set_arrays(
        self,
        x: Sequence[float],
        volume: Sequence[float],
        rising: Optional[Sequence[bool]] = None,
    ) -> None:
        self._x = np.asarray(x, dtype=np.float64)
        self._volume = np.nan_to_num(np.asarray(volume, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
        if rising is None:
            self._rising = np.ones(self._x.size, dtype=bool)
        else:
            self._rising = np.asarray(rising, dtype=bool)
        self._pictures = {}
        self._scale = None
        if self._x.size:
            self.set_view_bounds(float(self._x[0]), float(self._x[-1]) + 1.0, 0.0, 1.0)
        self.update()

    def bar_count(self) -> int:
        return int(self._x.size)

    def set_view_bounds(self, x_min: float, x_max: float, y_min: float, y_max: float) -> None:
        if not np.all(np.isfinite([x_min, x_max, y_min, y_max])):
            return
        if x_max <= x_min or y_max <= y_min:
            return
        rect = QRectF(x_min, y_min, x_max - x_min, y_max - y_min)
        if rect != self._bounds:
            self.prepareGeometryChange()
            self._bounds = rect

    def boundingRect(self) -> QRectF:
        return QRectF(self._bounds)

    def _visible_slice(self, x_min: float, x_max: float) -> Tuple[int, int]:
        # One extra bar on each side so half-visible bars at the edges still draw.
        start = max(0, int(np.searchsorted(self._x, x_min, side='left')) - 1)
        end = min(self._x.size, int(np.searchsorted(self._x, x_max, side='right')) + 1)
        return start, end

    def paint(self, painter: QPainter, option, widget) -> None:
        if self._x.size == 0:
            return
        view_box = self.getViewBox()
        if view_box is None:
            return
        (x_min, x_max), (y_min, y_max) = view_box.viewRange()
        start, end = self._visible_slice(x_min, x_max)
        if end <= start:
            return
        peak = float(self._volume[start:end].max())
        if peak <= 0:
            return
        scale = (float(y_min), peak, max(float(y_max - y_min), 1e-9) * self._ratio)
        if scale != self._scale:
            self._pictures = {}
            self._scale = scale
        for chunk in range(start // self._chunk, (end - 1) // self._chunk + 1):
            picture = self._pictures.get(chunk)
            if picture is None:
                picture = self._pictures[chunk] = self._render_chunk(chunk, *scale)
            painter.drawPicture(0, 0, picture)

    def _render_chunk(self, chunk: int, base: float, peak: float, full_height: float) -> QPicture:
        picture = QPicture()
        qp = QPainter(picture)
        try:
            qp.setPen(self._no_pen)
            lo = chunk * self._chunk
            hi = min(self._x.size, lo + self._chunk)
            for x_val, vol, rising in zip(self._x[lo:hi], self._volume[lo:hi], self._rising[lo:hi]):
                if vol <= 0:
                    continue
                qp.setBrush(self._brushes[int(rising)])
                qp.drawRect(QRectF(float(x_val) - self._half_width, base, self._half_width * 2.0, full_height * float(vol) / peak))
        finally:
            qp.end()
        return picture
