from typing import Dict, Optional

import numpy as np
import pyqtgraph as pg
from PyQt6.QtCore import QPointF, QRectF
from PyQt6.QtGui import QColor, QPainter, QPicture


class CandlestickItem(pg.GraphicsObject):
    """OHLC candles; body colour follows close >= open, wicks use a softer tint."""

    def __init__(
        self,
        up_color: QColor,
        down_color: QColor,
        wick_up_color: Optional[QColor] = None,
        wick_down_color: Optional[QColor] = None,
        chunk_size: int = 300,
    ) -> None:
        super().__init__()
        up = QColor(up_color)
        down = QColor(down_color)
        # Index 0 is falling, 1 is rising.
        self._body_pens = (pg.mkPen(down, width=1), pg.mkPen(up, width=1))
        self._body_brushes = (pg.mkBrush(down), pg.mkBrush(up))
        self._wick_pens = (
            pg.mkPen(QColor(wick_down_color) if wick_down_color is not None else down, width=1),
            pg.mkPen(QColor(wick_up_color) if wick_up_color is not None else up, width=1),
        )
        self._chunk = max(1, int(chunk_size))
        self._pictures: Dict[int, QPicture] = {}
        self._bounds = QRectF(0, 0, 1, 1)
        self._half_width = 0.4
        self._ohlc = np.empty((0, 5), dtype=np.float64)

    def set_arrays(self, x, open_, high, low, close, candle_width: float) -> None:
        ohlc = np.column_stack(
            [np.asarray(col, dtype=np.float64) for col in (x, open_, high, low, close)]
        ) if len(x) else np.empty((0, 5), dtype=np.float64)
        # Rows with a missing value are skipped rather than drawn at zero.
        self._ohlc = ohlc[np.all(np.isfinite(ohlc), axis=1)]
        if candle_width > 0:
            self._half_width = float(candle_width) / 2.0
        self._pictures = {}
        self.prepareGeometryChange()
        if self._ohlc.size:
            xs = self._ohlc[:, 0]
            top = float(self._ohlc[:, 2].max())
            bottom = float(self._ohlc[:, 3].min())
            left = float(xs.min()) - self._half_width
            right = float(xs.max()) + self._half_width
            self._bounds = QRectF(left, bottom, right - left, max(top - bottom, 1e-9))
        else:
            self._bounds = QRectF(0, 0, 1, 1)
        self.informViewBoundsChanged()
        self.update()

    def bar_count(self) -> int:
        return int(self._ohlc.shape[0])

    def boundingRect(self) -> QRectF:
        return QRectF(self._bounds)

    def paint(self, painter: QPainter, option, widget) -> None:
        count = self.bar_count()
        for chunk in range((count + self._chunk - 1) // self._chunk):
            picture = self._pictures.get(chunk)
            if picture is None:
                picture = self._pictures[chunk] = self._render_chunk(chunk)
            painter.drawPicture(0, 0, picture)

    def _render_chunk(self, chunk: int) -> QPicture:
        picture = QPicture()
        qp = QPainter(picture)
        w = self._half_width
        try:
            for x_val, o, h, l, c in self._ohlc[chunk * self._chunk:(chunk + 1) * self._chunk]:
                side = int(c >= o)
                if h > l:
                    qp.setPen(self._wick_pens[side])
                    qp.drawLine(QPointF(x_val, l), QPointF(x_val, h))
                qp.setPen(self._body_pens[side])
                if c == o:
                    # Doji: a flat tick instead of a zero-height body.
                    qp.drawLine(QPointF(x_val - w, c), QPointF(x_val + w, c))
                    continue
                qp.setBrush(self._body_brushes[side])
                qp.drawRect(QRectF(x_val - w, min(o, c), w * 2, abs(c - o)))
        finally:
            qp.end()
        return picture
