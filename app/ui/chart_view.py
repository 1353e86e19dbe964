import logging
from typing import Optional

from PyQt6.QtCore import QSettings
from PyQt6.QtWidgets import (
    QButtonGroup,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QStyle,
    QVBoxLayout,
    QWidget,
)

from core.data_fetch import normalize_symbol
from core.export import ExportPayload, export_points
from core.fetch_orchestrator import FetchOrchestrator, Loader
from core.models import ChartResult
from core.ranges import DEFAULT_RANGE, RANGE_TOKENS, coerce_range
from .charts.price_chart import PLOT_TYPES, ChartState, PriceChart

RANGE_LABELS = {
    '1d': '1D',
    '5d': '5D',
    '1mo': '1M',
    '3mo': '3M',
    '6mo': '6M',
    '1y': '1Y',
    '5y': '5Y',
}
PLOT_TYPE_LABELS = {'area': 'Line', 'candle': 'Candle'}
DEFAULT_SYMBOL = 'AAPL'

logger = logging.getLogger(__name__)


class ChartView(QWidget):
    def __init__(self, error_sink=None, loader: Optional[Loader] = None, settings: Optional[QSettings] = None) -> None:
        super().__init__()
        self.error_sink = error_sink
        self._settings = settings if settings is not None else QSettings('PriceChart', 'PriceChart')
        self.current_symbol = normalize_symbol(self._settings.value('chart/symbol', DEFAULT_SYMBOL, type=str)) or DEFAULT_SYMBOL
        self.current_range = coerce_range(self._settings.value('chart/range', DEFAULT_RANGE, type=str))
        plot_type = self._settings.value('chart/plot_type', 'area', type=str)
        self.current_plot_type = plot_type if plot_type in PLOT_TYPES else 'area'

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self.toolbar = QWidget()
        self.toolbar.setObjectName('TopToolbar')
        toolbar_layout = QHBoxLayout(self.toolbar)
        toolbar_layout.setContentsMargins(8, 8, 8, 6)
        toolbar_layout.setSpacing(4)

        self.symbol_edit = QLineEdit(self.current_symbol)
        self.symbol_edit.setPlaceholderText('Symbol, e.g. AAPL')
        self.symbol_edit.setMinimumWidth(160)
        self.symbol_edit.returnPressed.connect(self._on_symbol_entered)
        self._add_symbol_search_icon()
        toolbar_layout.addWidget(self.symbol_edit)
        toolbar_layout.addSpacing(8)

        self.range_buttons: dict[str, QPushButton] = {}
        self.range_group = QButtonGroup(self)
        self.range_group.setExclusive(True)
        for token in RANGE_TOKENS:
            button = QPushButton(RANGE_LABELS[token])
            button.setCheckable(True)
            button.clicked.connect(lambda _checked, val=token: self.set_range(val))
            self.range_buttons[token] = button
            self.range_group.addButton(button)
            toolbar_layout.addWidget(button)
        self.range_buttons[self.current_range].setChecked(True)
        toolbar_layout.addStretch(1)

        self.plot_type_buttons: dict[str, QPushButton] = {}
        self.plot_type_group = QButtonGroup(self)
        self.plot_type_group.setExclusive(True)
        for kind in PLOT_TYPES:
            button = QPushButton(PLOT_TYPE_LABELS[kind])
            button.setCheckable(True)
            button.clicked.connect(lambda _checked, val=kind: self.set_plot_type(val))
            self.plot_type_buttons[kind] = button
            self.plot_type_group.addButton(button)
            toolbar_layout.addWidget(button)
        self.plot_type_buttons[self.current_plot_type].setChecked(True)
        layout.addWidget(self.toolbar)

        self.chart_container = QWidget()
        layout.addWidget(self.chart_container)
        self.chart = PriceChart(self.chart_container)
        self.chart.set_plot_type(self.current_plot_type)
        self.chart.state_changed.connect(self._on_chart_state_changed)

        self.footer = QWidget()
        footer_layout = QHBoxLayout(self.footer)
        footer_layout.setContentsMargins(8, 4, 8, 6)
        footer_layout.setSpacing(6)
        footer_layout.addWidget(QLabel('Export'))
        self.export_csv_button = QPushButton('CSV')
        self.export_csv_button.clicked.connect(lambda: self.export_data('csv'))
        footer_layout.addWidget(self.export_csv_button)
        self.export_json_button = QPushButton('JSON')
        self.export_json_button.clicked.connect(lambda: self.export_data('json'))
        footer_layout.addWidget(self.export_json_button)
        self.status_label = QLabel('')
        footer_layout.addStretch(1)
        footer_layout.addWidget(self.status_label)
        layout.addWidget(self.footer)
        self._update_export_enabled()

        self.orchestrator = FetchOrchestrator(loader=loader, parent=self)
        self.orchestrator.started.connect(self.chart.begin_loading)
        self.orchestrator.points_ready.connect(self._on_points_ready)

    def _add_symbol_search_icon(self) -> None:
        icon = self.style().standardIcon(QStyle.StandardPixmap.SP_FileDialogContentsView)
        self.symbol_edit.addAction(icon, QLineEdit.ActionPosition.LeadingPosition)

    def load(self) -> int:
        self._persist()
        return self.orchestrator.request(self.current_symbol, self.current_range)

    def set_symbol(self, symbol: str) -> None:
        symbol = normalize_symbol(symbol)
        if not symbol:
            return
        if self.symbol_edit.text() != symbol:
            self.symbol_edit.setText(symbol)
        if symbol == self.current_symbol and self.chart.state != ChartState.IDLE:
            return
        self.current_symbol = symbol
        self.load()

    def set_range(self, range_token: str) -> None:
        range_token = coerce_range(range_token)
        self.range_buttons[range_token].setChecked(True)
        if range_token == self.current_range and self.chart.state != ChartState.IDLE:
            return
        self.current_range = range_token
        self.load()

    def set_plot_type(self, plot_type: str) -> None:
        if plot_type not in PLOT_TYPES:
            return
        self.plot_type_buttons[plot_type].setChecked(True)
        if plot_type == self.current_plot_type:
            return
        self.current_plot_type = plot_type
        self.chart.set_plot_type(plot_type)
        self._persist()

    def _on_symbol_entered(self) -> None:
        self.set_symbol(self.symbol_edit.text())

    def _on_points_ready(self, result: ChartResult) -> None:
        try:
            self.chart.apply_result(result)
        except Exception as exc:
            self._report_error(f'Chart render failed: {exc}')
            return
        if not result.ok:
            self.status_label.setText(f'Error: {result.error}')
            self.status_label.setStyleSheet('color: #EF5350;')
            self._report_error(f'{result.symbol} {result.range_token}: {result.error}')
        else:
            self.status_label.setStyleSheet('')
            self.status_label.setText(f'{result.symbol} · {len(result.points)} points')
        self._update_export_enabled()

    def _on_chart_state_changed(self, state: ChartState) -> None:
        if state == ChartState.LOADING:
            self.status_label.setStyleSheet('color: #B2B5BE;')
            self.status_label.setText(f'Loading {self.current_symbol} {RANGE_LABELS[self.current_range]}...')
        self._update_export_enabled()

    def _update_export_enabled(self) -> None:
        has_points = bool(self.chart.points)
        self.export_csv_button.setEnabled(has_points)
        self.export_json_button.setEnabled(has_points)

    def build_export(self, fmt: str) -> Optional[ExportPayload]:
        return export_points(self.chart.points, fmt, self.chart.symbol or self.current_symbol, self.chart.range_token)

    def export_data(self, fmt: str, path: Optional[str] = None) -> Optional[str]:
        payload = self.build_export(fmt)
        if payload is None:
            return None
        if path is None:
            path, _ = QFileDialog.getSaveFileName(self, f'Export {fmt.upper()}', payload.filename, f'{fmt.upper()} (*.{fmt})')
            if not path:
                return None
        try:
            with open(path, 'wb') as handle:
                handle.write(payload.data)
        except OSError as exc:
            self._report_error(f'Export failed: {exc}')
            return None
        return path

    def export_chart_png(self, path: str) -> bool:
        plot = self.chart.plot_widget
        if plot is None:
            return False
        return plot.grab().save(path, 'PNG')

    def _persist(self) -> None:
        self._settings.setValue('chart/symbol', self.current_symbol)
        self._settings.setValue('chart/range', self.current_range)
        self._settings.setValue('chart/plot_type', self.current_plot_type)

    def _report_error(self, message: str) -> None:
        if self.error_sink is not None:
            try:
                self.error_sink.append_error(message)
            except RuntimeError:
                logger.warning('Error sink unavailable: %s', message)
        else:
            logger.warning(message)

    def shutdown(self) -> None:
        self.orchestrator.shutdown()
        self.chart.shutdown()
