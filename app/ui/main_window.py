from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import QFileDialog, QMainWindow

from .chart_view import ChartView
from .error_dock import ErrorDock


class MainWindow(QMainWindow):
    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle('Price Chart')
        self.resize(1200, 720)

        self.error_dock = ErrorDock()
        self.chart_view = ChartView(error_sink=self.error_dock)
        self.setCentralWidget(self.chart_view)
        self.addDockWidget(Qt.DockWidgetArea.BottomDockWidgetArea, self.error_dock)
        self._build_menu()
        self.chart_view.load()

    def _build_menu(self) -> None:
        file_menu = self.menuBar().addMenu('File')

        export_csv = QAction('Export CSV...', self)
        export_csv.triggered.connect(lambda: self.chart_view.export_data('csv'))
        file_menu.addAction(export_csv)

        export_json = QAction('Export JSON...', self)
        export_json.triggered.connect(lambda: self.chart_view.export_data('json'))
        file_menu.addAction(export_json)

        export_png = QAction('Export Chart PNG...', self)
        export_png.triggered.connect(self._export_png)
        file_menu.addAction(export_png)

        file_menu.addSeparator()
        quit_action = QAction('Quit', self)
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

        view_menu = self.menuBar().addMenu('View')
        view_menu.addAction(self.error_dock.toggleViewAction())

    def _export_png(self) -> None:
        default_name = f'{self.chart_view.current_symbol}_{self.chart_view.current_range}.png'
        path, _ = QFileDialog.getSaveFileName(self, 'Export Chart PNG', default_name, 'PNG (*.png)')
        if not path:
            return
        if not self.chart_view.export_chart_png(path):
            self.error_dock.append_error('Nothing to export: the chart is empty.')

    def closeEvent(self, event) -> None:
        self.chart_view.shutdown()
        super().closeEvent(event)
