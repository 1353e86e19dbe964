import faulthandler
import logging
import os
import sys
import threading
import traceback

from PyQt6.QtWidgets import QApplication

from core.config import get_settings
from ui.main_window import MainWindow

APP_DIR = os.path.dirname(os.path.abspath(__file__))
THEME_DIR = os.path.join(APP_DIR, 'ui', 'theme')

logger = logging.getLogger('app')

# faulthandler writes through this handle at crash time, so it must outlive main().
_crash_handle = None


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[
            logging.FileHandler(os.path.join(APP_DIR, 'chart.log'), encoding='utf-8'),
            logging.StreamHandler(),
        ],
    )
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def _enable_faulthandler() -> None:
    global _crash_handle
    try:
        _crash_handle = open(os.path.join(APP_DIR, 'faulthandler.log'), 'w', encoding='utf-8')
        _crash_handle.write(f'pid={os.getpid()}\n')
        _crash_handle.flush()
        faulthandler.enable(_crash_handle, all_threads=True)
    except OSError:
        faulthandler.enable(all_threads=True)


def _report_unhandled(exc_type, exc_value, exc_tb) -> None:
    logger.error('Unhandled exception', exc_info=(exc_type, exc_value, exc_tb))
    try:
        with open(os.path.join(APP_DIR, 'exception.log'), 'a', encoding='utf-8') as handle:
            handle.write('\n=== Unhandled Exception ===\n')
            traceback.print_exception(exc_type, exc_value, exc_tb, file=handle)
    except OSError:
        logger.warning('Could not write exception.log')


def _install_exception_hooks() -> None:
    sys.excepthook = _report_unhandled
    threading.excepthook = lambda args: _report_unhandled(args.exc_type, args.exc_value, args.exc_traceback)


def _apply_theme(app: QApplication) -> None:
    qss_path = os.path.join(THEME_DIR, 'app.qss')
    if os.path.exists(qss_path):
        with open(qss_path, 'r', encoding='utf-8') as handle:
            app.setStyleSheet(handle.read())


def main() -> int:
    _enable_faulthandler()
    settings = get_settings()
    _configure_logging(settings.log_level)
    _install_exception_hooks()
    app = QApplication(sys.argv)
    app.setApplicationName('PriceChart')
    _apply_theme(app)
    window = MainWindow()
    window.show()
    logger.info('Price chart started (provider %s)', settings.provider_url)
    return app.exec()


if __name__ == '__main__':
    sys.exit(main())
