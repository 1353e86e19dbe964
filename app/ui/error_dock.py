import logging
import time
from datetime import datetime
from typing import List

from PyQt6.QtWidgets import QDockWidget, QTextEdit

logger = logging.getLogger(__name__)


class ErrorDock(QDockWidget):
    """Log pane for fetch/render problems. Repeats within a short window are collapsed."""

    def __init__(self, repeat_window: float = 2.0) -> None:
        super().__init__('Messages')
        self.setObjectName('ErrorDock')
        self._repeat_window = float(repeat_window)
        self._last_message = ''
        self._last_message_at = 0.0
        self._messages: List[str] = []

        self.text = QTextEdit()
        self.text.setReadOnly(True)
        self.text.setPlaceholderText('Provider and chart errors show up here.')
        self.setWidget(self.text)

    def append_error(self, message: str) -> bool:
        now = time.monotonic()
        if message == self._last_message and (now - self._last_message_at) < self._repeat_window:
            return False
        self._last_message = message
        self._last_message_at = now
        self._messages.append(message)
        logger.warning(message)
        self.text.append(f'[{datetime.now().strftime("%H:%M:%S")}] {message}')
        return True

    def messages(self) -> List[str]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()
        self._last_message = ''
        self.text.clear()
