from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from PySide6.QtCore import QThread, Signal

_logger = logging.getLogger(__name__)


class CoroutineWorker(QThread):
    """Runs one controller coroutine on its own event loop off the GUI thread.

    Results come back through queued signals, so the connected slots run on
    the thread that owns the receiver. Each signal carries the handler the
    caller registered alongside the payload.
    """

    succeeded = Signal(object, object)  # handler, result
    failed = Signal(object, object)  # handler, exception

    def __init__(
        self,
        factory: Callable[[], Awaitable[Any]],
        on_done: Callable[[Any], None],
        on_failed: Callable[[BaseException], None],
        parent=None,
    ):
        super().__init__(parent)
        self._factory = factory
        self._on_done = on_done
        self._on_failed = on_failed

    def run(self) -> None:
        try:
            result = asyncio.run(self._factory())
        except Exception as ex:
            _logger.exception("background task failed")
            self.failed.emit(self._on_failed, ex)
            return
        self.succeeded.emit(self._on_done, result)
