# Rev 0.2.0
"""Run ScheduleDataService.initialize_store() off the UI thread."""
from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

log = logging.getLogger(__name__)


class _StoreInitSignals(QObject):
    finished = Signal(object, object)   # applied migrations | None, error | None


class _StoreInitJob(QRunnable):
    def __init__(self, service) -> None:
        super().__init__()
        self._service = service
        self.signals = _StoreInitSignals()

    def run(self) -> None:
        applied = None
        error: Optional[Exception] = None
        try:
            applied = self._service.initialize_store()
        except Exception as exc:
            log.exception("Store initialization job failed")
            error = exc
        self.signals.finished.emit(applied, error)


class StoreInitializer(QObject):
    """
    Dispatch store initialization on a thread pool.
    `initialized(list)` or `failed(object)` fires exactly once per start().
    A failure is fatal for the app: the receiver is expected to shut down.
    """

    initialized = Signal(list)
    failed = Signal(object)

    def __init__(self, service, parent: Optional[QObject] = None, pool: Optional[QThreadPool] = None) -> None:
        super().__init__(parent)
        self._service = service
        self._pool = pool or QThreadPool.globalInstance()
        self._in_progress = False

    @property
    def is_running(self) -> bool:
        return self._in_progress

    def make_job(self) -> _StoreInitJob:
        job = _StoreInitJob(self._service)
        job.signals.finished.connect(self._handle_finished)
        return job

    def start(self) -> bool:
        if self._in_progress:
            return False
        self._in_progress = True
        self._pool.start(self.make_job())
        return True

    def _handle_finished(self, applied, error) -> None:
        self._in_progress = False
        if error is not None:
            self.failed.emit(error)
        else:
            self.initialized.emit(list(applied or []))
