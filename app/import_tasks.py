from __future__ import annotations

import threading
from typing import Any

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal
from loguru import logger

from core.models import ImportOptions
from core.services.interfaces import ImportComplete, ImportProgress


class ImportSignals(QObject):
    """Receiver for background import events.

    `importProgress(current, total, filename, roll_id)` is emitted before each
    file, `importFinished(roll_id, count, path)` once the photos are stored,
    and `importFailed(message)` when the import raises.
    """

    importProgress = Signal(int, int, str, int)
    importFinished = Signal(int, int, str)
    importFailed = Signal(str)


class _SignalProgressSink:
    """Forwards import events to `ImportSignals` until cancelled."""

    def __init__(self, receiver: ImportSignals) -> None:
        self._receiver = receiver
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def progress(self, event: ImportProgress) -> None:
        if self.cancelled:
            return
        self._receiver.importProgress.emit(
            event.current, event.total, event.filename, event.roll_id
        )

    def complete(self, event: ImportComplete) -> None:
        if self.cancelled:
            return
        self._receiver.importFinished.emit(event.roll_id, event.count, event.path)


class _ImportTask(QRunnable):
    """QRunnable running one `LibraryVM.import_folder` call."""

    def __init__(
        self,
        *,
        vm: Any,
        options: ImportOptions,
        sink: _SignalProgressSink,
        receiver: ImportSignals,
    ) -> None:
        super().__init__()
        self._vm = vm
        self._options = options
        self._sink = sink
        self._receiver = receiver

    def run(self) -> None:  # type: ignore[override]
        try:
            self._vm.import_folder(self._options, self._sink)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.error("Import task failed: {}", ex)
            if not self._sink.cancelled:
                self._receiver.importFailed.emit(str(ex))


class ImportHandle:
    """Returned by `ImportTaskRunner.start`; cancelling only stops event delivery.

    Files already copied and photos already stored are kept.
    """

    def __init__(self, sink: _SignalProgressSink) -> None:
        self._sink = sink

    def cancel(self) -> None:
        self._sink.cancel()

    @property
    def cancelled(self) -> bool:
        return self._sink.cancelled


class ImportTaskRunner:
    """Dispatches imports to a thread pool."""

    def __init__(
        self, *, vm: Any, receiver: ImportSignals, pool: QThreadPool | None = None
    ) -> None:
        self._vm = vm
        self._receiver = receiver
        self._pool = pool or QThreadPool.globalInstance()

    def create_task(self, options: ImportOptions) -> tuple[QRunnable, ImportHandle]:
        sink = _SignalProgressSink(self._receiver)
        task = _ImportTask(vm=self._vm, options=options, sink=sink, receiver=self._receiver)
        return task, ImportHandle(sink)

    def start(self, options: ImportOptions) -> ImportHandle:
        """Queue an import of `options` and return its handle."""
        task, handle = self.create_task(options)
        self._pool.start(task)
        return handle
