from PyQt6.QtCore import QThread, pyqtSignal
import threading
import logging

logger = logging.getLogger(__name__)


class TaskWorker(QThread):
    """Run one blocking database operation in a background thread and emit its outcome.

    When cancellable is True the operation receives ``stop_event`` (a threading.Event)
    which stop() sets.
    """

    results_ready = pyqtSignal(object)
    error = pyqtSignal(object)  # the exception raised by the operation
    finished_signal = pyqtSignal()

    def __init__(self, fn, *args, cancellable: bool = False, parent=None, **kwargs):
        super().__init__(parent)
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self._stop_event = threading.Event()
        if cancellable:
            self.kwargs["stop_event"] = self._stop_event

    def run(self):
        try:
            result = self.fn(*self.args, **self.kwargs)
            self.results_ready.emit(result)
        except Exception as e:
            logger.debug("Background operation %s failed", getattr(self.fn, "__name__", self.fn), exc_info=True)
            self.error.emit(e)
        finally:
            self.finished_signal.emit()

    def stop(self):
        self._stop_event.set()
