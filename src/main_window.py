from PyQt6.QtWidgets import (
    QMainWindow,
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QPlainTextEdit,
    QPushButton,
    QInputDialog,
    QMessageBox,
    QStyle,
)
from PyQt6.QtGui import QFontDatabase
import logging

from db.errors import DatabaseOperationError, OperationCancelled, UnsupportedEngineError
from db.executor import execute_query
from db.metadata import list_databases, test_connection
from ui.connection_form import ConnectionForm
from utils.formatting import (
    format_connection_failure,
    format_connection_report,
    format_database_list,
    format_database_list_failure,
    format_query_failure,
    format_query_result,
    format_unsupported_engine,
)
from utils.settings import load_app_state, load_settings, save_app_state
from utils.worker import TaskWorker

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "SELECT version();"


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Database Connection Manager")
        self.resize(750, 850)

        self.settings = load_settings()
        self._worker = None
        self._closing = False
        self._last_query = DEFAULT_QUERY

        self._init_ui()
        self._restore_app_state()

    def _init_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)

        self.form = ConnectionForm()
        self.form.engine_changed.connect(lambda _: self.statusBar().clearMessage())
        layout.addWidget(self.form)

        buttons = QHBoxLayout()
        self.load_btn = QPushButton("Load Databases")
        self.load_btn.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_BrowserReload))
        self.load_btn.clicked.connect(self.on_load_databases)
        buttons.addWidget(self.load_btn)

        self.test_btn = QPushButton("Test Connection")
        self.test_btn.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DialogYesButton))
        self.test_btn.clicked.connect(self.on_test_connection)
        buttons.addWidget(self.test_btn)

        self.query_btn = QPushButton("Execute Query")
        self.query_btn.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_MediaPlay))
        self.query_btn.clicked.connect(self.on_execute_query)
        buttons.addWidget(self.query_btn)

        self.cancel_btn = QPushButton("Cancel")
        self.cancel_btn.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_MediaStop))
        self.cancel_btn.setEnabled(False)
        self.cancel_btn.clicked.connect(self.on_cancel)
        buttons.addWidget(self.cancel_btn)

        clear_btn = QPushButton("Clear Results")
        clear_btn.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DialogResetButton))
        clear_btn.clicked.connect(lambda: self.result_area.clear())
        buttons.addWidget(clear_btn)
        layout.addLayout(buttons)

        self.result_area = QPlainTextEdit()
        self.result_area.setReadOnly(True)
        self.result_area.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.result_area.setFont(QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont))
        layout.addWidget(self.result_area, 1)

        self.statusBar().showMessage("Ready", 2000)

    def _profile(self, require_database: bool):
        """Read the form; shows a warning and returns None when the input is incomplete."""
        try:
            return self.form.get_profile(require_database=require_database)
        except ValueError as e:
            QMessageBox.warning(self, "Missing Information", str(e))
            return None

    def _start(self, fn, *args, on_results, on_error, status: str, cancellable: bool = False, **kwargs):
        """Run fn in a TaskWorker; only one operation runs at a time."""
        if self._worker is not None:
            QMessageBox.information(self, "Running", "An operation is already running.")
            return
        kwargs.setdefault("connect_timeout", self.settings["connect_timeout"])
        kwargs.setdefault("odbc_driver", self.settings["odbc_driver"])
        worker = TaskWorker(fn, *args, cancellable=cancellable, **kwargs)
        self._worker = worker

        def _on_error(exc):
            if isinstance(exc, OperationCancelled):
                self.statusBar().showMessage("Operation canceled", 5000)
            elif isinstance(exc, UnsupportedEngineError):
                self.result_area.setPlainText(format_unsupported_engine())
            elif isinstance(exc, DatabaseOperationError):
                on_error(exc)
            else:
                logger.error("Unexpected failure in %s", getattr(fn, "__name__", fn), exc_info=exc)
                QMessageBox.critical(self, "Error", str(exc))

        def _on_finished():
            self._worker = None
            self._set_busy(False)
            worker.wait()
            worker.deleteLater()
            if self._closing:
                self.close()

        worker.results_ready.connect(on_results)
        worker.error.connect(_on_error)
        worker.finished_signal.connect(_on_finished)
        self._set_busy(True, cancellable)
        self.statusBar().showMessage(status, 0)
        worker.start()

    def _set_busy(self, busy: bool, cancellable: bool = False):
        for btn in (self.load_btn, self.test_btn, self.query_btn):
            btn.setEnabled(not busy)
        self.cancel_btn.setEnabled(busy and cancellable)
        self.form.setEnabled(not busy)

    def on_load_databases(self):
        profile = self._profile(require_database=False)
        if profile is None:
            return
        self.form.clear_databases()

        def on_results(names):
            self.form.set_databases(names)
            self.result_area.setPlainText(format_database_list(names))
            if names:
                self.statusBar().showMessage(f"✅ Found {len(names)} database(s)", 5000)
            else:
                self.statusBar().showMessage("⚠️ No user databases found", 5000)

        def on_error(exc):
            self.result_area.setPlainText(format_database_list_failure(exc.error))
            self.statusBar().showMessage("❌ Failed to load databases. Check your credentials.", 5000)

        self._start(list_databases, profile, on_results=on_results, on_error=on_error,
                    status="⏳ Loading databases...")

    def on_test_connection(self):
        profile = self._profile(require_database=True)
        if profile is None:
            return

        def on_results(report):
            self.result_area.setPlainText(format_connection_report(report))
            self.statusBar().showMessage("Connection successful", 5000)

        def on_error(exc):
            self.result_area.setPlainText(format_connection_failure(exc.error))
            self.statusBar().showMessage("Connection failed", 5000)

        self._start(test_connection, profile, on_results=on_results, on_error=on_error,
                    status="⏳ Testing connection...")

    def on_execute_query(self):
        profile = self._profile(require_database=True)
        if profile is None:
            return
        sql, ok = QInputDialog.getMultiLineText(self, "Execute SQL Query", "Enter your SQL query:", self._last_query)
        if not ok or not sql.strip():
            return
        self._last_query = sql

        def on_results(result):
            self.result_area.setPlainText(format_query_result(result))
            self.statusBar().showMessage(f"Query finished: {result.row_count} rows in {result.elapsed:.3f}s", 5000)

        def on_error(exc):
            self.result_area.setPlainText(format_query_failure(exc.error))
            self.statusBar().showMessage("Query error", 5000)

        self._start(execute_query, profile, sql, on_results=on_results, on_error=on_error,
                    status="⏳ Running query...", cancellable=True,
                    row_limit=self.settings["row_limit"])

    def on_cancel(self):
        if self._worker is not None:
            self._worker.stop()
            self.statusBar().showMessage("Cancel requested...", 5000)

    def _restore_app_state(self):
        """Restore the last engine, host, port, username and query."""
        state = load_app_state()
        self.form.set_state(state)
        if state.get("last_query"):
            self._last_query = state["last_query"]

    def closeEvent(self, event):
        """Save the form state (never the password) on exit.

        While an operation is running the close is deferred until the worker finishes.
        """
        state = self.form.get_state()
        state["last_query"] = self._last_query
        try:
            save_app_state(state)
        except OSError:
            logger.warning("Failed to save app state", exc_info=True)
        if self._worker is not None:
            # a connect attempt can block for the whole connect timeout; close once the worker is done
            self._worker.stop()
            self._closing = True
            self.centralWidget().setEnabled(False)
            self.statusBar().showMessage("Closing when the running operation finishes...", 0)
            event.ignore()
            return
        super().closeEvent(event)
