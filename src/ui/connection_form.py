from PyQt6.QtWidgets import (
    QWidget,
    QFormLayout,
    QHBoxLayout,
    QLineEdit,
    QComboBox,
    QLabel,
    QPushButton,
    QInputDialog,
    QMessageBox,
    QStyle,
)
from PyQt6.QtCore import Qt, pyqtSignal
from typing import List

from db.connection import (
    ConnectionProfile,
    DEFAULT_PORTS,
    POSTGRESQL,
    SUPPORTED_ENGINES,
    parse_jdbc_url,
    preview_connection_url,
)


class ConnectionForm(QWidget):
    """Form for the connection inputs: engine, host, port, credentials and target database."""

    # emitted when the engine changes; loaded databases no longer apply
    engine_changed = pyqtSignal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        form = QFormLayout(self)

        self.engine_combo = QComboBox()
        self.engine_combo.addItems(list(SUPPORTED_ENGINES))
        form.addRow("Database type:", self.engine_combo)

        self.host_edit = QLineEdit("localhost")
        form.addRow("Host:", self.host_edit)

        self.port_edit = QLineEdit(DEFAULT_PORTS[POSTGRESQL])
        form.addRow("Port:", self.port_edit)

        self.user_edit = QLineEdit()
        form.addRow("Username:", self.user_edit)

        self.password_edit = QLineEdit()
        self.password_edit.setEchoMode(QLineEdit.EchoMode.Password)
        form.addRow("Password:", self.password_edit)

        self.database_combo = QComboBox()
        self.database_combo.setEnabled(False)
        self.database_combo.setPlaceholderText("First load databases...")
        form.addRow("Database:", self.database_combo)

        url_row = QWidget()
        url_box = QHBoxLayout(url_row)
        url_box.setContentsMargins(0, 0, 0, 0)
        self.url_preview = QLabel()
        self.url_preview.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        url_box.addWidget(self.url_preview, 1)
        paste_btn = QPushButton("Paste JDBC URL")
        paste_btn.setToolTip("Fill the fields from a JDBC URL")
        paste_btn.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DialogOpenButton))
        paste_btn.clicked.connect(self._on_paste_jdbc)
        url_box.addWidget(paste_btn)
        form.addRow("Connection URL:", url_row)

        self.engine_combo.currentTextChanged.connect(self._on_engine_changed)
        self.host_edit.textChanged.connect(self.update_url_preview)
        self.port_edit.textChanged.connect(self.update_url_preview)
        self.database_combo.currentTextChanged.connect(self.update_url_preview)
        self.update_url_preview()

    def _on_engine_changed(self, engine: str):
        self.port_edit.setText(DEFAULT_PORTS.get(engine, ""))
        self.clear_databases()
        self.update_url_preview()
        self.engine_changed.emit(engine)

    def _on_paste_jdbc(self):
        txt, ok = QInputDialog.getText(self, "Paste JDBC URL", "JDBC URL:")
        txt = txt.strip()
        if not ok or not txt:
            return
        try:
            parsed = parse_jdbc_url(txt)
        except ValueError as e:
            QMessageBox.critical(self, "Parse error", f"Failed to parse JDBC URL: {e}")
            return
        # setting the engine resets port and databases, so fill the rest afterwards
        self.engine_combo.setCurrentText(parsed["engine"])
        if parsed.get("host"):
            self.host_edit.setText(parsed["host"])
        self.port_edit.setText(str(parsed["port"]))
        if parsed.get("username"):
            self.user_edit.setText(parsed["username"])
        if parsed.get("password"):
            self.password_edit.setText(parsed["password"])
        if parsed.get("database"):
            self.set_databases([parsed["database"]])

    def update_url_preview(self, *_):
        self.url_preview.setText(preview_connection_url(
            self.engine_combo.currentText(),
            self.host_edit.text().strip(),
            self.port_edit.text().strip(),
            self.database_combo.currentText(),
        ))

    def clear_databases(self):
        self.database_combo.clear()
        self.database_combo.setEnabled(False)
        self.database_combo.setPlaceholderText("First load databases...")

    def set_databases(self, names: List[str]):
        self.database_combo.clear()
        self.database_combo.addItems(names)
        self.database_combo.setEnabled(bool(names))
        self.database_combo.setPlaceholderText("Select a database...")
        self.database_combo.setCurrentIndex(0 if names else -1)

    def get_profile(self, require_database: bool = False) -> ConnectionProfile:
        """Return the form values as a ConnectionProfile.

        Raises ValueError when host, port or username is missing, the port is not a valid
        port number, or require_database is set and no database is selected.
        """
        host = self.host_edit.text().strip()
        port = self.port_edit.text().strip()
        username = self.user_edit.text().strip()
        if not host or not port or not username:
            raise ValueError("Please fill in Host, Port and Username!")
        try:
            port_num = int(port)
        except ValueError:
            raise ValueError(f"Port must be an integer, got: {port}") from None
        if port_num <= 0 or port_num > 65535:
            raise ValueError(f"Port out of valid range: {port_num}")

        database = self.database_combo.currentText().strip() or None
        if require_database and not database:
            raise ValueError("Please select a database first!")

        return ConnectionProfile(
            engine=self.engine_combo.currentText(),
            host=host,
            port=port,
            username=username,
            password=self.password_edit.text(),
            database=database,
        )

    def get_state(self) -> dict:
        """Fields remembered between sessions (no password)."""
        return {
            "engine": self.engine_combo.currentText(),
            "host": self.host_edit.text().strip(),
            "port": self.port_edit.text().strip(),
            "username": self.user_edit.text().strip(),
        }

    def set_state(self, state: dict):
        engine = state.get("engine")
        if engine in SUPPORTED_ENGINES:
            self.engine_combo.setCurrentText(engine)
        if state.get("host"):
            self.host_edit.setText(state["host"])
        if state.get("port"):
            self.port_edit.setText(state["port"])
        if state.get("username"):
            self.user_edit.setText(state["username"])
