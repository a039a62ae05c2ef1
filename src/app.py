from PyQt6.QtWidgets import QApplication
import sys
import logging
from logging.handlers import RotatingFileHandler

from main_window import MainWindow
from utils.settings import CONFIG_DIR

LOG_FORMAT = '%(asctime)s %(levelname)-8s %(name)-20s: %(message)s'


def _configure_logging():
    """Log INFO+ to the console and DEBUG+ to a rotating file under ~/.dbconnect/logs."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, force=True)
    logging.getLogger().setLevel(logging.DEBUG)
    for handler in logging.getLogger().handlers:
        handler.setLevel(logging.INFO)

    log_dir = CONFIG_DIR / 'logs'
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(str(log_dir / 'dbconnect.log'), maxBytes=5 * 1024 * 1024,
                                      backupCount=3, encoding='utf-8')
    except OSError:
        # console logging still works without the file
        logging.getLogger(__name__).exception('Failed to configure file logger')
        return
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)


def main():
    _configure_logging()
    app = QApplication(sys.argv)
    app.setApplicationName("Database Connection Manager")
    window = MainWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
