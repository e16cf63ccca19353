# Rev 0.2.0

# scheduleZ – logging setup (Rev 0.2.0)
from __future__ import annotations
import logging, os, sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QtMsgType, qInstallMessageHandler

from .paths import APP_NAME, LOGS_DIR

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 5_000_000
LOG_BACKUPS = 7

_QT_LEVELS = {
    QtMsgType.QtDebugMsg: logging.DEBUG,
    QtMsgType.QtInfoMsg: logging.INFO,
    QtMsgType.QtWarningMsg: logging.WARNING,
    QtMsgType.QtCriticalMsg: logging.ERROR,
    QtMsgType.QtFatalMsg: logging.CRITICAL,
}


def _qt_handler(msg_type, context, message):
    logging.getLogger("qt").log(_QT_LEVELS.get(msg_type, logging.INFO), message)


def _has_file_handler(root: logging.Logger, logfile: Path) -> bool:
    return any(
        isinstance(h, RotatingFileHandler) and Path(h.baseFilename).resolve() == logfile.resolve()
        for h in root.handlers
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"schedule_helper.{name}")


def setup_logging(log_dir: Optional[Path] = None) -> Path:
    """Root logging to a rotating file under `log_dir` plus stdout. Repeat calls for the same file only reset the level."""
    # Level via env (DEBUG/INFO/WARNING/ERROR), default INFO
    level_name = os.environ.get("SCHEDULEZ_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    log_dir = log_dir or LOGS_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    logfile = log_dir / f"{APP_NAME}.log"

    root = logging.getLogger()
    root.setLevel(level)
    if _has_file_handler(root, logfile):
        return logfile

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    for handler in (
        RotatingFileHandler(logfile, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"),
        logging.StreamHandler(sys.stdout),
    ):
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root.addHandler(handler)

    # Uncaught exceptions → log as ERROR
    def _excepthook(exctype, value, tb):
        logging.getLogger("unhandled").exception("Uncaught exception", exc_info=(exctype, value, tb))
        sys.__excepthook__(exctype, value, tb)
    sys.excepthook = _excepthook

    qInstallMessageHandler(_qt_handler)

    logging.getLogger(__name__).info("Logging initialized at %s; file: %s", level_name, logfile)
    return logfile
