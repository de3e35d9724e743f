"""
Logging configuration for NoteForge.
Console output plus rotating file logs with 10 MB max size.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_LOG_DIR = Path(__file__).parent.parent.parent / "logs"

MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries whose INFO output drowns the pipeline logs
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "urllib3": logging.WARNING,
    "multipart": logging.WARNING,
    "PIL": logging.INFO,
    "PyPDF2": logging.ERROR,
}


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, DATE_FORMAT)


def get_file_handler(path: Path, level: int = logging.DEBUG) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_formatter())
    return handler


def get_console_handler(level: int = logging.INFO) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(_formatter())
    return handler


def setup_logging(
    app_name: str = "noteforge",
    log_level: str = "",
    environment: str = "development",
    enable_console: bool = True,
    enable_file: bool = True,
    log_dir: str | Path | None = None,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        app_name: Used for log file naming
        log_level: Minimum console level. Empty picks DEBUG in development
                   and WARNING in production.
        environment: development or production
        enable_console: Whether to log to stdout
        enable_file: Whether to write <app_name>.log and <app_name>_error.log
        log_dir: Directory for log files (defaults to ./logs next to the app)

    Returns:
        Configured root logger
    """
    if not log_level:
        log_level = "WARNING" if environment == "production" else "DEBUG"
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter
    root_logger.handlers.clear()

    if enable_console:
        root_logger.addHandler(get_console_handler(numeric_level))

    if enable_file:
        directory = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
        root_logger.addHandler(get_file_handler(directory / f"{app_name}.log", logging.DEBUG))
        root_logger.addHandler(get_file_handler(directory / f"{app_name}_error.log", logging.ERROR))

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module (typically ``__name__``)."""
    return logging.getLogger(name)


class RequestLogger:
    """Writes one line per HTTP request, levelled by status code."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        client_ip: str | None = None,
        content_length: str | None = None,
    ):
        extra_info = []
        if client_ip:
            extra_info.append(f"ip={client_ip}")
        if content_length:
            extra_info.append(f"bytes_in={content_length}")

        message = f"{method} {path} -> {status_code} ({duration_ms:.2f}ms) {' | '.join(extra_info)}"
        if status_code >= 500:
            self.logger.error(message)
        elif status_code >= 400:
            self.logger.warning(message)
        else:
            self.logger.info(message)
