import logging
import os
import sys
from logging.handlers import RotatingFileHandler

_configured = False


def setup_logging():
    global _configured
    if _configured:
        return

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_to_stdout = os.getenv("LOG_TO_STDOUT", "true").lower() == "true"
    log_to_file = os.getenv("LOG_TO_FILE", "false").lower() == "true"
    log_file = os.getenv("LOG_FILE", "data/amw.log")
    log_max_bytes = int(os.getenv("LOG_MAX_BYTES", str(1024 * 1024)))
    log_backups = int(os.getenv("LOG_BACKUPS", "3"))

    level = getattr(logging, log_level, logging.INFO)
    root = logging.getLogger("amw")
    root.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(threadName)s %(name)s] %(message)s"
    )

    if not root.handlers:
        if log_to_stdout:
            ch = logging.StreamHandler(sys.stdout)
            ch.setLevel(level)
            ch.setFormatter(formatter)
            root.addHandler(ch)

        if log_to_file:
            try:
                os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
                fh = RotatingFileHandler(
                    log_file,
                    maxBytes=log_max_bytes,
                    backupCount=log_backups,
                    encoding="utf-8",
                )
                fh.setLevel(level)
                fh.setFormatter(formatter)
                root.addHandler(fh)
            except OSError as e:
                root.warning("Failed to initialize file logging: %s", e)

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)
