"""
utils/logger.py
---------------
Logging setup shared by the webhook service and the receipt tool.
Creates daily log files, auto-cleans older ones, and provides the
per-invocation ExecutionTrace that ends up in the audit sheet.
"""

import logging
import os
import datetime
from glob import glob
from typing import List

# --- Configuration ---
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_RETENTION_DAYS = int(os.getenv("LOG_RETENTION_DAYS", "14"))

# Example: set ENV=prod to disable console logging
ENV = os.getenv("ENV", "dev").lower()  # "dev" or "prod"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def _cleanup_old_logs():
    """Remove log files older than retention period."""
    cutoff = datetime.datetime.now() - datetime.timedelta(days=LOG_RETENTION_DAYS)
    for path in glob(os.path.join(LOG_DIR, "*.log")):
        try:
            timestamp_str = os.path.basename(path).split("_")[-1].replace(".log", "")
            if len(timestamp_str) == 8:
                date = datetime.datetime.strptime(timestamp_str, "%Y%m%d")
                if date < cutoff:
                    os.remove(path)
        except (ValueError, OSError):
            continue


def get_logger(name: str) -> logging.Logger:
    """
    Returns a configured logger for the given module name.
    Logs to logs/<name>_YYYYMMDD.log and auto-cleans older logs.
    Console output is disabled when ENV=prod.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        os.makedirs(LOG_DIR, exist_ok=True)
        logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
        log_path = os.path.join(LOG_DIR, f"{name}_{datetime.datetime.now():%Y%m%d}.log")
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s"))
        logger.addHandler(handler)

        if ENV != "prod":
            console = logging.StreamHandler()
            console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
            logger.addHandler(console)

        _cleanup_old_logs()

    return logger


class ExecutionTrace:
    """
    Collects the human-readable lines of one webhook invocation.

    Every line is mirrored to the given logger, so the trace written to the
    audit sheet and the local log files always agree.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.lines: List[str] = []

    def info(self, msg: str):
        self.lines.append(msg)
        self.logger.info(msg)

    def warn(self, msg: str):
        self.lines.append(f"WARN: {msg}")
        self.logger.warning(msg)

    def error(self, msg: str):
        self.lines.append(f"ERROR: {msg}")
        self.logger.error(msg)

    def text(self) -> str:
        return "\n".join(self.lines)
