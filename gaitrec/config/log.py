from __future__ import annotations
import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    """Configure root logging for entry points and return the package logger."""
    if isinstance(level, str):
        level = getattr(logging, level.strip().upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    return logging.getLogger("gaitrec")
