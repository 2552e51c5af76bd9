"""Logging setup for toolwire."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from pathlib import Path

from toolwire.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Simple JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        # format message first to handle args
        message = record.getMessage()

        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": message,
            "path": record.pathname,
            "line": record.lineno,
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


def setup_logging(config: LoggingConfig, logger_name: str = "toolwire") -> logging.Logger:
    """Configure the package logger.

    Args:
        config: Logging configuration
        logger_name: Name of logger to configure

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Clear existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = getattr(logging, config.level.upper(), logging.WARNING)
    logger.setLevel(level)

    # stderr keeps stdout clean for answers
    handler = logging.StreamHandler()
    handler.setLevel(level)
    if config.format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)

    # File handler (JSONL)
    if config.file:
        log_file = Path(config.file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(JSONFormatter())
        fh.setLevel(level)
        logger.addHandler(fh)

    logger.propagate = False
    return logger
