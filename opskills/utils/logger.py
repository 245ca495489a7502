"""
Logger utility for opskills.

configure_logging() attaches handlers to the "opskills" logger only:
- stderr (console): WARNING, or DEBUG when debug is set
- opskills.log: main log with 5MB rotation, keeps 3 backups
- opskills.errors.log: errors only, 2MB rotation, keeps 2 backups
- opskills.json: structured JSON, 5MB rotation, keeps 2 backups

File handlers are added only when a log directory is given or OPSKILLS_LOG_DIR
is set. stdout is never used: it carries protocol envelopes when serving.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER = "opskills"


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra") and record.extra:
            log_data["extra"] = record.extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes", "on")


def get_logger(name: str) -> logging.Logger:
    """Logger under the opskills namespace."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(
    debug: bool = False,
    log_dir: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure the opskills logger. Safe to call more than once.

    Args:
        debug: Log DEBUG to stderr. OPSKILLS_DEBUG=true has the same effect.
        log_dir: Directory for rotating log files. Defaults to OPSKILLS_LOG_DIR.

    Returns:
        The configured "opskills" logger
    """
    debug = debug or _env_flag("OPSKILLS_DEBUG")
    if log_dir is None and os.environ.get("OPSKILLS_LOG_DIR"):
        log_dir = os.environ["OPSKILLS_LOG_DIR"]

    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    text_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console handler (stderr)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    console_handler.setFormatter(text_formatter)
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        main_handler = RotatingFileHandler(
            log_path / "opskills.log", maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        main_handler.setLevel(logging.DEBUG)
        main_handler.setFormatter(text_formatter)
        logger.addHandler(main_handler)

        error_handler = RotatingFileHandler(
            log_path / "opskills.errors.log", maxBytes=2 * 1024 * 1024, backupCount=2, encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(text_formatter)
        logger.addHandler(error_handler)

        json_handler = RotatingFileHandler(
            log_path / "opskills.json", maxBytes=5 * 1024 * 1024, backupCount=2, encoding="utf-8"
        )
        json_handler.setLevel(logging.INFO)
        json_handler.setFormatter(JsonFormatter())
        logger.addHandler(json_handler)

    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger
