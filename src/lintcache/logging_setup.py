# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging for cached analysis runs.

Library modules only create loggers (logging.getLogger(__name__)).
run_cached_analysis() calls setup_logging() when given a log directory;
embedding applications may call it themselves instead.

Each run summary carries machine-readable counters in extra_fields:

    logger.info("Analyzed 3 documents", extra={"extra_fields": {"analyzed": 3}})

StructuredFormatter merges those counters into the JSON record so log files
can be aggregated without parsing messages.

Handler ownership:
- setup_logging() tags the handlers it installs and, when called again,
  replaces only those. Handlers installed by the host application stay.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_LOG_DIRNAME = ".lintcache_logs"

# Attribute marking handlers owned by setup_logging()
_OWNED_ATTR = "_lintcache_owned"


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message.

    Exception tracebacks go under "exception"; a dict passed as
    extra={"extra_fields": {...}} is merged into the top level. Reserved keys
    are never overwritten by extra fields.
    """

    RESERVED_KEYS = ("timestamp", "level", "logger", "message", "exception")

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            for key, value in extra_fields.items():
                if key not in self.RESERVED_KEYS:
                    log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
) -> Path:
    """Route lintcache logs to a dated JSON log file.

    Args:
        log_dir: Directory for log files (default: ./.lintcache_logs).
        log_level: Minimum level recorded.
        console_output: Also write human-readable lines to stderr.

    Returns:
        Path of the JSON log file, lintcache_YYYYMMDD.log.
    """
    if log_dir is None:
        log_dir = Path.cwd() / DEFAULT_LOG_DIRNAME
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    _remove_owned_handlers(root_logger)

    log_file = log_dir / f"lintcache_{datetime.now(timezone.utc).strftime('%Y%m%d')}.log"
    handlers: List[logging.Handler] = []

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(StructuredFormatter())
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handlers.append(console_handler)

    for handler in handlers:
        handler.setLevel(log_level)
        setattr(handler, _OWNED_ATTR, True)
        root_logger.addHandler(handler)

    logging.getLogger(__name__).debug(f"Logging to {log_file}")
    return log_file


def _remove_owned_handlers(root_logger: logging.Logger) -> None:
    """Detach and close handlers installed by an earlier setup_logging()."""
    for handler in list(root_logger.handlers):
        if getattr(handler, _OWNED_ATTR, False):
            root_logger.removeHandler(handler)
            handler.close()
