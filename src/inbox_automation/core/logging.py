"""Logging configuration with structlog and rolling file handlers.

Provides structured logging with:
- Console output (JSON or human-readable) through structlog
- Rolling file logs for debugging and auditing
- Quieted third-party HTTP loggers
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

DEFAULT_LOG_DIR = Path("logs")
DEFAULT_LOG_FILE = "inbox_automation.log"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    log_dir: Path | None = None,
    log_file: str = DEFAULT_LOG_FILE,
    file_logging: bool = False,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> None:
    """Configure structlog and the standard logging backend.

    Args:
        log_level: The logging level to use.
        json_format: Whether to render log events as JSON.
        log_dir: Directory for log files (default: ./logs).
        log_file: Name of log file.
        file_logging: Also write events to a rotating log file.
        max_bytes: Max bytes per log file before rotation (default: 10MB).
        backup_count: Number of backup files to keep (default: 5).
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger("inbox_automation")
    root.setLevel(level)
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console_handler)

    if file_logging:
        log_path = (log_dir or DEFAULT_LOG_DIR) / log_file
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=str(log_path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(file_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.WARNING)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    renderer: structlog.types.Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

