"""
Structured logging configuration for the Video Snipper application.

This module provides logging setup with structured output,
correlation ID support, and environment-specific configuration.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Dict, Optional
from pathlib import Path

from video_snipper.utils.error_utils import peek_correlation_id, get_session_id, get_request_id

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
}


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter that outputs structured JSON logs.

    Includes correlation ID, session context, and additional metadata
    for better log analysis and monitoring.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = peek_correlation_id()
        if correlation_id:
            log_entry["correlation_id"] = correlation_id

        session_id = get_session_id()
        if session_id:
            log_entry["session_id"] = session_id

        request_id = get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra:
            extra_fields = {}
            for key, value in record.__dict__.items():
                if key in _RESERVED_ATTRS or value is None:
                    continue
                try:
                    # Ensure the value is JSON serializable
                    json.dumps(value)
                    extra_fields[key] = value
                except (TypeError, ValueError):
                    extra_fields[key] = str(value)

            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(log_entry, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Console formatter with colors for different log levels.

    Provides human-readable output for development environments.
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors and correlation context."""
        level_color = self.COLORS.get(record.levelname, '')
        reset_color = self.COLORS['RESET']

        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')
        parts = [
            timestamp,
            f"{level_color}{record.levelname:8}{reset_color}",
            record.name,
            record.getMessage(),
        ]

        context_parts = []
        correlation_id = peek_correlation_id()
        if correlation_id:
            context_parts.append(f"corr_id={correlation_id[:8]}")
        session_id = get_session_id()
        if session_id:
            context_parts.append(f"session={session_id[:8]}")

        if context_parts:
            parts.append(f"[{', '.join(context_parts)}]")

        if record.levelno >= logging.ERROR:
            parts.append(f"({record.filename}:{record.lineno})")

        log_line = " | ".join(parts)

        if record.exc_info:
            log_line += "\n" + self.formatException(record.exc_info)

        return log_line


def setup_logging(
    environment: str = "development",
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logs: Optional[bool] = None,
    enable_console_logs: bool = True,
    logger_levels: Optional[Dict[str, str]] = None,
) -> None:
    """
    Set up structured logging for the application.

    Args:
        environment: Environment name (development, staging, production)
        log_level: Minimum log level to capture
        log_file: Optional file path for log output
        enable_json_logs: Whether to use JSON formatting (auto-detected if None)
        enable_console_logs: Whether to log to console
        logger_levels: Per-logger level overrides
    """
    if enable_json_logs is None:
        enable_json_logs = environment in ("staging", "production")

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handlers = []

    if enable_console_logs:
        console_handler = logging.StreamHandler(sys.stdout)
        if enable_json_logs:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(ColoredConsoleFormatter())
        console_handler.setLevel(numeric_level)
        handlers.append(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        file_handler.setLevel(numeric_level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=numeric_level,
        handlers=handlers,
        force=True
    )

    levels = {"video_snipper": log_level.upper()}
    levels.update(logger_levels or {})
    for logger_name, level in levels.items():
        logging.getLogger(logger_name).setLevel(getattr(logging, level.upper(), numeric_level))

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "environment": environment,
            "log_level": log_level,
            "json_logs": enable_json_logs,
            "log_file": log_file,
        }
    )


def configure_logging_from_settings(settings) -> None:
    """Configure logging from the application settings object."""
    setup_logging(
        environment=settings.ENVIRONMENT,
        log_level=settings.logging.level,
        log_file=settings.logging.file,
        enable_json_logs=settings.json_logs,
        enable_console_logs=settings.logging.console,
        logger_levels=settings.logging.logger_levels,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (typically __name__)
    """
    return logging.getLogger(name)
