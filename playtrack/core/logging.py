"""Structlog configuration with console and file output.

Every event passes through one shared processor chain, whether it comes
from structlog or from a stdlib logger (uvicorn, cassandra, httpx). The
chain injects the viewing/request context, masks credentials and trims
raw playback percentages before an event reaches one of the renderers:

- console (colored key-value, or JSON when ``log_format`` is ``json``)
- rotating JSON files, all events plus errors only (``log_to_file``)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

from playtrack.core.context import get_context


if TYPE_CHECKING:
    from playtrack.config.settings import Settings


# Show the first and last two characters of longer secrets
_MIN_MASK_LENGTH = 4

_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credentials",
    }
)

_PERCENTAGE_DECIMALS = 2

_QUIET_LOGGERS = ("uvicorn.access", "cassandra", "httpx", "httpcore")


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add tracking context (request_id, user_id, content_id, viewing_id).

    Explicit keyword arguments on the log call win over the context.
    """
    for key, value in get_context().items():
        event_dict.setdefault(key, value)
    return event_dict


def filter_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask tokens, passwords and other sensitive fields in log events."""

    def mask_value(key: str, value: Any) -> Any:
        if isinstance(value, str) and any(
            sensitive in key.lower() for sensitive in _SENSITIVE_KEYS
        ):
            if len(value) > _MIN_MASK_LENGTH:
                return value[:2] + "*" * (len(value) - _MIN_MASK_LENGTH) + value[-2:]
            return "***"
        if isinstance(value, dict):
            return {k: mask_value(k, v) for k, v in value.items()}
        return value

    return {k: mask_value(k, v) for k, v in event_dict.items()}


def round_percentages(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Round float ``*percentage`` fields computed from player samples."""
    for key, value in event_dict.items():
        if key.endswith("percentage") and isinstance(value, float):
            event_dict[key] = round(value, _PERCENTAGE_DECIMALS)
    return event_dict


def setup_file_handler(
    log_dir: Path,
    log_file: str,
    max_bytes: int,
    backup_count: int,
    log_level: str,
) -> RotatingFileHandler:
    """Setup rotating file handler for logging.

    Args:
        log_dir: Directory to store log files (created when missing).
        log_file: Name of the log file.
        max_bytes: Maximum size of each log file in bytes.
        backup_count: Number of backup files to keep.
        log_level: Logging level.

    Returns:
        Configured RotatingFileHandler.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=str(log_dir / log_file),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(_level(log_level))
    return handler


def _level(name: str) -> int:
    return logging.getLevelName(name.upper())


def _shared_processors(settings: "Settings") -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        filter_sensitive_data,
        round_percentages,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )
    return processors


def _console_renderer(settings: "Settings") -> Processor:
    if settings.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_structlog(
    settings: "Settings",
    log_dir: Path | str | None = None,
) -> None:
    """Configure structlog with console and (optionally) file output.

    Args:
        settings: Application settings.
        log_dir: Directory for log files. Defaults to ``settings.log_dir``.
    """
    shared = _shared_processors(settings)

    def formatter(renderer: Processor) -> structlog.stdlib.ProcessorFormatter:
        return structlog.stdlib.ProcessorFormatter(
            processor=renderer, foreign_pre_chain=shared
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(_level(settings.log_level))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(_level(settings.log_level))
    console_handler.setFormatter(formatter(_console_renderer(settings)))
    root_logger.addHandler(console_handler)

    if settings.log_to_file:
        files = (
            (f"{settings.app_name}.log", settings.log_level),
            (f"{settings.app_name}.error.log", "ERROR"),
        )
        for log_file, level in files:
            file_handler = setup_file_handler(
                log_dir=Path(log_dir or settings.log_dir),
                log_file=log_file,
                max_bytes=settings.log_file_max_bytes,
                backup_count=settings.log_file_backup_count,
                log_level=level,
            )
            file_handler.setFormatter(formatter(structlog.processors.JSONRenderer()))
            root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
