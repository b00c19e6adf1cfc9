"""Logging configuration using structlog."""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import structlog

from theme_deployer.config import settings


def _build_handlers() -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    # An empty log directory disables the file handler
    if settings.log_directory:
        project_root = Path(__file__).resolve().parents[2]
        log_dir = Path(settings.log_directory)
        if not log_dir.is_absolute():
            log_dir = project_root / log_dir
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(log_dir / settings.log_file_name, encoding="utf-8")
        )

    return handlers


def configure_logging() -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.log_level),
        handlers=_build_handlers(),
        force=True,
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=settings.is_development))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def deployment_context(deployment_id: str, **extra: Any) -> Iterator[None]:
    """Bind a deployment id to every log line emitted inside the block.

    Context variables are task-local, so concurrent pipeline runs never
    see each other's bindings.
    """
    with structlog.contextvars.bound_contextvars(deployment_id=deployment_id, **extra):
        yield
