"""Log sinks for the relay server.

Records go to three files under ``LOG_DIR`` plus the console outside
production:

- ``error.log``: ERROR and above, one JSON object per line
- ``combined.log``: everything, one JSON object per line
- ``server.log``: everything, human-readable
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import structlog

from config.settings import Settings


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
LOGGER_NAME = "suppsensei"


def _formatter(renderer: Any) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _file_handler(path: Path, renderer: Any, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_formatter(renderer))
    return handler


@dataclass
class LogContext:
    """An opened set of log sinks and the bound logger writing to them."""

    logger: Any
    log_dir: Path
    handlers: List[logging.Handler] = field(default_factory=list)
    stdlib_logger: Optional[logging.Logger] = field(default=None, repr=False)

    def close(self) -> None:
        for handler in self.handlers:
            handler.flush()
            handler.close()
            if self.stdlib_logger is not None:
                self.stdlib_logger.removeHandler(handler)
        self.handlers = []


def configure_logging(settings: Settings) -> LogContext:
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, settings.log_level, logging.INFO)
    json_renderer = structlog.processors.JSONRenderer()

    handlers: List[logging.Handler] = [
        _file_handler(log_dir / "error.log", json_renderer, logging.ERROR),
        _file_handler(log_dir / "combined.log", json_renderer, level),
        _file_handler(
            log_dir / "server.log", structlog.dev.ConsoleRenderer(colors=False), level
        ),
    ]
    if not settings.is_production():
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(level)
        console.setFormatter(_formatter(structlog.dev.ConsoleRenderer(colors=True)))
        handlers.append(console)

    stdlib_logger = logging.getLogger(LOGGER_NAME)
    for stale in list(stdlib_logger.handlers):
        stdlib_logger.removeHandler(stale)
        stale.close()
    stdlib_logger.setLevel(level)
    stdlib_logger.propagate = False
    for handler in handlers:
        stdlib_logger.addHandler(handler)

    logger = structlog.wrap_logger(
        stdlib_logger,
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt=TIMESTAMP_FORMAT),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
    ).bind(service=settings.service_name)

    return LogContext(
        logger=logger,
        log_dir=log_dir,
        handlers=handlers,
        stdlib_logger=stdlib_logger,
    )
