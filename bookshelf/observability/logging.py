from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_CONSOLE_ENVS = {"develop", "test"}


def configure_logging(env: str, level: str | int = logging.INFO) -> Any:
    """Configure structlog + stdlib logging for the given environment tag.

    ``develop`` and ``test`` get human readable console output, every other
    environment gets JSON lines. Safe to call more than once; the last call wins.
    Returns the application logger bound to the environment tag.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError("Unknown log level")

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            # Let ProcessorFormatter render stdlib log records too.
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    render: list[Any] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if env in _CONSOLE_ENVS:
        render.append(structlog.dev.ConsoleRenderer())
    else:
        render += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    formatter = structlog.stdlib.ProcessorFormatter(processors=render, foreign_pre_chain=pre_chain)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # Keep uvicorn's own loggers consistent with our handler.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers = [handler]
        logger.propagate = False
        logger.setLevel(level)

    return structlog.get_logger("bookshelf").bind(env=env)
