from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog


_CONFIGURED = False

# uvicorn installs its own handlers; route them through ours instead.
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def process_log_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(level: int | str = logging.INFO, stream: IO[str] | None = None, force: bool = False) -> None:
    """Send structlog and stdlib records (server, sink failures) to ``stream`` as JSON lines.

    Request records don't go through here; they have their own sinks. Defaults
    to stderr so the console request log on stdout stays pure NDJSON.
    Repeated calls are ignored unless ``force`` is set.
    """

    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    pre_chain = process_log_processors()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=not force,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(default=str),
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in _SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers = [handler]
        server_logger.propagate = False

    _CONFIGURED = True
