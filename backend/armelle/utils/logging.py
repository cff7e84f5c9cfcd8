# /armelle/utils/logging.py

import logging
import sys
import structlog

from armelle.config.settings import Settings, settings

# Structured logging for the bot. Records from structlog loggers and from plain
# logging.getLogger(__name__) loggers go through the same processors, so both
# carry the session bound for the current turn (see bind_turn).

# Third-party loggers that are too chatty below WARNING
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def setup_logging(config: Settings = settings) -> None:
    """
    Route all logging through structlog.

    JSON lines everywhere except development, where the console renderer is
    easier to read. Safe to call more than once (tests, reloads): the root
    handler is replaced, not added.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if config.environment == "development":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        # User names and prompts are French; keep accents readable
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    ))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(config.log_level.upper())

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def bind_turn(session_key: str, **fields):
    """Bind the session key (plus any extra fields) to every record logged during one turn."""
    return structlog.contextvars.bound_contextvars(session_key=session_key, **fields)
