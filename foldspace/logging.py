import logging
import sys

import structlog

# Hook scripts start the server detached with stderr sent to a file
renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

processors = [
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="%H:%M:%S"),
    renderer,
]

# httpx/httpcore come from the CLI client, watchfiles from `serve --reload`
QUIET_LOGGERS = ("httpx", "httpcore", "watchfiles", "websockets")


def _level(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def configure_logging(level: str = "INFO"):
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level(level)),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None):
    return structlog.get_logger(name or "foldspace")


formatter = {
    "()": structlog.stdlib.ProcessorFormatter,
    "processor": renderer,
    "foreign_pre_chain": processors[:-1],
}


def uvicorn_log_config(level: str = "INFO") -> dict:
    """uvicorn's dictConfig, rendered through the same structlog pipeline.

    Hook scripts post on every turn, so access lines only show at DEBUG.
    """
    level = logging.getLevelName(_level(level))
    access_level = "DEBUG" if level == "DEBUG" else "WARNING"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter, "access": formatter},
        "handlers": {
            "default": {"formatter": "default", "class": "logging.StreamHandler", "stream": "ext://sys.stderr"},
            "access": {"formatter": "access", "class": "logging.StreamHandler", "stream": "ext://sys.stderr"},
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.error": {"level": level},
            "uvicorn.access": {"handlers": ["access"], "level": access_level, "propagate": False},
        },
    }
