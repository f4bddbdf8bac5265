import logging
import sys

import structlog

# third-party loggers that chatter at INFO on every request
QUIET_LOGGERS = ("LiteLLM", "LiteLLM Router", "httpx", "aiosqlite")


def _processors(colors: bool) -> list:
    return [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=colors),
    ]


def configure_logging(level: str = "INFO", colors: bool | None = None):
    if colors is None:
        colors = sys.stderr.isatty()
    structlog.configure(
        processors=_processors(colors),
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None):
    return structlog.get_logger(name or "nestfind")


def uvicorn_log_config(level: str = "INFO") -> dict:
    """Route uvicorn's stdlib loggers through the same structlog renderer."""
    processors = _processors(colors=sys.stderr.isatty())
    formatter = {
        "()": structlog.stdlib.ProcessorFormatter,
        "processor": processors[-1],
        "foreign_pre_chain": processors[:-1],
    }
    handler = {"formatter": "default", "class": "logging.StreamHandler", "stream": "ext://sys.stderr"}
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {"default": handler},
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.error": {"level": level},
            "uvicorn.access": {"handlers": ["default"], "level": level, "propagate": False},
        },
    }
