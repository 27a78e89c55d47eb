"""Diagnostic logging for the health probe.

structlog events are rendered through the stdlib `logging` tree so that one
`dictConfig` call controls level, destination and format. Everything goes to
stderr: stdout carries only the `OK <code>` line read by the container runtime.
"""

from typing import Any

import structlog
from structlog.types import Processor

from healthprobe.config import Settings


def get_common_processors() -> list[Processor]:
    """Return the processors shared by structlog events and foreign log records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def get_logging_config(settings: Settings) -> dict[str, Any]:
    """Build the `logging.config.dictConfig` mapping for the probe.

    Production and staging render JSON lines for the runtime's log driver;
    development renders plain key=value console lines.

    Args:
        settings: Probe settings providing LOG_LEVEL, ENVIRONMENT and
            LOGGING_NOISY_MODULES.

    Returns:
        dict[str, Any]: Configuration dictionary compatible with dictConfig.
    """
    log_level = settings.LOG_LEVEL.upper()

    if settings.ENVIRONMENT in ("production", "staging"):
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "probe": {
                "()": "structlog.stdlib.ProcessorFormatter",
                "processor": renderer,
                "foreign_pre_chain": get_common_processors(),
            },
        },
        "handlers": {
            "stderr": {
                "level": log_level,
                "class": "logging.StreamHandler",
                "formatter": "probe",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "": {"handlers": ["stderr"], "level": log_level},
            # HTTP client internals stay quiet below WARNING.
            **{
                lib: {"level": "WARNING", "propagate": False}
                for lib in settings.LOGGING_NOISY_MODULES
            },
        },
    }


def configure_structlog() -> None:
    """Route structlog events into the stdlib handlers set up by dictConfig."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *get_common_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


bind_contextvars = structlog.contextvars.bind_contextvars
unbind_contextvars = structlog.contextvars.unbind_contextvars
clear_contextvars = structlog.contextvars.clear_contextvars
