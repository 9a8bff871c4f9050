"""Structured logging for the device simulator.

Every log line carries the simulated device's identity, bound once as a
structlog context variable so events from the telemetry loop, the control
channel and background operations can be told apart when several simulators
share one log stream.
"""

from __future__ import annotations

import logging
import sys
from typing import List, Literal, Optional

import structlog

# Stdlib loggers of the hub link; their frame-level chatter stays at WARNING
# unless the simulator itself runs at DEBUG.
TRANSPORT_LOGGERS = ("websockets", "tenacity")


def configure_logging(
    log_format: Literal["json", "text"] = "json",
    log_level: str = "INFO",
    device_id: Optional[str] = None,
) -> None:
    """Configure structlog for the simulator.

    Args:
        log_format: "json" for container runs, "text" for a colored console.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        device_id: Identity bound to every log line, if given.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    processors: List[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_format == "json":
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(name)s %(levelname)s %(message)s", stream=sys.stdout, level=level)
    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else max(level, logging.WARNING))

    structlog.contextvars.clear_contextvars()
    if device_id:
        structlog.contextvars.bind_contextvars(device_id=device_id)


def get_logger() -> structlog.typing.FilteringBoundLogger:
    """Get a configured structlog logger instance."""
    return structlog.get_logger()
