"""
Structured logging for the prediction API and the training script.

The models log fit results straight from numpy (slopes, R², multiplier
tables), so numpy scalars and arrays are turned into plain Python values
before rendering. JSON output in production, console output in development.
"""

import logging
import sys
from typing import Any, Optional

import numpy as np
import structlog
from structlog.types import EventDict, Processor

from gameinsights.config import get_settings


def coerce_numpy_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace numpy scalars and arrays in the event with builtin values."""
    for key, value in event_dict.items():
        if isinstance(value, np.generic):
            event_dict[key] = value.item()
        elif isinstance(value, np.ndarray):
            event_dict[key] = value.tolist()
    return event_dict


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["severity"] = method_name.upper()
    return event_dict


def build_processors(json_format: bool) -> list[Processor]:
    """Processor chain shared by the API and the training script."""
    renderer: Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_severity,
        coerce_numpy_values,
        renderer,
    ]


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        level: Overrides settings.log_level (e.g. from a CLI flag)
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
        force=True,
    )

    json_format = settings.log_format == "json" and not settings.dev_mode
    structlog.configure(
        processors=build_processors(json_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    return structlog.get_logger(name)
