"""
Logging Setup
=============

structlog configuration for scripts and services embedding docgraph.

Usage:
    from docgraph.config import configure_logging

    configure_logging("DEBUG")
    configure_logging("INFO", json_output=True)
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name ("DEBUG", "INFO", ...)
        json_output: Render JSON lines instead of the console renderer
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )
