"""structlog setup shared by the CLI and library code."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

import structlog


def _add_ts(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("ts", datetime.now(timezone.utc).isoformat(timespec="milliseconds"))
    return event_dict


def _stderr_logger(*_: Any) -> structlog.PrintLogger:
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: str | int = "INFO", *, json_output: bool = False) -> None:
    """Configure one structlog stack writing to stderr."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr, force=True)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _add_ts,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        # Resolve stderr per call so redirected streams (tests, CLI runners) are honored.
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None):
    """Return a lazily bound logger; configuration applies on first use."""
    if name:
        # structlog.get_logger reserves the `logger` keyword.
        return structlog.get_logger(name, logger_name=name)
    return structlog.get_logger()
