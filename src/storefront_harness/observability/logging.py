"""Structured logging configuration for storefront-harness.

Configures structlog for JSON-formatted, scenario-correlated logging across
the runner, the browser drivers and the fixture backends.

Usage::

    from storefront_harness.observability.logging import configure_logging, get_logger

    configure_logging()  # Call once per process
    log = get_logger(__name__)
    log.info('driver_visit', url='/products', status=200)
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

import structlog

# Context variable for the scenario currently executing.
scenario_id_ctx: ContextVar[str | None] = ContextVar('scenario_id', default=None)

_configured = False


def _add_scenario_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Inject the running scenario id from context into every log entry."""
    sid = scenario_id_ctx.get()
    if sid is not None:
        event_dict['scenario_id'] = sid
    return event_dict


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    force: bool = False,
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
            Defaults to LOG_LEVEL env var or INFO.
        json_output: If True, emit JSON lines. If False, emit
            human-readable console output. Defaults to LOG_FORMAT
            env var == "json".
        force: Reconfigure even if logging was already configured.
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    level = level or os.environ.get('LOG_LEVEL', 'INFO')
    if json_output is None:
        json_output = os.environ.get('LOG_FORMAT', 'json') == 'json'

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        _add_scenario_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy libraries.
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the given name."""
    return structlog.get_logger(name)


@contextmanager
def bind_scenario(scenario_id: str) -> Iterator[None]:
    """Tag every log entry emitted inside the block with *scenario_id*."""
    token = scenario_id_ctx.set(scenario_id)
    try:
        yield
    finally:
        scenario_id_ctx.reset(token)
