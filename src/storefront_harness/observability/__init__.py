"""Structured logging for storefront-harness.

Quick start::

    from storefront_harness.observability import configure_logging, get_logger

    configure_logging()
    log = get_logger(__name__)
    log.info('scenario_started', scenario='Visiting Products is able to search')
"""

from .logging import bind_scenario, configure_logging, get_logger, scenario_id_ctx

__all__ = [
    'bind_scenario',
    'configure_logging',
    'get_logger',
    'scenario_id_ctx',
]
