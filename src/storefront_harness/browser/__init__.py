"""Browser driver adapter: drivers, DOM nodes and the session DSL."""

from .dom import Node, css_path, visible_text
from .factory import (
    DriverFactory,
    http_driver_factory,
    playwright_driver_factory,
)
from .http_driver import HttpDriver, serialize_form
from .protocols import BrowserDriver
from .session import ActionRecord, Session

__all__ = [
    'ActionRecord',
    'BrowserDriver',
    'DriverFactory',
    'HttpDriver',
    'Node',
    'Session',
    'css_path',
    'http_driver_factory',
    'playwright_driver_factory',
    'serialize_form',
    'visible_text',
]
