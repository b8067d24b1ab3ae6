"""Built-in acceptance suites."""

from ..scenarios.registry import SuiteRegistry
from .products import suite as products_suite

SUITES = SuiteRegistry()
SUITES.register(products_suite)

__all__ = ['SUITES', 'products_suite']
