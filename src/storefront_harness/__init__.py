"""Acceptance-test harness for e-commerce storefronts.

This package drives a browser against a running storefront, seeds domain
records as scenario preconditions and asserts on the rendered HTML.

Example:
    # Run the built-in products suite in-process against an ASGI storefront
    import httpx
    from storefront_harness import (
        HarnessSettings, HttpFixtureBackend, RunConfig, ScenarioRunner,
        http_driver_factory, products_suite,
    )

    settings = HarnessSettings(base_url='http://storefront.test')
    transport = httpx.ASGITransport(app=app)
    runner = ScenarioRunner(
        RunConfig.from_settings(settings),
        driver_factory=http_driver_factory(settings, transport=transport),
        backend=HttpFixtureBackend(
            settings.base_url,
            client=httpx.AsyncClient(transport=transport),
        ),
    )
    results = await runner.run_suite(products_suite)
"""

from .browser import (
    BrowserDriver,
    HttpDriver,
    Node,
    Session,
    http_driver_factory,
    playwright_driver_factory,
)
from .contract import StorefrontRoutes, StorefrontStrings
from .errors import (
    AmbiguousMatch,
    BrowserError,
    ConfigError,
    DriverNotSupported,
    ElementNotFound,
    ExpectationFailed,
    FixtureError,
    HarnessError,
    ModalNotFound,
    NavigationError,
    RecordNotFound,
)
from .fixtures import (
    FactoryProvider,
    FixtureBackend,
    HttpFixtureBackend,
    InMemoryFixtureBackend,
)
from .money import format_price
from .scenarios import (
    RunConfig,
    RunLog,
    ScenarioContext,
    ScenarioResult,
    ScenarioRunner,
    Suite,
)
from .settings import HarnessSettings
from .suites import SUITES, products_suite

__version__ = '0.1.0'

__all__ = [
    'AmbiguousMatch',
    'BrowserDriver',
    'BrowserError',
    'ConfigError',
    'DriverNotSupported',
    'ElementNotFound',
    'ExpectationFailed',
    'FactoryProvider',
    'FixtureBackend',
    'FixtureError',
    'HarnessError',
    'HarnessSettings',
    'HttpDriver',
    'HttpFixtureBackend',
    'InMemoryFixtureBackend',
    'ModalNotFound',
    'NavigationError',
    'Node',
    'RecordNotFound',
    'RunConfig',
    'RunLog',
    'SUITES',
    'ScenarioContext',
    'ScenarioResult',
    'ScenarioRunner',
    'Session',
    'StorefrontRoutes',
    'StorefrontStrings',
    'Suite',
    'format_price',
    'http_driver_factory',
    'playwright_driver_factory',
    'products_suite',
]
