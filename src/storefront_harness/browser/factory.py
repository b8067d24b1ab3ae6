"""Driver factories used by the scenario runner.

A factory is a zero-argument callable returning an async context manager
that yields a ready driver and tears it down on exit. The runner opens one
per scenario, which is what isolates browser state between scenarios.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable

import httpx

from ..settings import HarnessSettings
from .http_driver import HttpDriver
from .protocols import BrowserDriver

DriverFactory = Callable[[], AsyncContextManager[BrowserDriver]]


def http_driver_factory(
    settings: HarnessSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DriverFactory:
    """Factory for :class:`HttpDriver` instances with a fresh cookie jar each.

    Pass *transport* (e.g. ``httpx.ASGITransport(app=app)``) to drive an
    ASGI storefront in-process.
    """

    @asynccontextmanager
    async def open_driver() -> AsyncIterator[BrowserDriver]:
        client = httpx.AsyncClient(
            base_url=settings.base_url,
            transport=transport,
            follow_redirects=True,
            timeout=settings.request_timeout,
        )
        driver = HttpDriver(settings.base_url, client=client, timeout=settings.request_timeout)
        try:
            yield driver
        finally:
            await client.aclose()

    return open_driver


def playwright_driver_factory(settings: HarnessSettings) -> DriverFactory:
    """Factory launching a fresh Playwright browser per scenario."""
    from .playwright_driver import PlaywrightDriver

    def open_driver() -> AsyncContextManager[BrowserDriver]:
        return PlaywrightDriver.launch(
            base_url=settings.base_url,
            headless=settings.headless,
            timeout=settings.request_timeout,
        )

    return open_driver
