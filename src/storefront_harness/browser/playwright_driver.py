"""JavaScript-capable browser driver over Playwright.

DOM queries run against a parsed snapshot of ``page.content()`` so element
lookup is shared with :class:`HttpDriver`; actions address the element in
the live page through its structural CSS path.

Usage::

    async with PlaywrightDriver.launch(base_url='http://localhost:3000') as driver:
        page = Session(driver)
        await page.visit('/products')
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from bs4 import BeautifulSoup
from playwright.async_api import (
    Browser,
    Dialog,
    Page,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..errors import ModalNotFound, NavigationError
from ..observability import get_logger
from .dom import Node, parse_html
from .protocols import AlertAction

log = get_logger(__name__)


class PlaywrightDriver:
    """Drive a real browser page.

    Args:
        page: An open Playwright page. The driver does not own the browser
            unless it was created through :meth:`launch`.
        base_url: Storefront base URL; relative URLs resolve against it.
        timeout: Navigation/action timeout in seconds.
    """

    name = 'playwright'
    supports_javascript = True

    def __init__(
        self,
        page: Page,
        *,
        base_url: str = '',
        timeout: float = 30.0,
    ) -> None:
        self._page = page
        self._base_url = base_url.rstrip('/')
        self._timeout_ms = timeout * 1000
        self._status: int | None = None

    @classmethod
    @asynccontextmanager
    async def launch(
        cls,
        *,
        base_url: str = '',
        headless: bool = True,
        timeout: float = 30.0,
        browser_name: str = 'chromium',
    ) -> AsyncIterator[PlaywrightDriver]:
        """Start Playwright, open a fresh context and page, yield a driver."""
        async with async_playwright() as pw:
            launcher = getattr(pw, browser_name)
            browser: Browser = await launcher.launch(headless=headless)
            try:
                context = await browser.new_context(base_url=base_url or None)
                page = await context.new_page()
                yield cls(page, base_url=base_url, timeout=timeout)
            finally:
                await browser.close()

    @property
    def page(self) -> Page:
        return self._page

    @property
    def current_url(self) -> str | None:
        url = self._page.url
        return None if url in ('', 'about:blank') else url

    @property
    def status_code(self) -> int | None:
        return self._status

    # ── Navigation ─────────────────────────────────────────────────

    async def visit(self, url: str) -> None:
        target = url
        if self._base_url and url.startswith('/'):
            target = f'{self._base_url}{url}'
        try:
            response = await self._page.goto(target, timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise NavigationError(str(exc), url=target) from exc
        self._status = response.status if response is not None else None
        log.debug('driver_visit', url=self.current_url, status=self._status)

    async def document(self) -> BeautifulSoup:
        if self.current_url is None:
            raise NavigationError('No page loaded; call visit() first')
        return parse_html(await self._page.content())

    # ── Interaction ────────────────────────────────────────────────

    def _locator(self, node: Node) -> Any:
        return self._page.locator(node.css_path)

    async def click(self, node: Node) -> None:
        await self._locator(node).click(timeout=self._timeout_ms)
        try:
            await self._page.wait_for_load_state(timeout=self._timeout_ms)
        except PlaywrightTimeoutError:
            log.warning('load_state_timeout', url=self.current_url)

    async def set_value(self, node: Node, value: str | bool) -> None:
        locator = self._locator(node)
        if node.tag_name == 'select':
            await locator.select_option(str(value), timeout=self._timeout_ms)
        elif isinstance(value, bool):
            await locator.set_checked(value, timeout=self._timeout_ms)
        else:
            await locator.fill(value, timeout=self._timeout_ms)

    async def accept_alert(self, action: AlertAction | None, wait: float) -> str:
        """Accept the first dialog raised by *action* within *wait* seconds.

        Raises:
            ModalNotFound: If no dialog appears in time.
        """
        loop = asyncio.get_running_loop()
        seen: asyncio.Future[str] = loop.create_future()

        async def on_dialog(dialog: Dialog) -> None:
            if not seen.done():
                seen.set_result(dialog.message)
            await dialog.accept()

        self._page.on('dialog', on_dialog)
        try:
            if action is not None:
                await action()
            try:
                return await asyncio.wait_for(asyncio.shield(seen), timeout=wait)
            except asyncio.TimeoutError:
                raise ModalNotFound(wait) from None
        finally:
            self._page.remove_listener('dialog', on_dialog)

    async def screenshot(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        await self._page.screenshot(path=str(path), full_page=True)
        return path

    # ── Lifecycle ──────────────────────────────────────────────────

    async def reset(self) -> None:
        """Clear cookies and storage, then park the page on about:blank."""
        await self._page.context.clear_cookies()
        await self._page.goto('about:blank')
        self._status = None

    async def close(self) -> None:
        await self._page.close()
