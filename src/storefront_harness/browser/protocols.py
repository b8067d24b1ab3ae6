"""Driver protocol for the browser adapter.

Concrete drivers (httpx for JavaScript-free runs, Playwright for real
browsers) must satisfy this protocol. The :class:`Session` only talks to a
driver through it, so scenarios never depend on which one is active.
"""

from __future__ import annotations

from pathlib import Path
from typing import Awaitable, Callable, Protocol, runtime_checkable

from bs4 import BeautifulSoup

from .dom import Node

AlertAction = Callable[[], Awaitable[object]]


@runtime_checkable
class BrowserDriver(Protocol):
    """Low-level browser operations."""

    name: str
    supports_javascript: bool

    @property
    def current_url(self) -> str | None: ...

    @property
    def status_code(self) -> int | None: ...

    async def visit(self, url: str) -> None: ...
    async def document(self) -> BeautifulSoup: ...
    async def click(self, node: Node) -> None: ...
    async def set_value(self, node: Node, value: str | bool) -> None: ...
    async def accept_alert(self, action: AlertAction | None, wait: float) -> str: ...
    async def screenshot(self, path: Path) -> Path: ...
    async def reset(self) -> None: ...
    async def close(self) -> None: ...
