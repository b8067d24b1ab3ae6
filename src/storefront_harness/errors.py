"""Harness error hierarchy.

Errors carry the structured context a failing scenario needs for its run
log (selector, locator, scope, url) and render a readable message. They do
not hold driver or httpx objects so they can be serialised and compared.
"""

from __future__ import annotations


class HarnessError(Exception):
    """Base error for everything raised by the harness."""


class ConfigError(HarnessError, ValueError):
    """Raised when harness settings are missing or invalid."""


# ── Browser ────────────────────────────────────────────────────────


class BrowserError(HarnessError):
    """Base error for browser driver and session failures."""


class NavigationError(BrowserError):
    """Raised when a page cannot be loaded or no page is loaded yet."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        self.url = url
        super().__init__(f'{message} (url={url})' if url else message)


class ElementNotFound(BrowserError):
    """Raised when a finder matches no element."""

    def __init__(
        self,
        kind: str,
        locator: str,
        *,
        scope: str | None = None,
        url: str | None = None,
    ) -> None:
        self.kind = kind
        self.locator = locator
        self.scope = scope
        self.url = url
        where = f' within {scope!r}' if scope else ''
        super().__init__(f'Unable to find {kind} {locator!r}{where}')


class AmbiguousMatch(BrowserError):
    """Raised when a finder expecting one element matches several."""

    def __init__(
        self,
        kind: str,
        locator: str,
        count: int,
        *,
        scope: str | None = None,
    ) -> None:
        self.kind = kind
        self.locator = locator
        self.count = count
        self.scope = scope
        where = f' within {scope!r}' if scope else ''
        super().__init__(
            f'Ambiguous match, found {count} elements matching '
            f'{kind} {locator!r}{where}'
        )


class ModalNotFound(BrowserError):
    """Raised when an expected alert/confirm dialog never appears."""

    def __init__(self, wait: float) -> None:
        self.wait = wait
        super().__init__(f'Unable to find modal dialog within {wait}s')


class DriverNotSupported(BrowserError):
    """Raised when the active driver cannot perform an operation."""

    def __init__(self, driver: str, operation: str) -> None:
        self.driver = driver
        self.operation = operation
        super().__init__(f'{driver} does not support {operation}')


# ── Expectations ───────────────────────────────────────────────────


class ExpectationFailed(HarnessError, AssertionError):
    """Raised by session assertions when the page does not match."""

    def __init__(self, message: str, *, scope: str | None = None) -> None:
        self.scope = scope
        where = f' (within {scope!r})' if scope else ''
        super().__init__(f'{message}{where}')


# ── Fixtures ───────────────────────────────────────────────────────


class FixtureError(HarnessError):
    """Raised when seeding the storefront fails."""

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        bits = [message]
        if kind:
            bits.append(f'kind={kind}')
        if status_code is not None:
            bits.append(f'status={status_code}')
        super().__init__(' '.join(bits))


class RecordNotFound(FixtureError):
    """Raised when a fixture lookup matches no record."""
