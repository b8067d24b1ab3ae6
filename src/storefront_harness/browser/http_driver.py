"""JavaScript-free browser driver over httpx.

Requests go through an :class:`httpx.AsyncClient`, so the driver works
against a live storefront or, with ``httpx.ASGITransport``, against an ASGI
app in the same process. Responses are parsed with BeautifulSoup and kept as
a live tree: ``set_value`` edits that tree and form submission serialises it,
the way a browser would without scripts.

Usage::

    driver = HttpDriver('http://localhost:3000')
    await driver.visit('/products')
    soup = await driver.document()
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urldefrag, urljoin, urlsplit, urlunsplit

import httpx
from bs4 import BeautifulSoup
from bs4.element import Tag

from ..errors import BrowserError, DriverNotSupported, ElementNotFound, NavigationError
from ..observability import get_logger
from .dom import Node, parse_html
from .protocols import AlertAction

log = get_logger(__name__)

_BUTTON_INPUT_TYPES = frozenset({'submit', 'image', 'button', 'reset'})
_SUBMIT_TYPES = frozenset({'submit', 'image'})


class HttpDriver:
    """Drive a storefront with plain HTTP requests (no JavaScript).

    Args:
        base_url: Storefront base URL; relative URLs resolve against it.
        client: Optional httpx.AsyncClient (for test injection). The
            driver closes only clients it created.
        timeout: Per-request timeout in seconds.
        raise_server_errors: Raise NavigationError on 5xx responses.
    """

    name = 'http'
    supports_javascript = False

    def __init__(
        self,
        base_url: str = '',
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        raise_server_errors: bool = True,
    ) -> None:
        self._base_url = base_url.rstrip('/')
        self._timeout = timeout
        self._raise_server_errors = raise_server_errors
        self._client = client
        self._owns_client = client is None
        self._soup: BeautifulSoup | None = None
        self._url: str | None = None
        self._status: int | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                follow_redirects=True,
                timeout=self._timeout,
            )
        return self._client

    @property
    def current_url(self) -> str | None:
        return self._url

    @property
    def status_code(self) -> int | None:
        return self._status

    # ── Navigation ─────────────────────────────────────────────────

    async def visit(self, url: str) -> None:
        await self._request('GET', self._resolve(url))

    async def document(self) -> BeautifulSoup:
        if self._soup is None:
            raise NavigationError('No page loaded; call visit() first')
        return self._soup

    async def _request(
        self,
        method: str,
        url: str,
        *,
        data: dict[str, list[str]] | None = None,
    ) -> None:
        try:
            response = await self.client.request(
                method,
                url,
                data=data,
                follow_redirects=True,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise NavigationError(f'{type(exc).__name__}: {exc}', url=url) from exc

        self._url = str(response.url)
        self._status = response.status_code
        self._soup = parse_html(response.text)
        log.debug('driver_visit', method=method, url=self._url, status=self._status)

        if self._raise_server_errors and response.status_code >= 500:
            raise NavigationError(
                f'Server error {response.status_code}', url=self._url,
            )

    def _resolve(self, url: str) -> str:
        base = self._url or (f'{self._base_url}/' if self._base_url else '')
        if not base:
            return url
        return urljoin(base, url)

    # ── Interaction ────────────────────────────────────────────────

    async def click(self, node: Node) -> None:
        tag = node.tag
        if tag.name == 'a' and tag.has_attr('href'):
            await self._follow(tag['href'])
            return

        if _is_submit(tag):
            form = self._form_for(tag)
            if form is not None:
                await self._submit(form, tag)
                return

        if tag.name == 'label' and tag.get('for'):
            target = (await self.document()).find(id=tag['for'])
            if isinstance(target, Tag) and target.name == 'input':
                await self.click(Node(target))
            return

        if tag.name == 'input' and (tag.get('type') or '').lower() in ('checkbox', 'radio'):
            await self.set_value(node, not tag.has_attr('checked'))
            return

        log.debug('driver_click_ignored', element=node.describe())

    async def _follow(self, href: str) -> None:
        if href.startswith('#'):
            # In-page anchor: nothing to load.
            return
        target, _ = urldefrag(self._resolve(href))
        await self._request('GET', target)

    async def set_value(self, node: Node, value: str | bool) -> None:
        tag = node.tag
        if node.is_disabled:
            raise BrowserError(f'Cannot set value of disabled {node.describe()}')

        if tag.name == 'textarea':
            tag.string = str(value)
            return

        if tag.name == 'select':
            wanted = str(value)
            options = tag.find_all('option')
            chosen = None
            for option in options:
                option_value = option.get('value', option.get_text())
                if wanted in (option_value, option.get_text().strip()):
                    chosen = option
                    break
            if chosen is None:
                raise ElementNotFound('option', wanted, scope=node.describe())
            if not tag.has_attr('multiple'):
                for option in options:
                    if option.has_attr('selected'):
                        del option['selected']
            chosen['selected'] = 'selected'
            return

        input_type = (tag.get('type') or 'text').lower()
        if input_type in ('checkbox', 'radio'):
            if input_type == 'radio' and value:
                form = self._form_for(tag) or (await self.document())
                for other in form.find_all('input', attrs={'type': 'radio', 'name': tag.get('name')}):
                    if other.has_attr('checked'):
                        del other['checked']
            if value:
                tag['checked'] = 'checked'
            elif tag.has_attr('checked'):
                del tag['checked']
            return

        tag['value'] = str(value)

    # ── Forms ──────────────────────────────────────────────────────

    def _form_for(self, tag: Tag) -> Tag | None:
        form_id = tag.get('form')
        if form_id and self._soup is not None:
            form = self._soup.find('form', id=form_id)
            if isinstance(form, Tag):
                return form
        return tag.find_parent('form')

    async def _submit(self, form: Tag, submitter: Tag | None) -> None:
        fields = serialize_form(form, submitter)
        action = (submitter.get('formaction') if submitter is not None else None) or form.get('action') or ''
        method = (
            (submitter.get('formmethod') if submitter is not None else None)
            or form.get('method')
            or 'get'
        ).lower()
        url = self._resolve(action) if action else (self._url or self._resolve('/'))

        data: dict[str, list[str]] = {}
        for name, value in fields:
            data.setdefault(name, []).append(value)

        if method == 'get':
            parts = urlsplit(url)
            query = httpx.QueryParams([(k, v) for k, values in data.items() for v in values])
            url = urlunsplit((parts.scheme, parts.netloc, parts.path, str(query), ''))
            await self._request('GET', url)
        else:
            await self._request('POST', url, data=data)

    # ── Unsupported ────────────────────────────────────────────────

    async def accept_alert(self, action: AlertAction | None, wait: float) -> str:
        raise DriverNotSupported(self.name, 'accept_alert')

    async def screenshot(self, path: Path) -> Path:
        raise DriverNotSupported(self.name, 'screenshot')

    # ── Lifecycle ──────────────────────────────────────────────────

    async def reset(self) -> None:
        """Forget the current page and every cookie."""
        if self._client is not None:
            self._client.cookies.clear()
        self._soup = None
        self._url = None
        self._status = None

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


# ── Helpers ────────────────────────────────────────────────────────


def _is_submit(tag: Tag) -> bool:
    if tag.name == 'button':
        return (tag.get('type') or 'submit').lower() == 'submit'
    if tag.name == 'input':
        return (tag.get('type') or '').lower() in _SUBMIT_TYPES
    return False


def serialize_form(form: Tag, submitter: Tag | None = None) -> list[tuple[str, str]]:
    """Return the name/value pairs a browser would submit for *form*.

    Disabled controls and unchecked boxes are skipped; only the clicked
    submit button contributes its own name/value.
    """
    pairs: list[tuple[str, str]] = []
    for element in form.find_all(['input', 'select', 'textarea', 'button']):
        name = element.get('name')
        if not name or Node(element).is_disabled:
            continue

        if element.name == 'button':
            if element is submitter:
                pairs.append((name, element.get('value', '')))
            continue

        if element.name == 'textarea':
            pairs.append((name, element.get_text()))
            continue

        if element.name == 'select':
            options = element.find_all('option')
            selected = [o for o in options if o.has_attr('selected')]
            if not selected and options and not element.has_attr('multiple'):
                selected = [options[0]]
            pairs.extend((name, o.get('value', o.get_text())) for o in selected)
            continue

        input_type = (element.get('type') or 'text').lower()
        if input_type in _BUTTON_INPUT_TYPES:
            if element is submitter:
                pairs.append((name, element.get('value', '')))
        elif input_type in ('checkbox', 'radio'):
            if element.has_attr('checked'):
                pairs.append((name, element.get('value', 'on')))
        elif input_type != 'file':
            pairs.append((name, element.get('value', '')))
    return pairs

