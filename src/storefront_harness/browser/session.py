"""Browser session: finders, actions and assertions over a driver.

The session is what scenarios talk to. It owns the scope stack used by
``within``, implements link/button/field lookup on the parsed DOM, and
retries queries and assertions for up to ``max_wait`` seconds so scenarios
read the same against an httpx driver (no waiting needed) and a real
browser (content may still be rendering).

Usage::

    page = Session(HttpDriver('http://localhost:3000'))
    await page.visit('/products')
    async with page.within('#collapseFilterPrice'):
        await page.click_on('$50 - $100')
    await page.assert_selector('.product-component-name', count=2)
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Literal, TypeVar
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from ..errors import AmbiguousMatch, ElementNotFound, ExpectationFailed
from ..observability import get_logger
from .dom import Node, normalize_whitespace, resolve_in
from .protocols import AlertAction, BrowserDriver

log = get_logger(__name__)

T = TypeVar('T')

MatchKind = Literal['exact', 'partial']

_LINK_SELECTOR = 'a[href]'
_BUTTON_SELECTOR = (
    'button, input[type=submit], input[type=reset], '
    'input[type=button], input[type=image]'
)
_FIELD_SELECTOR = (
    'input:not([type=submit]):not([type=reset]):not([type=button])'
    ':not([type=image]):not([type=hidden]), textarea, select'
)

_RETRYABLE = (ElementNotFound, AmbiguousMatch, ExpectationFailed)


@dataclass(frozen=True, slots=True)
class ActionRecord:
    """One navigation or interaction performed through the session."""

    action: str
    target: str
    url: str | None
    timestamp: str  # ISO-8601

    def to_dict(self) -> dict[str, Any]:
        return {
            'action': self.action,
            'target': self.target,
            'url': self.url,
            'timestamp': self.timestamp,
        }


class Session:
    """Capybara-style DSL over a :class:`BrowserDriver`.

    Args:
        driver: The active browser driver.
        base_url: Prefix for relative paths passed to :meth:`visit`.
        max_wait: Seconds to retry queries/assertions. Defaults to 0 for
            drivers without JavaScript and 2.0 otherwise.
        poll_interval: Seconds between retries.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        *,
        base_url: str = '',
        max_wait: float | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        self.driver = driver
        self._base_url = base_url.rstrip('/')
        if max_wait is None:
            max_wait = 2.0 if driver.supports_javascript else 0.0
        self.max_wait = max_wait
        self.poll_interval = poll_interval
        self._scopes: list[Node] = []
        self._actions: list[ActionRecord] = []

    # ── Introspection ──────────────────────────────────────────────

    @property
    def actions(self) -> tuple[ActionRecord, ...]:
        return tuple(self._actions)

    @property
    def current_url(self) -> str | None:
        return self.driver.current_url

    @property
    def current_path(self) -> str | None:
        url = self.driver.current_url
        if url is None:
            return None
        parts = urlsplit(url)
        path = parts.path or '/'
        return f'{path}?{parts.query}' if parts.query else path

    @property
    def status_code(self) -> int | None:
        return self.driver.status_code

    @property
    def scope(self) -> str | None:
        return self._scopes[-1].describe() if self._scopes else None

    async def html(self) -> str:
        return str(await self.driver.document())

    async def title(self) -> str:
        doc = await self.driver.document()
        if doc.title is None:
            return ''
        return normalize_whitespace(doc.title.get_text())

    async def text(self) -> str:
        """Visible text of the current scope (the whole page if unscoped)."""
        return (await self._root()).text

    # ── Navigation ─────────────────────────────────────────────────

    async def visit(self, url: str) -> None:
        target = url
        if self._base_url and not url.startswith(('http://', 'https://')):
            target = f'{self._base_url}{url if url.startswith("/") else "/" + url}'
        self._record('visit', url)
        await self.driver.visit(target)
        log.info('driver_visit', url=self.current_url, status=self.status_code)

    # ── Scoping ────────────────────────────────────────────────────

    @asynccontextmanager
    async def within(self, target: str | Node) -> AsyncIterator[Node]:
        """Scope every finder and text assertion to *target*.

        *target* is a CSS selector (resolved inside the current scope and
        required to match exactly one element) or a previously found node.
        """
        if isinstance(target, Node):
            node = target
        else:
            node = await self.find(target)
        self._scopes.append(node)
        try:
            yield node
        finally:
            self._scopes.pop()

    async def _document(self) -> BeautifulSoup:
        return await self.driver.document()

    async def _root(self) -> Node:
        doc = await self._document()
        if not self._scopes:
            return Node(doc, self)
        return resolve_in(doc, self._scopes[-1], self)

    # ── Waiting ────────────────────────────────────────────────────

    async def synchronize(self, probe: Callable[[], Awaitable[T]]) -> T:
        """Run *probe* until it stops raising a retryable error or time is up."""
        deadline = time.monotonic() + self.max_wait
        while True:
            try:
                return await probe()
            except _RETRYABLE:
                if time.monotonic() >= deadline:
                    raise
            await asyncio.sleep(self.poll_interval)

    # ── Finders ────────────────────────────────────────────────────

    async def all(
        self,
        selector: str,
        *,
        text: str | None = None,
        visible: bool = True,
    ) -> list[Node]:
        """Every element matching *selector* in the current scope (no waiting)."""
        root = await self._root()
        nodes = root.select(selector, visible=visible)
        if text is not None:
            nodes = [n for n in nodes if text in n.text]
        return nodes

    async def find(
        self,
        selector: str,
        *,
        text: str | None = None,
        visible: bool = True,
    ) -> Node:
        """The single element matching *selector*; waits for it to appear."""
        async def probe() -> Node:
            nodes = await self.all(selector, text=text, visible=visible)
            if not nodes:
                raise ElementNotFound('css', selector, scope=self.scope, url=self.current_url)
            if len(nodes) > 1:
                raise AmbiguousMatch('css', selector, len(nodes), scope=self.scope)
            return nodes[0]

        return await self.synchronize(probe)

    async def first(
        self,
        selector: str,
        *,
        text: str | None = None,
        visible: bool = True,
    ) -> Node:
        """The first element matching *selector*; waits for one to appear."""
        async def probe() -> Node:
            nodes = await self.all(selector, text=text, visible=visible)
            if not nodes:
                raise ElementNotFound('css', selector, scope=self.scope, url=self.current_url)
            return nodes[0]

        return await self.synchronize(probe)

    async def find_link(self, locator: str) -> Node:
        return await self._find_located('link', locator, _LINK_SELECTOR, _match_link)

    async def find_button(
        self,
        locator: str | None = None,
        *,
        id: str | None = None,
        disabled: bool | None = False,
    ) -> Node:
        """Find a button by id, name, value, title or text.

        ``disabled=False`` (the default) only considers enabled buttons,
        ``True`` only disabled ones, ``None`` either.
        """
        return await self._find_located(
            'button',
            locator or id or '',
            _BUTTON_SELECTOR,
            _match_button,
            id=id,
            disabled=disabled,
        )

    async def find_link_or_button(self, locator: str) -> Node:
        return await self._find_located(
            'link or button',
            locator,
            f'{_LINK_SELECTOR}, {_BUTTON_SELECTOR}',
            _match_link_or_button,
        )

    async def find_field(self, locator: str) -> Node:
        return await self._find_located('field', locator, _FIELD_SELECTOR, _match_field)

    async def _find_located(
        self,
        kind: str,
        locator: str,
        selector: str,
        matcher: Callable[[Node, str], MatchKind | None],
        *,
        id: str | None = None,
        disabled: bool | None = None,
    ) -> Node:
        async def probe() -> Node:
            candidates = await self.all(selector)
            candidates = _filter_state(candidates, id=id, disabled=disabled)
            if not locator or (id is not None and locator == id):
                matches = [(n, 'exact') for n in candidates]
            else:
                matches = [(n, matcher(n, locator)) for n in candidates]
            return _pick(kind, locator, matches, scope=self.scope, url=self.current_url)

        return await self.synchronize(probe)

    # ── Actions ────────────────────────────────────────────────────

    async def click_link(self, locator: str) -> None:
        await self.click_node(await self.find_link(locator), label=locator)

    async def click_button(self, locator: str | None = None, *, id: str | None = None) -> None:
        node = await self.find_button(locator, id=id)
        await self.click_node(node, label=locator or id)

    async def click_on(self, locator: str) -> None:
        await self.click_node(await self.find_link_or_button(locator), label=locator)

    async def fill_in(self, locator: str, *, with_: str) -> None:
        field = await self.find_field(locator)
        await self.set_node_value(field, with_, label=locator)

    async def select(self, value: str, *, from_: str) -> None:
        field = await self.find_field(from_)
        await self.set_node_value(field, value, label=from_)

    async def check(self, locator: str) -> None:
        await self.set_node_value(await self.find_field(locator), True, label=locator)

    async def uncheck(self, locator: str) -> None:
        await self.set_node_value(await self.find_field(locator), False, label=locator)

    async def click_node(self, node: Node, *, label: str | None = None) -> None:
        self._record('click', label or node.describe())
        await self.driver.click(node)
        log.debug('driver_click', target=label or node.describe(), url=self.current_url)

    async def set_node_value(
        self,
        node: Node,
        value: str | bool,
        *,
        label: str | None = None,
    ) -> None:
        self._record('set', f'{label or node.describe()}={value!r}')
        await self.driver.set_value(node, value)

    async def accept_alert(
        self,
        action: AlertAction | None = None,
        *,
        wait: float | None = None,
    ) -> str:
        """Run *action* and accept the alert it raises; return its message.

        Raises:
            ModalNotFound: If no dialog appears within *wait* seconds.
            DriverNotSupported: If the driver cannot execute JavaScript.
        """
        self._record('accept_alert', '')
        return await self.driver.accept_alert(
            action, self.max_wait if wait is None else wait,
        )

    # ── Predicates ─────────────────────────────────────────────────

    async def has_text(self, text: Any, *, exact: bool = False) -> bool:
        return await self._holds(self.assert_text(text, exact=exact))

    async def has_no_text(self, text: Any) -> bool:
        return await self._holds(self.assert_no_text(text))

    async def has_selector(self, selector: str, **options: Any) -> bool:
        return await self._holds(self.assert_selector(selector, **options))

    async def has_no_selector(self, selector: str, **options: Any) -> bool:
        return await self._holds(self.assert_no_selector(selector, **options))

    async def has_button(self, locator: str | None = None, **options: Any) -> bool:
        return await self._holds(self.assert_button(locator, **options))

    async def has_title(self, title: str, *, exact: bool = False) -> bool:
        return await self._holds(self.assert_title(title, exact=exact))

    async def has_current_path(self, path: str) -> bool:
        return await self._holds(self.assert_current_path(path))

    @staticmethod
    async def _holds(assertion: Awaitable[None]) -> bool:
        try:
            await assertion
        except ExpectationFailed:
            return False
        return True

    # ── Assertions ─────────────────────────────────────────────────

    async def assert_text(self, text: Any, *, exact: bool = False) -> None:
        """Assert the scope's visible text contains (or equals) *text*."""
        expected = normalize_whitespace(str(text))

        async def probe() -> None:
            actual = (await self._root()).text
            ok = actual == expected if exact else expected in actual
            if not ok:
                raise ExpectationFailed(
                    f'expected to find text {expected!r} in {_clip(actual)!r}',
                    scope=self.scope,
                )

        await self.synchronize(probe)

    async def assert_no_text(self, text: Any) -> None:
        expected = normalize_whitespace(str(text))

        async def probe() -> None:
            actual = (await self._root()).text
            if expected in actual:
                raise ExpectationFailed(
                    f'expected not to find text {expected!r} in {_clip(actual)!r}',
                    scope=self.scope,
                )

        await self.synchronize(probe)

    async def assert_selector(
        self,
        selector: str,
        *,
        count: int | None = None,
        minimum: int | None = None,
        maximum: int | None = None,
        text: str | None = None,
        visible: bool = True,
    ) -> None:
        """Assert *selector* matches; optionally an exact or bounded count."""
        async def probe() -> None:
            found = len(await self.all(selector, text=text, visible=visible))
            problem = _count_problem(found, count=count, minimum=minimum, maximum=maximum)
            if problem:
                raise ExpectationFailed(
                    f'expected to find css {selector!r} {problem}, found {found}',
                    scope=self.scope,
                )

        await self.synchronize(probe)

    async def assert_no_selector(
        self,
        selector: str,
        *,
        text: str | None = None,
        visible: bool = True,
    ) -> None:
        async def probe() -> None:
            found = len(await self.all(selector, text=text, visible=visible))
            if found:
                raise ExpectationFailed(
                    f'expected not to find css {selector!r}, found {found}',
                    scope=self.scope,
                )

        await self.synchronize(probe)

    async def assert_button(
        self,
        locator: str | None = None,
        *,
        id: str | None = None,
        disabled: bool | None = False,
    ) -> None:
        try:
            await self.find_button(locator, id=id, disabled=disabled)
        except ElementNotFound:
            raise ExpectationFailed(
                f'expected to find button {locator or id!r} (disabled={disabled})',
                scope=self.scope,
            ) from None
        except AmbiguousMatch:
            pass

    async def assert_no_button(self, locator: str | None = None, *, id: str | None = None) -> None:
        async def probe() -> None:
            candidates = _filter_state(await self.all(_BUTTON_SELECTOR), id=id, disabled=None)
            if locator is not None:
                candidates = [n for n in candidates if _match_button(n, locator)]
            if candidates:
                raise ExpectationFailed(
                    f'expected not to find button {locator or id!r}',
                    scope=self.scope,
                )

        await self.synchronize(probe)

    async def assert_title(self, title: str, *, exact: bool = False) -> None:
        async def probe() -> None:
            actual = await self.title()
            ok = actual == title if exact else title in actual
            if not ok:
                raise ExpectationFailed(f'expected title {title!r}, got {actual!r}')

        await self.synchronize(probe)

    async def assert_meta(self, name: str, content: str) -> None:
        """Assert a ``<meta name=... content=...>`` tag exists anywhere on the page."""
        async def probe() -> None:
            doc = await self._document()
            values = [m.get('content') for m in doc.find_all('meta', attrs={'name': name})]
            if content not in values:
                raise ExpectationFailed(
                    f'expected meta {name!r} with content {content!r}, got {values!r}'
                )

        await self.synchronize(probe)

    async def assert_current_path(self, path: str) -> None:
        """Assert the current path (including the query string) equals *path*."""
        async def probe() -> None:
            if self.current_path != path:
                raise ExpectationFailed(
                    f'expected current path {path!r}, got {self.current_path!r}'
                )

        await self.synchronize(probe)

    # ── Helpers ────────────────────────────────────────────────────

    def _record(self, action: str, target: str) -> None:
        self._actions.append(ActionRecord(
            action=action,
            target=target,
            url=self.current_url,
            timestamp=datetime.now(timezone.utc).isoformat(),
        ))


# ── Locator matching ───────────────────────────────────────────────


def _match_text(text: str, locator: str) -> MatchKind | None:
    if text == locator:
        return 'exact'
    if locator and locator in text:
        return 'partial'
    return None


def _best(*kinds: MatchKind | None) -> MatchKind | None:
    if 'exact' in kinds:
        return 'exact'
    if 'partial' in kinds:
        return 'partial'
    return None


def _match_link(node: Node, locator: str) -> MatchKind | None:
    if locator in (node.id, node.get('title')):
        return 'exact'
    alts = [img.get('alt') or '' for img in node.tag.find_all('img')]
    return _best(
        _match_text(node.text, locator),
        *(_match_text(alt, locator) for alt in alts),
    )


def _match_button(node: Node, locator: str) -> MatchKind | None:
    if locator in (node.id, node.get('name'), node.get('title')):
        return 'exact'
    if node.tag_name == 'input':
        return _best(
            _match_text(node.get('value') or '', locator),
            _match_text(node.get('alt') or '', locator),
        )
    return _match_text(node.text, locator)


def _match_link_or_button(node: Node, locator: str) -> MatchKind | None:
    if node.tag_name == 'a':
        return _match_link(node, locator)
    return _match_button(node, locator)


def _match_field(node: Node, locator: str) -> MatchKind | None:
    if locator in (node.id, node.get('name'), node.get('placeholder')):
        return 'exact'
    labels = []
    root = node.tag
    while root.parent is not None:
        root = root.parent
    if node.id:
        labels.extend(root.find_all('label', attrs={'for': node.id}))
    wrapping = node.tag.find_parent('label')
    if wrapping is not None:
        labels.append(wrapping)
    return _best(*(_match_text(Node(label).text, locator) for label in labels))


def _filter_state(
    nodes: list[Node],
    *,
    id: str | None,
    disabled: bool | None,
) -> list[Node]:
    if id is not None:
        nodes = [n for n in nodes if n.id == id]
    if disabled is not None:
        nodes = [n for n in nodes if n.is_disabled == disabled]
    return nodes


def _pick(
    kind: str,
    locator: str,
    matches: list[tuple[Node, MatchKind | None]],
    *,
    scope: str | None,
    url: str | None,
) -> Node:
    """Smart match: exact hits win; a lone partial hit is accepted."""
    for wanted in ('exact', 'partial'):
        hits = [n for n, m in matches if m == wanted]
        if len(hits) == 1:
            return hits[0]
        if len(hits) > 1:
            raise AmbiguousMatch(kind, locator, len(hits), scope=scope)
    raise ElementNotFound(kind, locator, scope=scope, url=url)


def _count_problem(
    found: int,
    *,
    count: int | None,
    minimum: int | None,
    maximum: int | None,
) -> str | None:
    if count is not None:
        return None if found == count else f'{_times(count)}'
    if minimum is not None and found < minimum:
        return f'at least {_times(minimum)}'
    if maximum is not None and found > maximum:
        return f'at most {_times(maximum)}'
    if count is None and minimum is None and maximum is None and found == 0:
        return 'at least once'
    return None


def _times(n: int) -> str:
    return 'once' if n == 1 else f'{n} times'


def _clip(text: str, limit: int = 200) -> str:
    return text if len(text) <= limit else f'{text[:limit]}...'

