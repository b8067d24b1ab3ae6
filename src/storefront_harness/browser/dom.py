"""DOM helpers over BeautifulSoup: visible text, visibility and CSS paths.

Both drivers hand the session a parsed :class:`bs4.BeautifulSoup`
document; everything in this module works on that tree so element lookup
behaves the same whether the page came from httpx or from a real browser.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Iterator

from bs4 import BeautifulSoup
from bs4.element import (
    CData,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)

from ..errors import ElementNotFound

if TYPE_CHECKING:
    from .session import Session


_INVISIBLE_TAGS = frozenset({
    'head', 'script', 'style', 'template', 'noscript', 'title', 'meta', 'link',
})

_BLOCK_TAGS = frozenset({
    'address', 'article', 'aside', 'blockquote', 'dd', 'div', 'dl', 'dt',
    'fieldset', 'figcaption', 'figure', 'footer', 'form', 'h1', 'h2', 'h3',
    'h4', 'h5', 'h6', 'header', 'hr', 'li', 'main', 'nav', 'ol', 'p', 'pre',
    'section', 'table', 'tbody', 'td', 'tfoot', 'th', 'thead', 'tr', 'ul',
    'option', 'button', 'label',
})

_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction, CData)

_DISPLAY_NONE_RE = re.compile(r'display\s*:\s*none', re.IGNORECASE)
_WS_RE = re.compile(r'\s+')


def parse_html(markup: str) -> BeautifulSoup:
    """Parse *markup* with the stdlib-backed parser bundled with bs4."""
    return BeautifulSoup(markup, 'html.parser')


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace (including nbsp) to single spaces."""
    return _WS_RE.sub(' ', text.replace('\xa0', ' ')).strip()


def is_hidden_self(tag: Tag) -> bool:
    """True if *tag* itself is not rendered (ignores ancestors)."""
    if tag.name in _INVISIBLE_TAGS:
        return True
    if tag.has_attr('hidden'):
        return True
    if tag.name == 'input' and (tag.get('type') or '').lower() == 'hidden':
        return True
    style = tag.get('style')
    return bool(style and _DISPLAY_NONE_RE.search(style))


def is_visible(tag: Tag) -> bool:
    """True if neither *tag* nor any ancestor is hidden."""
    node: Any = tag
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        if is_hidden_self(node):
            return False
        node = node.parent
    return True


def visible_text(tag: Tag) -> str:
    """Return the rendered text of *tag*, whitespace-normalised."""
    parts: list[str] = []
    _collect_text(tag, parts)
    return normalize_whitespace(''.join(parts))


def _collect_text(tag: Tag, out: list[str]) -> None:
    for child in tag.children:
        if isinstance(child, Tag):
            if is_hidden_self(child):
                continue
            if child.name == 'br':
                out.append('\n')
                continue
            block = child.name in _BLOCK_TAGS
            if block:
                out.append(' ')
            _collect_text(child, out)
            if block:
                out.append(' ')
        elif isinstance(child, NavigableString) and not isinstance(child, _SKIPPED_STRINGS):
            out.append(str(child))


def css_path(tag: Tag) -> str:
    """Build a structural selector that addresses exactly *tag*.

    The path uses ``:nth-of-type`` at every level so it resolves in a real
    browser against the same serialised DOM.
    """
    parts: list[str] = []
    node: Any = tag
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        index = 1
        for sibling in node.previous_siblings:
            if isinstance(sibling, Tag) and sibling.name == node.name:
                index += 1
        parts.append(f'{node.name}:nth-of-type({index})')
        node = node.parent
    return ' > '.join(reversed(parts))


class Node:
    """A DOM element found through a :class:`Session`.

    Queries on a node are synchronous and read the tree as it was when the
    node was found. Actions (``click``, ``set``) go through the session so
    they are traced and routed to the active driver.
    """

    __slots__ = ('tag', '_session')

    def __init__(self, tag: Tag, session: Session | None = None) -> None:
        self.tag = tag
        self._session = session

    def __repr__(self) -> str:
        return f'<Node {self.describe()}>'

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Node) and other.tag is self.tag

    def __hash__(self) -> int:
        return id(self.tag)

    # ── Attributes ─────────────────────────────────────────────────

    @property
    def tag_name(self) -> str:
        return self.tag.name

    def get(self, attribute: str, default: str | None = None) -> str | None:
        value = self.tag.get(attribute, default)
        if isinstance(value, list):
            return ' '.join(value)
        return value

    def __getitem__(self, attribute: str) -> str | None:
        return self.get(attribute)

    @property
    def id(self) -> str | None:
        return self.get('id')

    @property
    def classes(self) -> tuple[str, ...]:
        return tuple(self.tag.get('class') or ())

    @property
    def value(self) -> str | None:
        if self.tag.name == 'textarea':
            return self.tag.get_text()
        if self.tag.name == 'select':
            selected = self.tag.find('option', selected=True) or self.tag.find('option')
            if selected is None:
                return None
            return selected.get('value', selected.get_text())
        return self.get('value')

    @property
    def text(self) -> str:
        return visible_text(self.tag)

    @property
    def all_text(self) -> str:
        """Text including invisible descendants."""
        return normalize_whitespace(self.tag.get_text(' '))

    @property
    def html(self) -> str:
        return str(self.tag)

    @property
    def is_visible(self) -> bool:
        return is_visible(self.tag)

    @property
    def is_disabled(self) -> bool:
        if self.tag.has_attr('disabled'):
            return True
        fieldset = self.tag.find_parent('fieldset')
        return bool(fieldset is not None and fieldset.has_attr('disabled'))

    @property
    def css_path(self) -> str:
        return css_path(self.tag)

    def describe(self) -> str:
        bits = [self.tag.name]
        if self.id:
            bits.append(f'#{self.id}')
        bits.extend(f'.{c}' for c in self.classes)
        return ''.join(bits)

    # ── Queries ────────────────────────────────────────────────────

    def matches(self, selector: str) -> bool:
        return bool(self.tag.css.match(selector))

    def select(self, selector: str, *, visible: bool = True) -> list[Node]:
        return [
            Node(t, self._session)
            for t in self.tag.select(selector)
            if not visible or is_visible(t)
        ]

    def has_selector(self, selector: str, *, visible: bool = True) -> bool:
        return bool(self.select(selector, visible=visible))

    def iter_ancestors(self) -> Iterator[Node]:
        for parent in self.tag.parents:
            if isinstance(parent, BeautifulSoup):
                return
            yield Node(parent, self._session)

    # ── Actions ────────────────────────────────────────────────────

    def _require_session(self) -> Session:
        if self._session is None:
            raise RuntimeError('node is detached from a session')
        return self._session

    async def click(self) -> None:
        await self._require_session().click_node(self)

    async def set(self, value: str | bool) -> None:
        await self._require_session().set_node_value(self, value)


def resolve_in(doc: BeautifulSoup, node: Node, session: Session | None = None) -> Node:
    """Return *node* as it exists in *doc*.

    A node from the same tree is returned unchanged. A node from an older
    snapshot (drivers that re-parse the page) is located again through its
    structural path.

    Raises:
        ElementNotFound: If the element is no longer in the page.
    """
    top: Any = node.tag
    while top.parent is not None:
        top = top.parent
    if top is doc:
        return node
    path = node.css_path
    for tag in doc.select(path):
        if css_path(tag) == path:
            return Node(tag, session)
    raise ElementNotFound('scope', node.describe())
