"""Tests for the BeautifulSoup DOM helpers."""

import pytest

from storefront_harness.browser.dom import (
    Node,
    css_path,
    is_visible,
    normalize_whitespace,
    parse_html,
    resolve_in,
    visible_text,
)
from storefront_harness.errors import ElementNotFound

PAGE = """
<html>
  <head><title>Shop</title><style>.x { color: red }</style></head>
  <body>
    <div id="main" class="content wide">
      <h1>Ruby&nbsp;on   Rails <!-- hidden-comment --> Tote</h1>
      <p>First<br>Second</p>
      <script>window.alert("hi")</script>
      <span hidden>secret</span>
      <div style="display: none"><a href="/hidden">Hidden link</a></div>
      <input type="hidden" name="token" value="abc">
      <textarea name="notes">Some notes</textarea>
      <select name="size"><option value="s">S</option><option value="m" selected>M</option></select>
      <fieldset disabled><button>Locked</button></fieldset>
    </div>
    <ul><li>One</li><li>Two</li></ul>
  </body>
</html>
"""


@pytest.fixture
def doc():
    return parse_html(PAGE)


def _node(doc, selector):
    return Node(doc.select_one(selector))


# =====================================================================
# 1. Text
# =====================================================================


class TestText:

    def test_normalize_whitespace(self):
        assert normalize_whitespace('  a\xa0 b\n\tc ') == 'a b c'

    def test_visible_text_skips_hidden_and_comments(self, doc):
        text = visible_text(doc.select_one('#main'))
        assert 'Ruby on Rails Tote' in text
        assert 'secret' not in text
        assert 'Hidden link' not in text
        assert 'window.alert' not in text
        assert 'hidden-comment' not in text

    def test_block_and_break_separate_words(self, doc):
        assert visible_text(doc.select_one('p')) == 'First Second'
        assert visible_text(doc.select_one('ul')) == 'One Two'

    def test_all_text_includes_hidden(self, doc):
        assert 'secret' in _node(doc, '#main').all_text


# =====================================================================
# 2. Visibility and paths
# =====================================================================


class TestVisibility:

    def test_hidden_ancestor(self, doc):
        assert is_visible(doc.select_one('h1'))
        assert not is_visible(doc.select_one('a[href="/hidden"]'))
        assert not is_visible(doc.select_one('input[name=token]'))

    def test_css_path_resolves_to_same_tag(self, doc):
        li = doc.select('li')[1]
        path = css_path(li)
        assert path.endswith('li:nth-of-type(2)')
        assert doc.select_one(path) is li


# =====================================================================
# 3. Node
# =====================================================================


class TestNode:

    def test_attributes(self, doc):
        node = _node(doc, '#main')
        assert node.tag_name == 'div'
        assert node.id == 'main'
        assert node.classes == ('content', 'wide')
        assert node.get('class') == 'content wide'
        assert node['missing'] is None
        assert node.describe() == 'div#main.content.wide'
        assert repr(node) == '<Node div#main.content.wide>'

    def test_values(self, doc):
        assert _node(doc, 'textarea').value == 'Some notes'
        assert _node(doc, 'select').value == 'm'
        assert _node(doc, 'input[name=token]').value == 'abc'

    def test_disabled_through_fieldset(self, doc):
        assert _node(doc, 'button').is_disabled
        assert not _node(doc, 'h1').is_disabled

    def test_select_filters_invisible(self, doc):
        main = _node(doc, '#main')
        assert main.select('a') == []
        assert len(main.select('a', visible=False)) == 1
        assert main.has_selector('h1')
        assert main.select('h1')[0].matches('div > h1')

    def test_equality_by_tag(self, doc):
        assert _node(doc, 'h1') == _node(doc, 'h1')
        assert len({_node(doc, 'h1'), _node(doc, 'h1')}) == 1

    def test_ancestors_stop_at_document(self, doc):
        names = [n.tag_name for n in _node(doc, 'h1').iter_ancestors()]
        assert names == ['div', 'body', 'html']

    @pytest.mark.asyncio
    async def test_detached_node_cannot_act(self, doc):
        with pytest.raises(RuntimeError, match='detached'):
            await _node(doc, 'button').click()


# =====================================================================
# 4. resolve_in
# =====================================================================


class TestResolveIn:

    def test_same_document_returns_node(self, doc):
        node = _node(doc, 'h1')
        assert resolve_in(doc, node) is node

    def test_reparsed_document_relocates(self, doc):
        node = Node(doc.select('li')[1])
        fresh = parse_html(PAGE)
        found = resolve_in(fresh, node)
        assert found.tag is fresh.select('li')[1]
        assert found.text == 'Two'

    def test_missing_element_raises(self, doc):
        node = Node(doc.select('li')[1])
        with pytest.raises(ElementNotFound):
            resolve_in(parse_html('<ul><li>Only</li></ul>'), node)
