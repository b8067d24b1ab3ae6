"""Tests for the httpx-backed browser driver.

Uses httpx.MockTransport so every request the driver makes is recorded and
answered from a small routing table.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio

from storefront_harness.browser.dom import Node, parse_html
from storefront_harness.browser.http_driver import HttpDriver, serialize_form
from storefront_harness.errors import (
    BrowserError,
    DriverNotSupported,
    ElementNotFound,
    NavigationError,
)

BASE = 'http://shop.test'

HOME = """\
<html><body>
  <a id="products" href="/products">Products</a>
  <a id="top" href="#top">Top</a>
  <form id="search" action="/products" method="get">
    <input name="keywords" value="">
    <button type="submit">Search</button>
  </form>
  <form id="cart" action="/orders/populate" method="post">
    <input type="hidden" name="variant_id" value="7">
    <input name="quantity" value="1">
    <input type="checkbox" name="gift" value="yes">
    <input type="radio" name="wrap" value="paper" checked>
    <input type="radio" name="wrap" value="box">
    <select name="size"><option value="s">Small</option><option value="m">Medium</option></select>
    <textarea name="note"></textarea>
    <input name="coupon" value="X" disabled>
    <button id="add" name="commit" value="add" type="submit">Add To Cart</button>
    <button type="button">Noop</button>
  </form>
</body></html>
"""


def _page(title: str) -> str:
    return f'<html><body><h1>{title}</h1></body></html>'


class Recorder:
    """Routing MockTransport handler that remembers every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == '/':
            return httpx.Response(200, html=HOME)
        if path == '/products':
            return httpx.Response(200, html=_page(f"Products {request.url.params.get('keywords', '')}"))
        if path == '/orders/populate':
            return httpx.Response(
                303,
                headers={'location': '/cart', 'set-cookie': 'cart=7-1; Path=/'},
            )
        if path == '/cart':
            return httpx.Response(200, html=_page(f"Cart {request.headers.get('cookie', '')}"))
        if path == '/boom':
            return httpx.Response(500, html=_page('Internal error'))
        return httpx.Response(404, html=_page('Not found'))


@pytest.fixture
def recorder():
    return Recorder()


@pytest_asyncio.fixture
async def driver(recorder):
    async with httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(recorder)) as client:
        yield HttpDriver(BASE, client=client)


async def _node(driver: HttpDriver, selector: str) -> Node:
    return Node((await driver.document()).select_one(selector))


# =====================================================================
# 1. Navigation
# =====================================================================


class TestNavigation:

    @pytest.mark.asyncio
    async def test_document_before_visit(self, driver):
        with pytest.raises(NavigationError, match='No page loaded'):
            await driver.document()

    @pytest.mark.asyncio
    async def test_visit_resolves_against_base(self, driver):
        await driver.visit('/')
        assert driver.current_url == f'{BASE}/'
        assert driver.status_code == 200
        assert (await driver.document()).select_one('#products') is not None

    @pytest.mark.asyncio
    async def test_not_found_is_a_page(self, driver):
        await driver.visit('/missing')
        assert driver.status_code == 404
        assert (await driver.document()).h1.get_text() == 'Not found'

    @pytest.mark.asyncio
    async def test_server_error_raises_but_keeps_page(self, driver):
        with pytest.raises(NavigationError, match='Server error 500'):
            await driver.visit('/boom')
        assert driver.status_code == 500
        assert (await driver.document()).h1.get_text() == 'Internal error'

    @pytest.mark.asyncio
    async def test_server_errors_can_be_pages(self, recorder):
        async with httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(recorder)) as client:
            driver = HttpDriver(BASE, client=client, raise_server_errors=False)
            await driver.visit('/boom')
        assert driver.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_error_becomes_navigation_error(self):
        def handler(request):
            raise httpx.ConnectError('refused', request=request)

        async with httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(handler)) as client:
            driver = HttpDriver(BASE, client=client)
            with pytest.raises(NavigationError, match='ConnectError'):
                await driver.visit('/')

    @pytest.mark.asyncio
    async def test_reset_forgets_page_and_cookies(self, driver):
        await driver.visit('/')
        driver.client.cookies.set('cart', '1-1', domain='shop.test')
        await driver.reset()
        assert driver.current_url is None
        assert not driver.client.cookies
        with pytest.raises(NavigationError):
            await driver.document()


# =====================================================================
# 2. Clicking
# =====================================================================


class TestClick:

    @pytest.mark.asyncio
    async def test_link_follows_href(self, driver):
        await driver.visit('/')
        await driver.click(await _node(driver, '#products'))
        assert driver.current_url == f'{BASE}/products'

    @pytest.mark.asyncio
    async def test_in_page_anchor_does_not_load(self, driver, recorder):
        await driver.visit('/')
        await driver.click(await _node(driver, '#top'))
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_get_form_submits_query(self, driver):
        await driver.visit('/')
        await driver.set_value(await _node(driver, 'input[name=keywords]'), 'mug')
        await driver.click(await _node(driver, '#search button'))
        assert driver.current_url == f'{BASE}/products?keywords=mug'
        assert (await driver.document()).h1.get_text() == 'Products mug'

    @pytest.mark.asyncio
    async def test_post_form_follows_redirect_with_cookie(self, driver, recorder):
        await driver.visit('/')
        await driver.click(await _node(driver, '#add'))

        post = recorder.requests[1]
        assert post.method == 'POST'
        body = parse_qs(post.content.decode())
        assert body['variant_id'] == ['7']
        assert body['commit'] == ['add']
        assert driver.current_url == f'{BASE}/cart'
        assert 'cart=7-1' in (await driver.document()).h1.get_text()

    @pytest.mark.asyncio
    async def test_plain_button_is_ignored(self, driver, recorder):
        await driver.visit('/')
        await driver.click(await _node(driver, 'button[type=button]'))
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_click_toggles_checkbox(self, driver):
        await driver.visit('/')
        box = await _node(driver, 'input[name=gift]')
        await driver.click(box)
        assert box.tag.has_attr('checked')
        await driver.click(box)
        assert not box.tag.has_attr('checked')


# =====================================================================
# 3. Setting values
# =====================================================================


class TestSetValue:

    @pytest.mark.asyncio
    async def test_select_by_label_or_value(self, driver):
        await driver.visit('/')
        select = await _node(driver, 'select')
        await driver.set_value(select, 'Medium')
        assert select.value == 'm'
        await driver.set_value(select, 's')
        assert select.value == 's'

    @pytest.mark.asyncio
    async def test_unknown_option(self, driver):
        await driver.visit('/')
        with pytest.raises(ElementNotFound, match="option 'XL'"):
            await driver.set_value(await _node(driver, 'select'), 'XL')

    @pytest.mark.asyncio
    async def test_radio_unchecks_siblings(self, driver):
        await driver.visit('/')
        await driver.set_value(await _node(driver, 'input[value=box]'), True)
        assert not (await _node(driver, 'input[value=paper]')).tag.has_attr('checked')

    @pytest.mark.asyncio
    async def test_textarea(self, driver):
        await driver.visit('/')
        note = await _node(driver, 'textarea')
        await driver.set_value(note, 'gift wrap please')
        assert note.value == 'gift wrap please'

    @pytest.mark.asyncio
    async def test_disabled_field_rejected(self, driver):
        await driver.visit('/')
        with pytest.raises(BrowserError, match='disabled'):
            await driver.set_value(await _node(driver, 'input[name=coupon]'), 'Y')


# =====================================================================
# 4. Form serialisation
# =====================================================================


class TestSerializeForm:

    def test_browser_rules(self):
        form = parse_html(HOME).select_one('#cart')
        submitter = form.select_one('#add')
        assert serialize_form(form, submitter) == [
            ('variant_id', '7'),
            ('quantity', '1'),
            ('wrap', 'paper'),
            ('size', 's'),
            ('note', ''),
            ('commit', 'add'),
        ]

    def test_no_submitter_omits_buttons(self):
        form = parse_html(HOME).select_one('#cart')
        assert ('commit', 'add') not in serialize_form(form)


# =====================================================================
# 5. Unsupported operations
# =====================================================================


class TestUnsupported:

    @pytest.mark.asyncio
    async def test_alert_and_screenshot(self, driver, tmp_path: Path):
        with pytest.raises(DriverNotSupported, match='accept_alert'):
            await driver.accept_alert(None, 1.0)
        with pytest.raises(DriverNotSupported, match='screenshot'):
            await driver.screenshot(tmp_path / 'x.png')
        assert driver.supports_javascript is False
