"""Visiting Products: listing, product page, cart, currency and filters.

Every scenario starts from the ``custom products`` preset (nine priced
products in a USD store) with the browser on the products listing.
"""

from __future__ import annotations

from ..errors import ModalNotFound
from ..fixtures.models import Product
from ..scenarios.context import ScenarioContext
from ..scenarios.registry import Suite

JERSEY = 'Ruby on Rails Baseball Jersey'
RINGER = 'Ruby on Rails Ringer T-Shirt'
TOTE = 'Ruby on Rails Tote'

suite = Suite(
    'Visiting Products',
    key='products',
    description='Product listing, product pages, cart, currencies, filters and pagination',
    presets=('custom products',),
)


async def find_product(ctx: ScenarioContext, name: str) -> Product:
    return await ctx.factory.find('product', name=name)


async def add_to_cart(ctx: ScenarioContext, product: Product) -> None:
    await ctx.page.visit(ctx.routes.product_path(product))
    await ctx.page.click_button('add-to-cart-button')


async def expect_product_names(ctx: ScenarioContext, expected: list[str]) -> None:
    names = sorted(n.text for n in await ctx.page.all('.product-component-name') if n.text)
    if names != sorted(expected):
        ctx.fail(f'expected products {sorted(expected)!r}, got {names!r}')


async def create_sample(ctx: ScenarioContext, description: str | None) -> Product:
    return await ctx.factory.create(
        'base_product', description=description, name='Sample', price='19.99',
    )


@suite.let('store')
async def store(ctx):
    return await ctx.factory.default_store()


@suite.let('store_name')
async def store_name(ctx):
    stores = await ctx.factory.all('store')
    return stores[0].name if stores else ''


@suite.before
async def visit_listing(ctx):
    await ctx.page.visit(ctx.routes.products_path())


@suite.scenario(
    'is able to show the shopping cart after adding a product to it', tags=('cart',), js=True,
)
async def shows_cart_after_adding(ctx):
    page = ctx.page
    await page.click_link(RINGER)
    await page.assert_text('$159.99')

    await page.assert_selector('form#add-to-cart-form')
    await page.assert_button(id='add-to-cart-button', disabled=False)
    await page.click_button('add-to-cart-button')
    await page.assert_text(ctx.strings.added_to_cart)


# ── Meta tags and title ────────────────────────────────────────────

meta = suite.describe('meta tags and title')


@meta.let('jersey')
async def jersey(ctx):
    return await find_product(ctx, JERSEY)


@meta.let('metas')
async def metas(ctx):
    return {
        'meta_description': 'Brand new Ruby on Rails Jersey',
        'meta_title': 'Ruby on Rails Baseball Jersey Buy High Quality Geek Apparel',
        'meta_keywords': 'ror, jersey, ruby',
    }


@meta.scenario('returns the correct title when displaying a single product')
async def correct_title(ctx):
    jersey = await ctx.jersey
    await ctx.page.click_link(jersey.name)
    await ctx.page.assert_title(f'{JERSEY} - {await ctx.store_name}')
    async with ctx.page.within('div#product-description'):
        async with ctx.page.within('h1.product-details-title'):
            await ctx.page.assert_text(JERSEY)


@meta.scenario('displays metas')
async def displays_metas(ctx):
    jersey = await ctx.jersey
    await ctx.factory.update(jersey, **await ctx.metas)
    await ctx.page.click_link(jersey.name)
    await ctx.page.assert_meta('description', 'Brand new Ruby on Rails Jersey')
    await ctx.page.assert_meta('keywords', 'ror, jersey, ruby')


@meta.scenario('displays title if set')
async def displays_meta_title(ctx):
    jersey = await ctx.jersey
    await ctx.factory.update(jersey, **await ctx.metas)
    await ctx.page.click_link(jersey.name)
    await ctx.page.assert_title('Ruby on Rails Baseball Jersey Buy High Quality Geek Apparel')


@meta.scenario("doesn't use meta_title as heading on page")
async def meta_title_not_heading(ctx):
    jersey = await ctx.jersey
    await ctx.factory.update(jersey, **await ctx.metas)
    await ctx.page.click_link(jersey.name)
    async with ctx.page.within('h1'):
        await ctx.page.assert_text(jersey.name)
        await ctx.page.assert_no_text(jersey.meta_title)


@meta.scenario('uses product name in title when meta_title set to empty string')
async def empty_meta_title(ctx):
    jersey = await ctx.jersey
    await ctx.factory.update(jersey, meta_title='')
    await ctx.page.click_link(jersey.name)
    await ctx.page.assert_title(f'{JERSEY} - {await ctx.store_name}')


# ── Russian Rubles ─────────────────────────────────────────────────

rubles = suite.context('using Russian Rubles as a currency')


@rubles.before
async def switch_to_rubles(ctx):
    await ctx.factory.update(await ctx.store, default_currency='RUB')


@rubles.let('product', eager=True)
async def ringer_in_rubles(ctx):
    product = await find_product(ctx, RINGER)
    await ctx.factory.add_price(await ctx.factory.master(product), '19.99', 'RUB')
    return product


symbol = rubles.context('uses руб as the currency symbol')


@symbol.scenario('on products page')
async def rubles_on_listing(ctx):
    await ctx.page.visit(ctx.routes.products_path())
    async with ctx.page.within(f'#product_{ctx.product.id}'):
        async with ctx.page.within('.product-component-price'):
            await ctx.page.assert_text(ctx.money('19.99', 'RUB'))


@symbol.scenario('on product page')
async def rubles_on_product_page(ctx):
    await ctx.page.visit(ctx.routes.product_path(ctx.product))
    async with ctx.page.within('.price'):
        await ctx.page.assert_text(ctx.money('19.99', 'RUB'))


@symbol.scenario('when adding a product to the cart', tags=('cart',), js=True)
async def rubles_in_cart(ctx):
    await add_to_cart(ctx, ctx.product)
    async with ctx.page.within('.shopping-cart-total-amount'):
        await ctx.page.assert_text(ctx.money('19.99', 'RUB'))


@symbol.scenario("when on the 'address' state of the cart", tags=('cart',), js=True)
async def rubles_on_address_step(ctx):
    await add_to_cart(ctx, ctx.product)
    await ctx.page.click_link(ctx.strings.checkout)
    async with ctx.page.within('#summary-order-total'):
        await ctx.page.assert_text(ctx.money('19.99', 'RUB'))


@suite.scenario('is able to search for a product')
async def search(ctx):
    await ctx.page.fill_in('keywords', with_='shirt')
    await (await ctx.page.first('input[type=submit]')).click()
    await ctx.page.assert_selector('.product-component-name', count=1)


# ── Variants ───────────────────────────────────────────────────────

variants = suite.context('a product with variants')


@variants.let('product')
async def jersey_with_variants(ctx):
    return await find_product(ctx, JERSEY)


@variants.let('option_value')
async def option_value(ctx):
    return await ctx.factory.create('option_value')


@variants.let('variant', eager=True)
async def unsaved_variant(ctx):
    product = await ctx.product
    return await ctx.factory.build('variant', price='5.59', product=product, option_values=[])


@variants.before
async def attach_variant(ctx):
    product = await ctx.product
    option_value = await ctx.option_value
    await ctx.factory.attach_image(product, 'thinking-cat.jpg')
    await ctx.factory.add_option_type(product, option_value.option_type_id)
    await ctx.factory.add_option_value(ctx.variant, option_value)
    await ctx.factory.save(ctx.variant)


@variants.scenario('is displayed')
async def variant_product_displayed(ctx):
    product = await ctx.product
    await ctx.page.click_link(product.name)


@variants.scenario('displays price of first variant listed', js=True)
async def first_variant_price(ctx):
    product = await ctx.product
    await ctx.page.click_link(product.name)
    async with ctx.page.within('#product-price'):
        await ctx.page.assert_text(ctx.variant.price)
        await ctx.page.assert_no_text(ctx.strings.out_of_stock)


@variants.scenario("doesn't display out of stock for master product")
async def master_out_of_stock(ctx):
    product = await ctx.product
    await ctx.factory.update_all(
        'variant',
        {'product_id': product.id, 'is_master': True},
        count_on_hand=0,
        backorderable=False,
    )
    await ctx.page.click_link(product.name)
    async with ctx.page.within('#product-price'):
        await ctx.page.assert_no_text(ctx.strings.out_of_stock)


@variants.scenario("doesn't display cart form if all variants (including master) are out of stock")
async def all_variants_out_of_stock(ctx):
    product = await ctx.product
    await ctx.factory.update_all(
        'variant',
        {'product_id': product.id},
        count_on_hand=0,
        backorderable=False,
    )
    await ctx.page.click_link(product.name)
    async with ctx.page.within('[data-hook=product_price]'):
        await ctx.page.assert_no_text(ctx.strings.add_to_cart)


variant_images = suite.context('a product with variants, images only for the variants')


@variant_images.let('product')
async def jersey_with_variant_images(ctx):
    return await find_product(ctx, JERSEY)


@variant_images.let('variant1')
async def first_variant(ctx):
    return await ctx.factory.create('variant', product=await ctx.product, price='9.99')


@variant_images.let('variant2')
async def second_variant(ctx):
    return await ctx.factory.create('variant', product=await ctx.product, price='10.99')


@variant_images.before
async def image_on_first_variant(ctx):
    await ctx.factory.attach_image(await ctx.variant1, 'thinking-cat.jpg')


@variant_images.scenario('does not display no image available')
async def variant_image_on_listing(ctx):
    await ctx.page.visit(ctx.routes.products_path())
    await ctx.page.assert_selector("img[data-src$='thinking-cat.jpg']")


# ── Stock ──────────────────────────────────────────────────────────

out_of_stock = suite.context('an out of stock product without variants')


@out_of_stock.let('product')
async def tote(ctx):
    return await find_product(ctx, TOTE)


@out_of_stock.before
async def empty_master_stock(ctx):
    product = await ctx.product
    await ctx.factory.update_all(
        'variant',
        {'product_id': product.id, 'is_master': True},
        count_on_hand=0,
        backorderable=False,
    )


@out_of_stock.scenario('does display out of stock for master product')
async def shows_out_of_stock(ctx):
    product = await ctx.product
    await ctx.page.click_link(product.name)
    async with ctx.page.within('#inside-product-cart-form'):
        await ctx.page.assert_text(ctx.strings.out_of_stock)


@out_of_stock.scenario("doesn't display cart form if master is out of stock")
async def hides_cart_form(ctx):
    product = await ctx.product
    await ctx.page.click_link(product.name)
    async with ctx.page.within('[data-hook=product_price]'):
        await ctx.page.assert_no_text(ctx.strings.add_to_cart)


# ── Taxons ─────────────────────────────────────────────────────────

taxons = suite.context('product with taxons')


@taxons.let('product')
async def tote_with_taxons(ctx):
    return await find_product(ctx, TOTE)


@taxons.let('taxon')
async def first_taxon(ctx):
    return (await ctx.factory.taxons(await ctx.product))[0]


@taxons.scenario('displays breadcrumbs for the default taxon when none selected')
async def default_breadcrumbs(ctx):
    product = await ctx.product
    await ctx.page.click_link(product.name)
    await ctx.page.assert_current_path(ctx.routes.product_path(product))
    async with ctx.page.within('#breadcrumbs'):
        await ctx.page.assert_text((await ctx.taxon).name)


@taxons.scenario('displays selected taxon in breadcrumbs')
async def selected_breadcrumbs(ctx):
    product = await ctx.product
    taxon = (await ctx.factory.all('taxon'))[-1]
    await ctx.factory.add_taxon(product, taxon)
    await ctx.page.visit(ctx.routes.taxon_path(taxon))
    await ctx.page.click_link(product.name)
    await ctx.page.assert_current_path(ctx.routes.product_path(product, taxon_id=taxon.id))
    async with ctx.page.within('#breadcrumbs'):
        await ctx.page.assert_text(taxon.name)


@suite.scenario('is able to hide products without price')
async def hides_products_without_price(ctx):
    await ctx.page.assert_selector('.product-component-name', count=9)
    await ctx.factory.configure(show_products_without_price=False)
    await ctx.factory.update(await ctx.store, default_currency='CAD')
    await ctx.page.visit(ctx.routes.products_path())
    await ctx.page.assert_no_selector('.product-component-name')


# ── Price filters ──────────────────────────────────────────────────


@suite.scenario('is able to display products priced under 50 dollars')
async def under_50(ctx):
    async with ctx.page.within('#collapseFilterPrice'):
        await ctx.page.click_on('Less than $50')
    await ctx.page.assert_no_selector('.product-component-name')
    await ctx.page.assert_text(ctx.strings.no_results)


@suite.scenario('is able to display products priced between 50 and 100 dollars')
async def between_50_and_100(ctx):
    async with ctx.page.within('#collapseFilterPrice'):
        await ctx.page.click_on('$50 - $100')
    await ctx.page.assert_selector('.product-component-name', count=2)
    await expect_product_names(ctx, ['Ruby on Rails Mug', TOTE])


@suite.scenario('is able to display products priced between 101 and 150 dollars')
async def between_101_and_150(ctx):
    async with ctx.page.within('#collapseFilterPrice'):
        await ctx.page.click_on('$101 - $150')
    await ctx.page.assert_selector('.product-component-name', count=1)
    await expect_product_names(ctx, ['Ruby on Rails Bag'])


@suite.scenario('is able to display products priced between 151 and 200 dollars')
async def between_151_and_200(ctx):
    async with ctx.page.within('#collapseFilterPrice'):
        await ctx.page.click_on('$151 - $200')
    await ctx.page.assert_selector('.product-component-name', count=4)
    await expect_product_names(ctx, [
        JERSEY,
        'Ruby on Rails Jr. Spaghetti',
        RINGER,
        'Ruby on Rails Stein',
    ])


pagination = suite.context('pagination')


@pagination.before
async def three_per_page(ctx):
    await ctx.factory.configure(products_per_page=3)


@pagination.scenario('is able to display products priced between 151 and 200 dollars across multiple pages')
async def paginated_filter(ctx):
    page = ctx.page
    await (await page.find('#filtersPrice')).click()
    async with page.within('#collapseFilterPrice'):
        await page.click_on('$151 - $200')
    await page.assert_selector('.product-component-name', count=3)
    next_page = await page.all('.next_page')
    async with page.within(next_page[0]):
        await (await page.find('.page-link')).click()
    await page.assert_selector('.product-component-name', count=1)


# ── Cart and pricing edge cases ────────────────────────────────────


@suite.scenario(
    'is able to put a product without a description in the cart', tags=('cart',), js=True,
)
async def cart_without_description(ctx):
    product = await create_sample(ctx, None)
    page = ctx.page
    await page.visit(ctx.routes.product_path(product))
    await page.assert_selector('form#add-to-cart-form')
    await page.assert_button(id='add-to-cart-button', disabled=False)
    await page.assert_text(ctx.strings.no_description)
    await page.click_button('add-to-cart-button')
    await page.assert_text(ctx.strings.added_to_cart)
    await page.assert_text(ctx.strings.no_description)


@suite.scenario('is not able to put a product without a current price in the cart')
async def no_price_in_currency(ctx):
    product = await create_sample(ctx, None)
    await ctx.factory.update(await ctx.store, default_currency='CAN')
    await ctx.factory.configure(show_products_without_price=True)
    await ctx.page.visit(ctx.routes.product_path(product))
    await ctx.page.assert_text(ctx.strings.not_available_in_currency)
    await ctx.page.assert_no_text('add-to-cart-button')


@suite.scenario('returns the correct title when displaying a single product')
async def product_heading(ctx):
    product = await find_product(ctx, JERSEY)
    await ctx.page.click_link(product.name)
    async with ctx.page.within('div#product-description'):
        async with ctx.page.within('h1.product-details-title'):
            await ctx.page.assert_text(JERSEY)


# ── Description rendering ──────────────────────────────────────────

description = suite.context('when rendering the product description')
script_tag = description.context('when <script> tag exists')

SCRIPT = '<script>window.alert("Message")</script>'


@script_tag.scenario('prevents the script from running', js=True)
async def script_does_not_run(ctx):
    product = await create_sample(ctx, SCRIPT)
    try:
        await ctx.page.accept_alert(
            lambda: ctx.page.visit(ctx.routes.product_path(product)), wait=1,
        )
    except ModalNotFound:
        return
    ctx.fail('XSS alert exists')


@script_tag.scenario('returns sanitized js text in html')
async def script_rendered_as_text(ctx):
    product = await create_sample(ctx, SCRIPT)
    await ctx.page.visit(ctx.routes.product_path(product))
    async with ctx.page.within('#product-description-long'):
        text = await ctx.page.text()
    if text != 'window.alert("Message")':
        ctx.fail(f'expected sanitized script text, got {text!r}')


@description.context('when <a> tag exists').scenario('returns <a> tag in html')
async def keeps_links(ctx):
    product = await create_sample(ctx, '<a href="example.com">link</a>')
    await ctx.page.visit(ctx.routes.product_path(product))
    async with ctx.page.within('[data-hook=product_description]'):
        node = await ctx.page.first('[data-hook=description]')
        if not node.has_selector('a'):
            ctx.fail('expected an <a> tag in the description')


@description.context('when there are multiple lines').scenario('returns <p> tag in html')
async def paragraphs(ctx):
    product = await create_sample(ctx, 'first paragraph\n\nsecond paragraph')
    await ctx.page.visit(ctx.routes.product_path(product))
    async with ctx.page.within('[data-hook=product_description]'):
        node = await ctx.page.first('[data-hook=description]')
        if not node.has_selector('p'):
            ctx.fail('expected <p> tags in the description')
