"""Named fixture bundles applied before a scenario.

A preset is an async callable taking a :class:`FactoryProvider`. Register
new ones with :func:`preset`::

    @preset('empty store')
    async def empty_store(factory):
        await factory.create('store', name='Empty', is_default=True)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Awaitable, Callable

from .factories import FactoryProvider

Preset = Callable[[FactoryProvider], Awaitable[None]]

PRESETS: dict[str, Preset] = {}

CUSTOM_PRODUCTS: tuple[tuple[str, str, str], ...] = (
    ('Ruby on Rails Tote', '65.99', 'Bags'),
    ('Ruby on Rails Bag', '122.99', 'Bags'),
    ('Ruby on Rails Baseball Jersey', '169.99', 'T-Shirts'),
    ('Ruby on Rails Jr. Spaghetti', '169.99', 'T-Shirts'),
    ('Ruby on Rails Ringer T-Shirt', '159.99', 'T-Shirts'),
    ('Ruby on Rails Mug', '83.99', 'Mugs'),
    ('Ruby on Rails Stein', '169.99', 'Mugs'),
    ('Ruby on Rails Hoodie', '229.99', 'Sweaters'),
    ('Ruby on Rails Zip Jacket', '259.99', 'Sweaters'),
)


def preset(name: str) -> Callable[[Preset], Preset]:
    def register(fn: Preset) -> Preset:
        PRESETS[name] = fn
        return fn
    return register


def get_preset(name: str) -> Preset:
    try:
        return PRESETS[name]
    except KeyError:
        known = ', '.join(sorted(PRESETS)) or 'none'
        raise KeyError(f'Unknown preset {name!r} (known: {known})') from None


@preset('custom products')
async def custom_products(factory: FactoryProvider) -> None:
    """Default USD store, a small taxonomy and nine priced products.

    The ``Brand > Ruby on Rails`` taxon is created last and is not attached
    to any product.
    """
    await factory.create('store', name='Spree Test Store', default_currency='USD', is_default=True)

    categories = await factory.create('taxon', name='Categories')
    clothing = await factory.create('taxon', name='Clothing', parent=categories)
    taxons = {
        'Bags': await factory.create('taxon', name='Bags', parent=categories),
        'Mugs': await factory.create('taxon', name='Mugs', parent=categories),
        'T-Shirts': await factory.create('taxon', name='T-Shirts', parent=clothing),
        'Sweaters': await factory.create('taxon', name='Sweaters', parent=clothing),
    }
    brand = await factory.create('taxon', name='Brand')
    await factory.create('taxon', name='Ruby on Rails', permalink='brand/ruby-on-rails', parent=brand)

    for name, price, taxon in CUSTOM_PRODUCTS:
        await factory.create(
            'base_product',
            name=name,
            price=Decimal(price),
            description=f'{name} from the Ruby on Rails collection.',
            taxons=[taxons[taxon]],
        )
