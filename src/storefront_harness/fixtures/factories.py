"""Factory provider: FactoryBot-style construction of storefront records.

Factories are named attribute templates. A default may be a plain value,
a callable of the factory's sequence number, or an :class:`Association`
that creates the related record on demand. Record-valued overrides are
linked by id (``product=product`` becomes ``product_id``).

Usage::

    factory = FactoryProvider(backend)
    product = await factory.create('base_product', name='Sample', price='19.99')
    variant = await factory.build('variant', product=product, price='5.59')
    await factory.save(variant)
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping

from ..errors import FixtureError
from ..money import to_amount
from ..observability import get_logger
from .backend import FixtureBackend
from .models import (
    Image,
    OptionType,
    OptionValue,
    Price,
    Product,
    Record,
    Store,
    Taxon,
    Variant,
    record_type,
    slugify,
)

log = get_logger(__name__)

_PLURAL_LINKS = {
    'taxons': 'taxon_ids',
    'option_types': 'option_type_ids',
    'option_values': 'option_value_ids',
}


@dataclass(frozen=True, slots=True)
class Association:
    """Default that creates a record through another factory.

    ``many=True`` produces a one-element list (for ``taxons``,
    ``option_values`` and similar plural links).
    """

    factory: str
    many: bool = False
    overrides: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FactoryDefinition:
    name: str
    kind: str
    defaults: Mapping[str, Any]
    parent: str | None = None


def _default_definitions() -> dict[str, FactoryDefinition]:
    defs = [
        FactoryDefinition('store', 'store', {
            'name': lambda n: f'Spree Test Store {n}',
            'url': 'www.example.com',
            'default_currency': 'USD',
            'is_default': False,
        }),
        FactoryDefinition('taxon', 'taxon', {
            'name': lambda n: f'taxon_{n}',
        }),
        FactoryDefinition('option_type', 'option_type', {
            'name': lambda n: f'foo-size-{n}',
            'presentation': 'Size',
        }),
        FactoryDefinition('option_value', 'option_value', {
            'name': lambda n: f'Size-{n}',
            'presentation': 'S',
            'option_type': Association('option_type'),
        }),
        FactoryDefinition('base_product', 'product', {
            'name': lambda n: f'Product #{n}',
            'description': 'As seen on TV!',
            'price': Decimal('19.99'),
        }),
        FactoryDefinition('product', 'product', {
            'taxons': Association('taxon', many=True),
        }, parent='base_product'),
        FactoryDefinition('variant', 'variant', {
            'product': Association('base_product'),
            'price': Decimal('19.99'),
            'sku': lambda n: f'SKU-{n}',
            'option_values': Association('option_value', many=True),
        }),
        FactoryDefinition('image', 'image', {
            'filename': 'thinking-cat.jpg',
        }),
    ]
    return {d.name: d for d in defs}


class FactoryProvider:
    """Build and persist fixture records through a :class:`FixtureBackend`.

    Args:
        backend: Where records are saved.
        currency: Currency of prices created from a product/variant ``price``.
    """

    def __init__(self, backend: FixtureBackend, *, currency: str = 'USD') -> None:
        self.backend = backend
        self.currency = currency
        self._definitions = _default_definitions()
        self._sequences: dict[str, itertools.count] = {}

    # ── Definitions ────────────────────────────────────────────────

    def define(
        self,
        factory_name: str,
        kind: str | None = None,
        *,
        parent: str | None = None,
        **defaults: Any,
    ) -> FactoryDefinition:
        """Register (or replace) a factory."""
        if kind is None:
            if parent is None:
                raise ValueError('define() needs a kind or a parent factory')
            kind = self._definition(parent).kind
        record_type(kind)
        definition = FactoryDefinition(factory_name, kind, defaults, parent=parent)
        self._definitions[factory_name] = definition
        return definition

    def _definition(self, name: str) -> FactoryDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise FixtureError(f'Unknown factory {name!r}') from None

    def _defaults(self, name: str) -> dict[str, Any]:
        definition = self._definition(name)
        merged = self._defaults(definition.parent) if definition.parent else {}
        merged.update(definition.defaults)
        return merged

    def sequence(self, name: str) -> int:
        return next(self._sequences.setdefault(name, itertools.count(1)))

    # ── Strategies ─────────────────────────────────────────────────

    async def build(self, factory_name: str, **overrides: Any) -> Record:
        """Return an unsaved record; associations are created as needed."""
        definition = self._definition(factory_name)
        n = self.sequence(factory_name)

        attrs: dict[str, Any] = {}
        for key, default in self._defaults(factory_name).items():
            if key in overrides:
                continue
            attrs[key] = await self._resolve_default(default, n)
        attrs.update(overrides)

        record = record_type(definition.kind).from_payload(_link(attrs))
        _finalize(record)
        return record

    async def create(self, factory_name: str, **overrides: Any) -> Record:
        return await self.save(await self.build(factory_name, **overrides))

    async def create_list(
        self, factory_name: str, count: int, **overrides: Any,
    ) -> list[Record]:
        return [await self.create(factory_name, **overrides) for _ in range(count)]

    async def _resolve_default(self, default: Any, n: int) -> Any:
        if isinstance(default, Association):
            related = await self.create(default.factory, **dict(default.overrides))
            return [related] if default.many else related
        if callable(default):
            return default(n)
        if isinstance(default, (list, dict)):
            return type(default)(default)
        return default

    # ── Persistence ────────────────────────────────────────────────

    async def save(self, record: Record) -> Record:
        """Persist *record* (create or update) and run its after-create hooks."""
        if record.persisted:
            return await self.update(record, **_without_id(record.to_payload()))

        payload = _without_id(record.to_payload())
        created = await self.backend.create(record.kind, payload)
        record.apply(created)
        log.info('fixture_created', kind=record.kind, id=record.id)

        if isinstance(record, Product):
            await self._create_master(record)
        elif isinstance(record, Variant) and not record.is_master and record.price is not None:
            await self.add_price(record, record.price, self.currency)
        return record

    async def _create_master(self, product: Product) -> None:
        master = Variant(
            product_id=product.id,
            is_master=True,
            sku=f'{product.to_param()}-master',
            price=product.price,
        )
        created = await self.backend.create(master.kind, _without_id(master.to_payload()))
        master.apply(created)
        if product.price is not None:
            await self.add_price(master, product.price, self.currency)
        await self.update(product, master_id=master.id)

    async def update(self, record: Record, **attrs: Any) -> Record:
        if not record.persisted:
            raise FixtureError('Cannot update an unsaved record', kind=record.kind)
        updated = await self.backend.update(record.kind, record.id, _link(attrs))
        record.apply(updated)
        return record

    async def update_all(self, kind: str, where: Mapping[str, Any], **values: Any) -> int:
        return await self.backend.update_all(kind, dict(where), _link(values))

    async def reload(self, record: Record) -> Record:
        record.apply(await self.backend.find(record.kind, id=record.id))
        return record

    # ── Lookups ────────────────────────────────────────────────────

    async def find(self, kind: str, **where: Any) -> Any:
        payload = await self.backend.find(kind, **where)
        return record_type(kind).from_payload(payload)

    async def all(self, kind: str, **where: Any) -> list[Any]:
        cls = record_type(kind)
        return [cls.from_payload(p) for p in await self.backend.all(kind, **where)]

    async def default_store(self) -> Store:
        return await self.find('store', is_default=True)

    async def master(self, product: Product) -> Variant:
        return await self.find('variant', product_id=product.id, is_master=True)

    async def variants_including_master(self, product: Product) -> list[Variant]:
        return await self.all('variant', product_id=product.id)

    async def taxons(self, product: Product) -> list[Taxon]:
        found = [await self.find('taxon', id=tid) for tid in product.taxon_ids]
        return found

    # ── Relationship helpers ───────────────────────────────────────

    async def add_price(
        self,
        variant: Variant,
        amount: Decimal | float | str,
        currency: str,
    ) -> Price:
        price = Price(variant_id=variant.id, amount=to_amount(amount), currency=currency)
        return await self.save(price)

    async def attach_image(
        self,
        viewable: Product | Variant,
        filename: str,
        *,
        alt: str = '',
    ) -> Image:
        """Attach an image; product images hang off the master variant."""
        if isinstance(viewable, Product):
            variant_id = viewable.master_id
        else:
            variant_id = viewable.id
        image = Image(viewable_kind='variant', viewable_id=variant_id, filename=filename, alt=alt)
        return await self.save(image)

    async def add_taxon(self, product: Product, taxon: Taxon) -> Product:
        if taxon.id in product.taxon_ids:
            return product
        return await self.update(product, taxon_ids=[*product.taxon_ids, taxon.id])

    async def add_option_type(self, product: Product, option_type: OptionType | int) -> Product:
        type_id = option_type if isinstance(option_type, int) else option_type.id
        if type_id in product.option_type_ids:
            return product
        return await self.update(product, option_type_ids=[*product.option_type_ids, type_id])

    async def add_option_value(self, variant: Variant, option_value: OptionValue) -> Variant:
        variant.option_value_ids = [*variant.option_value_ids, option_value.id]
        if variant.persisted:
            return await self.update(variant, option_value_ids=variant.option_value_ids)
        return variant

    async def configure(self, **prefs: Any) -> dict[str, Any]:
        """Set storefront preferences (e.g. ``products_per_page=3``)."""
        return await self.backend.configure(**prefs)


# ── Helpers ────────────────────────────────────────────────────────


def _link(attrs: Mapping[str, Any]) -> dict[str, Any]:
    """Replace record-valued attributes with the ids they refer to."""
    linked: dict[str, Any] = {}
    for key, value in attrs.items():
        if key in _PLURAL_LINKS:
            linked[_PLURAL_LINKS[key]] = [_record_id(v) for v in value]
        elif isinstance(value, Record):
            linked[f'{key}_id'] = _record_id(value)
        elif isinstance(value, Decimal):
            linked[key] = str(value)
        else:
            linked[key] = value
    return linked


def _record_id(value: Record | int) -> int:
    if isinstance(value, Record):
        if value.id is None:
            raise FixtureError('Cannot link an unsaved record', kind=value.kind)
        return value.id
    return int(value)


def _finalize(record: Record) -> None:
    if isinstance(record, Product) and not record.slug:
        record.slug = slugify(record.name)
    elif isinstance(record, Taxon) and not record.permalink:
        record.permalink = slugify(record.name)


def _without_id(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if k != 'id'}
