"""Harness-side records for storefront fixtures.

These mirror the storefront entities a scenario needs to reference (ids,
names, slugs, prices, stock). The storefront owns the real schema; the seed
API maps these payloads onto it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any, ClassVar, TypeVar

from ..money import to_amount

R = TypeVar('R', bound='Record')

_SLUG_RE = re.compile(r'[^a-z0-9]+')


def slugify(value: str) -> str:
    return _SLUG_RE.sub('-', value.lower()).strip('-')


@dataclass
class Record:
    """Base record: an id assigned by the fixture backend on save."""

    kind: ClassVar[str] = ''
    _decimal_fields: ClassVar[tuple[str, ...]] = ()

    id: int | None = None

    @property
    def persisted(self) -> bool:
        return self.id is not None

    def to_payload(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dict (Decimals become strings)."""
        payload: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, list):
                value = list(value)
            payload[f.name] = value
        return payload

    @classmethod
    def from_payload(cls: type[R], payload: dict[str, Any]) -> R:
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in payload.items() if k in known}
        for name in cls._decimal_fields:
            if data.get(name) is not None:
                data[name] = to_amount(data[name])
        return cls(**data)

    def apply(self, payload: dict[str, Any]) -> None:
        """Copy fields from a backend payload onto this record."""
        fresh = type(self).from_payload({**self.to_payload(), **payload})
        for f in fields(self):
            setattr(self, f.name, getattr(fresh, f.name))


@dataclass
class Store(Record):
    kind: ClassVar[str] = 'store'

    name: str = ''
    url: str = 'localhost'
    default_currency: str = 'USD'
    is_default: bool = False


@dataclass
class Taxon(Record):
    kind: ClassVar[str] = 'taxon'

    name: str = ''
    permalink: str = ''
    parent_id: int | None = None

    def to_param(self) -> str:
        return self.permalink


@dataclass
class OptionType(Record):
    kind: ClassVar[str] = 'option_type'

    name: str = ''
    presentation: str = ''


@dataclass
class OptionValue(Record):
    kind: ClassVar[str] = 'option_value'

    option_type_id: int | None = None
    name: str = ''
    presentation: str = ''


@dataclass
class Product(Record):
    kind: ClassVar[str] = 'product'
    _decimal_fields: ClassVar[tuple[str, ...]] = ('price',)

    name: str = ''
    slug: str = ''
    description: str | None = None
    price: Decimal | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    meta_keywords: str | None = None
    taxon_ids: list[int] = field(default_factory=list)
    option_type_ids: list[int] = field(default_factory=list)
    master_id: int | None = None

    def to_param(self) -> str:
        return self.slug or slugify(self.name)


@dataclass
class Variant(Record):
    kind: ClassVar[str] = 'variant'
    _decimal_fields: ClassVar[tuple[str, ...]] = ('price',)

    product_id: int | None = None
    is_master: bool = False
    sku: str = ''
    price: Decimal | None = None
    option_value_ids: list[int] = field(default_factory=list)
    count_on_hand: int = 10
    backorderable: bool = False

    @property
    def in_stock(self) -> bool:
        return self.count_on_hand > 0 or self.backorderable


@dataclass
class Price(Record):
    kind: ClassVar[str] = 'price'
    _decimal_fields: ClassVar[tuple[str, ...]] = ('amount',)

    variant_id: int | None = None
    amount: Decimal | None = None
    currency: str = 'USD'


@dataclass
class Image(Record):
    kind: ClassVar[str] = 'image'

    viewable_kind: str = 'variant'
    viewable_id: int | None = None
    filename: str = ''
    alt: str = ''


RECORD_TYPES: dict[str, type[Record]] = {
    cls.kind: cls
    for cls in (Store, Taxon, OptionType, OptionValue, Product, Variant, Price, Image)
}


def record_type(kind: str) -> type[Record]:
    try:
        return RECORD_TYPES[kind]
    except KeyError:
        raise ValueError(f'Unknown record kind {kind!r}') from None
