"""Storefront contract: route helpers and the literal strings scenarios expect.

These are the contract points between the harness and the storefront
under test. Route templates come from :class:`HarnessSettings` so a
storefront mounted under a different prefix only needs configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol
from urllib.parse import urlencode

from .settings import DEFAULT_ROUTES


class Sluggable(Protocol):
    def to_param(self) -> str: ...


class StorefrontRoutes:
    """Build storefront paths from route templates."""

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self._templates = dict(templates or DEFAULT_ROUTES)

    def _build(self, name: str, query: Mapping[str, Any], **params: str) -> str:
        path = self._templates[name].format(**params)
        clean = {k: v for k, v in query.items() if v is not None}
        if clean:
            path = f'{path}?{urlencode(clean)}'
        return path

    def products_path(self, **query: Any) -> str:
        return self._build('products', query)

    def product_path(self, product: Sluggable | str, **query: Any) -> str:
        slug = product if isinstance(product, str) else product.to_param()
        return self._build('product', query, slug=slug)

    def taxon_path(self, taxon: Sluggable | str, **query: Any) -> str:
        permalink = taxon if isinstance(taxon, str) else taxon.to_param()
        return self._build('taxon', query, permalink=permalink)

    def cart_path(self) -> str:
        return self._build('cart', {})

    def checkout_path(self) -> str:
        return self._build('checkout', {})


@dataclass(frozen=True, slots=True)
class StorefrontStrings:
    """Localised strings rendered by the storefront (English defaults)."""

    add_to_cart: str = 'Add To Cart'
    added_to_cart: str = 'Added to cart successfully!'
    out_of_stock: str = 'Out of Stock'
    no_results: str = 'No results'
    no_description: str = 'This product has no description'
    not_available_in_currency: str = 'This product is not available in the selected currency.'
    checkout: str = 'Checkout'
