"""Fixture/factory provider: records, backends, factories and presets."""

from .backend import FixtureBackend, HttpFixtureBackend, InMemoryFixtureBackend
from .factories import Association, FactoryDefinition, FactoryProvider
from .models import (
    RECORD_TYPES,
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
from .presets import PRESETS, Preset, get_preset, preset

__all__ = [
    'Association',
    'FactoryDefinition',
    'FactoryProvider',
    'FixtureBackend',
    'HttpFixtureBackend',
    'Image',
    'InMemoryFixtureBackend',
    'OptionType',
    'OptionValue',
    'PRESETS',
    'Preset',
    'Price',
    'Product',
    'RECORD_TYPES',
    'Record',
    'Store',
    'Taxon',
    'Variant',
    'get_preset',
    'preset',
    'record_type',
    'slugify',
]
