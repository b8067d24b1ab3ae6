"""Tests for suite registration and flattening."""

from __future__ import annotations

import pytest

from storefront_harness.scenarios.registry import (
    Suite,
    SuiteRegistry,
    select_scenarios,
)


def _suite() -> Suite:
    suite = Suite('Visiting Products', key='products', presets=('custom products',), tags=('smoke',))

    @suite.before
    async def open_listing(ctx):
        pass

    @suite.after
    async def outer_after(ctx):
        pass

    @suite.scenario('searches')
    async def searches(ctx):
        pass

    meta = suite.describe('meta tags', tags=('meta',))

    @meta.let('jersey')
    async def jersey(ctx):
        return 'jersey'

    @meta.after
    async def inner_after(ctx):
        pass

    @meta.scenario('shows the title', tags=('title',))
    async def shows_title(ctx):
        pass

    scripts = meta.context('with scripts', presets=('extra',))

    @scripts.scenario('does not run them', js=True)
    async def no_scripts(ctx):
        pass

    @suite.scenario('filters by price')
    async def filters(ctx):
        pass

    return suite


class TestSuiteFlattening:

    def test_ids_and_titles_in_declaration_order(self):
        definitions = _suite().scenarios()
        assert [d.scenario_id for d in definitions] == [
            'products-001', 'products-002', 'products-003', 'products-004',
        ]
        assert [d.title for d in definitions] == [
            'Visiting Products searches',
            'Visiting Products meta tags shows the title',
            'Visiting Products meta tags with scripts does not run them',
            'Visiting Products filters by price',
        ]

    def test_outer_setup_first_inner_teardown_first(self):
        definition = _suite().scenarios()[1]
        assert [s.label for s in definition.steps] == [
            'before open_listing', 'let jersey', 'shows the title',
        ]
        assert [s.label for s in definition.teardown] == [
            'after inner_after', 'after outer_after',
        ]
        assert definition.step_count == 5

    def test_tags_and_presets_inherited(self):
        definitions = _suite().scenarios()
        assert definitions[0].tags == frozenset({'smoke'})
        assert definitions[1].tags == frozenset({'smoke', 'meta', 'title'})
        assert definitions[2].tags == frozenset({'smoke', 'meta', 'js'})
        assert definitions[2].presets == ('custom products', 'extra')
        assert definitions[2].js is True

    def test_source_names_the_body(self):
        definition = _suite().scenarios()[0]
        assert definition.source.endswith('_suite.<locals>.searches')

    def test_key_derived_from_name(self):
        assert Suite('Checkout & Payment').key == 'checkout-payment'

    def test_eager_let_label(self):
        suite = Suite('Cart')

        @suite.let('variant', eager=True)
        async def variant(ctx):
            return 'variant'

        @suite.scenario('shows the variant')
        async def shows(ctx):
            pass

        [definition] = suite.scenarios()
        assert [s.label for s in definition.steps] == ['let! variant', 'shows the variant']

    def test_full_name_and_repr(self):
        suite = Suite('Cart')
        child = suite.context('empty')
        assert child.full_name == 'Cart empty'
        assert repr(child) == "<Group 'Cart empty'>"


class TestSelectScenarios:

    def test_only_matches_id_exactly(self):
        selected = select_scenarios(_suite().scenarios(), only='products-003')
        assert [d.scenario_id for d in selected] == ['products-003']

    def test_only_matches_title_substring_case_insensitively(self):
        selected = select_scenarios(_suite().scenarios(), only='META TAGS')
        assert [d.scenario_id for d in selected] == ['products-002', 'products-003']

    def test_tags_must_all_match(self):
        selected = select_scenarios(_suite().scenarios(), tags=['meta', 'title'])
        assert [d.scenario_id for d in selected] == ['products-002']

    def test_exclude_tags(self):
        selected = select_scenarios(_suite().scenarios(), exclude_tags=['js'])
        assert len(selected) == 3


class TestSuiteRegistry:

    def test_register_and_get(self):
        registry = SuiteRegistry()
        suite = registry.register(Suite('Cart'))
        assert registry.get('cart') is suite
        assert list(registry) == [suite]
        assert len(registry) == 1

    def test_duplicate_key_rejected(self):
        registry = SuiteRegistry()
        registry.register(Suite('Cart'))
        with pytest.raises(ValueError, match='already registered'):
            registry.register(Suite('Cart'))

    def test_unknown_key_lists_known(self):
        registry = SuiteRegistry()
        registry.register(Suite('Cart'))
        with pytest.raises(KeyError, match=r"Unknown suite 'nope' \(known: cart\)"):
            registry.get('nope')
