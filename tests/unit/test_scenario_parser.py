"""Tests for the declarative scenario parser.

Validates:
  - H1 extraction, step parsing, preconditions (presets, config, currency)
  - Command grammar: every verb, counts, ``within`` scopes, unknown commands
  - Directory scanning and file parsing
  - Compilation to ScenarioDefinition and command dispatch onto a Session
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from storefront_harness.scenarios.parser import (
    BrowserCommand,
    parse_command,
    parse_scenario,
    parse_scenario_file,
    perform,
    scan_scenario_dir,
    to_definition,
)


# ── Test fixtures ──────────────────────────────────────────────────


MINIMAL_SCENARIO = """\
# S-001: Search for a product by keyword

## Preconditions
- `custom products`

## Steps
1. visit "/products"
2. fill in "keywords" with "shirt"
3. click button "Search"
4. expect css ".product-component-name" once
"""

CONFIGURED_SCENARIO = """\
# S-12: Products without a price are hidden

js: true
critical_path: false

## Preconditions
- custom products
- config show_products_without_price: false
- config products_per_page: 3
- currency cad

## Steps
1. visit "/products"
2. within "#collapseFilterPrice": click on "$50 - $100"
3. expect no css ".product-component-name"
"""


# =====================================================================
# 1. Header and sections
# =====================================================================


class TestParserHeader:

    def test_extracts_scenario_id(self):
        assert parse_scenario(MINIMAL_SCENARIO).scenario_id == 'S-001'

    def test_extracts_title(self):
        assert parse_scenario(MINIMAL_SCENARIO).title == 'Search for a product by keyword'

    def test_zero_padded_id(self):
        assert parse_scenario(CONFIGURED_SCENARIO).scenario_id == 'S-012'

    def test_missing_h1_raises(self):
        with pytest.raises(ValueError, match='No scenario header'):
            parse_scenario('## Steps\n1. visit "/"\n')

    def test_source_path_recorded(self):
        spec = parse_scenario(MINIMAL_SCENARIO, source_path='scenarios/s001.md')
        assert spec.source_path == 'scenarios/s001.md'


class TestParserSections:

    def test_extracts_numbered_steps(self):
        spec = parse_scenario(MINIMAL_SCENARIO)
        assert spec.step_count == 4
        assert spec.steps[0] == 'visit "/products"'

    def test_preset_backticks_stripped(self):
        assert parse_scenario(MINIMAL_SCENARIO).presets == ('custom products',)

    def test_config_values_coerced(self):
        spec = parse_scenario(CONFIGURED_SCENARIO)
        assert spec.config == {'show_products_without_price': False, 'products_per_page': 3}
        assert spec.presets == ('custom products',)

    def test_currency_uppercased(self):
        assert parse_scenario(CONFIGURED_SCENARIO).currency == 'CAD'

    def test_markers(self):
        minimal = parse_scenario(MINIMAL_SCENARIO)
        configured = parse_scenario(CONFIGURED_SCENARIO)
        assert (minimal.js, minimal.critical_path) == (False, True)
        assert (configured.js, configured.critical_path) == (True, False)

    def test_markers_only_on_their_own_line(self):
        spec = parse_scenario(
            '# S-004: Marker text inside a step\n\n'
            '## Steps\n'
            '1. visit "/products"\n'
            '2. expect text "js: true"\n'
            '3. expect text "critical_path: false"\n'
        )
        assert (spec.js, spec.critical_path) == (False, True)

    def test_missing_sections_are_empty(self):
        spec = parse_scenario('# S-003: Empty\n')
        assert spec.preconditions == ()
        assert spec.commands == ()


# =====================================================================
# 2. Command grammar
# =====================================================================


class TestParseCommand:

    @pytest.mark.parametrize('text, action, args', [
        ('visit "/products"', 'visit', ('/products',)),
        ('click link "Ruby on Rails Tote"', 'click_link', ('Ruby on Rails Tote',)),
        ('click button "add-to-cart-button"', 'click_button', ('add-to-cart-button',)),
        ('click on "$50 - $100"', 'click_on', ('$50 - $100',)),
        ('fill in "keywords" with "shirt"', 'fill_in', ('keywords', 'shirt')),
        ('expect text "Out of Stock"', 'expect_text', ('Out of Stock',)),
        ('expect no text "Out of Stock"', 'expect_no_text', ('Out of Stock',)),
        ('expect no css ".price"', 'expect_no_css', ('.price',)),
        ('expect title "Tote - Spree Test Store"', 'expect_title', ('Tote - Spree Test Store',)),
        ('expect path "/checkout"', 'expect_path', ('/checkout',)),
    ])
    def test_verbs(self, text, action, args):
        command = parse_command(text)
        assert command.action == action
        assert command.args == args
        assert command.within is None

    def test_css_count(self):
        assert parse_command('expect css ".a" 2 times').count == 2
        assert parse_command('expect css ".a" once').count == 1
        assert parse_command('expect css ".a"').count is None

    def test_within_prefix(self):
        command = parse_command('within "#collapseFilterPrice": click on "Less than $50"')
        assert command.within == '#collapseFilterPrice'
        assert command.action == 'click_on'
        assert command.args == ('Less than $50',)

    def test_text_keeps_original_line(self):
        command = parse_command('  expect css ".a" once  ', step=4)
        assert command.text == 'expect css ".a" once'
        assert command.step == 4

    def test_unknown_command_raises(self):
        with pytest.raises(ValueError, match='step 2: unrecognised command'):
            parse_command('hover over "Cart"', 2)

    def test_unknown_command_fails_the_whole_file(self):
        with pytest.raises(ValueError, match='s009.md: step 1'):
            parse_scenario('# S-009: Bad\n\n## Steps\n1. drag "a"\n', source_path='s009.md')


# =====================================================================
# 3. File operations
# =====================================================================


class TestParserFileOps:

    def test_parse_file(self, tmp_path: Path):
        path = tmp_path / 's001_search.md'
        path.write_text(MINIMAL_SCENARIO, encoding='utf-8')
        spec = parse_scenario_file(path)
        assert spec.scenario_id == 'S-001'
        assert spec.source_path == str(path)

    def test_parse_file_not_found(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            parse_scenario_file(tmp_path / 'missing.md')

    def test_scan_sorted_and_filtered(self, tmp_path: Path):
        (tmp_path / 's012_hidden.md').write_text(CONFIGURED_SCENARIO, encoding='utf-8')
        (tmp_path / 's001_search.md').write_text(MINIMAL_SCENARIO, encoding='utf-8')
        (tmp_path / 'README.md').write_text('# notes', encoding='utf-8')
        specs = scan_scenario_dir(tmp_path)
        assert [s.scenario_id for s in specs] == ['S-001', 'S-012']

    def test_scan_empty_directory(self, tmp_path: Path):
        assert scan_scenario_dir(tmp_path) == []


# =====================================================================
# 4. Compilation and dispatch
# =====================================================================


class TestToDefinition:

    def test_one_step_per_command(self):
        definition = to_definition(parse_scenario(MINIMAL_SCENARIO))
        assert [s.kind for s in definition.steps] == ['step'] * 4
        assert definition.steps[1].label == 'fill in "keywords" with "shirt"'
        assert definition.presets == ('custom products',)
        assert definition.tags == frozenset({'declarative', 'critical'})
        assert definition.js is False

    def test_configure_step_first(self):
        definition = to_definition(parse_scenario(CONFIGURED_SCENARIO))
        assert definition.steps[0].label == 'configure storefront'
        assert definition.steps[0].kind == 'before'
        assert definition.js is True
        assert definition.tags == frozenset({'declarative', 'js'})

    @pytest.mark.asyncio
    async def test_configure_step_sets_prefs_and_currency(self):
        definition = to_definition(parse_scenario(CONFIGURED_SCENARIO))
        store = object()
        ctx = MagicMock()
        ctx.factory.configure = AsyncMock()
        ctx.factory.default_store = AsyncMock(return_value=store)
        ctx.factory.update = AsyncMock()

        await definition.steps[0].run(ctx)

        ctx.factory.configure.assert_awaited_once_with(
            show_products_without_price=False, products_per_page=3,
        )
        ctx.factory.update.assert_awaited_once_with(store, default_currency='CAD')


class TestPerform:

    @pytest.mark.asyncio
    async def test_dispatches_to_session(self):
        page = MagicMock()
        page.fill_in = AsyncMock()
        page.assert_selector = AsyncMock()

        await perform(page, parse_command('fill in "keywords" with "shirt"'))
        await perform(page, parse_command('expect css ".a" 2 times'))

        page.fill_in.assert_awaited_once_with('keywords', with_='shirt')
        page.assert_selector.assert_awaited_once_with('.a', count=2)

    @pytest.mark.asyncio
    async def test_unknown_action_raises(self):
        with pytest.raises(ValueError, match='Unknown command'):
            await perform(MagicMock(), BrowserCommand(1, 'hover', ('x',)))
