"""Tests for the command-line parser, settings and scenario selection."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from storefront_harness.cli import (
    EXIT_CONFIG,
    EXIT_OK,
    build_parser,
    collect_definitions,
    main,
    settings_from_args,
)
from storefront_harness.errors import ConfigError

SCENARIOS_DIR = Path(__file__).resolve().parents[2] / 'scenarios'


def _args(*argv: str):
    return build_parser().parse_args(list(argv))


# =====================================================================
# 1. Parser
# =====================================================================


class TestParser:

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_run_defaults(self):
        args = _args('run')
        assert args.suite == []
        assert args.tag == []
        assert args.no_fail_fast is False
        assert args.json_output is False
        assert args.js_driver is None

    def test_repeatable_flags(self):
        args = _args('run', '--suite', 'products', '--tag', 'cart', '--tag', 'currency')
        assert args.suite == ['products']
        assert args.tag == ['cart', 'currency']

    def test_driver_choices(self):
        with pytest.raises(SystemExit):
            _args('run', '--driver', 'selenium')


# =====================================================================
# 2. Settings
# =====================================================================


class TestSettingsFromArgs:

    def test_flags_override_env(self, tmp_path):
        args = _args(
            'run', '--base-url', 'http://shop.test/', '--max-wait', '5',
            '--evidence-dir', str(tmp_path), '--no-fail-fast',
        )
        settings = settings_from_args(args, {'STOREFRONT_BASE_URL': 'http://other.test'})
        assert settings.base_url == 'http://shop.test'
        assert settings.max_wait == 5.0
        assert settings.evidence_dir == tmp_path
        assert settings.fail_fast is False

    def test_env_used_without_flags(self):
        settings = settings_from_args(_args('run'), {'HARNESS_DRIVER': 'playwright'})
        assert settings.driver == 'playwright'
        assert settings.fail_fast is True

    def test_invalid_settings_raise(self):
        with pytest.raises(ConfigError):
            settings_from_args(_args('run', '--base-url', 'shop.test'), {})


# =====================================================================
# 3. Scenario selection
# =====================================================================


class TestCollectDefinitions:

    def test_every_suite_by_default(self):
        definitions = collect_definitions(_args('list'))
        assert len(definitions) == 33
        assert all(d.scenario_id.startswith('products-') for d in definitions)

    def test_markdown_only_when_dir_given(self):
        definitions = collect_definitions(_args('list', '--scenarios-dir', str(SCENARIOS_DIR)))
        assert [d.scenario_id for d in definitions] == ['S-001', 'S-002', 'S-003', 'S-004', 'S-005']

    def test_suite_and_markdown_combined(self):
        definitions = collect_definitions(_args(
            'list', '--suite', 'products', '--scenarios-dir', str(SCENARIOS_DIR),
        ))
        assert len(definitions) == 38

    def test_filters(self):
        assert len(collect_definitions(_args('list', '--tag', 'cart'))) == 4
        assert len(collect_definitions(_args('list', '--exclude-tag', 'js'))) == 27
        [only] = collect_definitions(_args('list', '--scenario', 'products-001'))
        assert only.scenario_id == 'products-001'

    def test_unknown_suite(self):
        with pytest.raises(ConfigError, match="Unknown suite 'checkout'"):
            collect_definitions(_args('list', '--suite', 'checkout'))

    def test_missing_scenarios_dir(self, tmp_path):
        with pytest.raises(ConfigError, match='Scenarios directory not found'):
            collect_definitions(_args('list', '--scenarios-dir', str(tmp_path / 'nope')))


# =====================================================================
# 4. list command
# =====================================================================


class TestListCommand:

    def test_text_listing(self, capsys):
        assert main(['list', '--tag', 'cart'], env={}) == EXIT_OK
        out = capsys.readouterr().out
        assert 'products: Visiting Products' in out
        assert '4 scenarios' in out

    def test_markdown_listing_has_no_suite_headers(self, capsys):
        assert main(['list', '--scenarios-dir', str(SCENARIOS_DIR)], env={}) == EXIT_OK
        out = capsys.readouterr().out
        assert 'products:' not in out
        assert out.startswith('S-001  ')
        assert '5 scenarios' in out

    def test_json_listing(self, capsys):
        assert main(['list', '--scenarios-dir', str(SCENARIOS_DIR), '--json'], env={}) == EXIT_OK
        listing = json.loads(capsys.readouterr().out)
        assert listing[-1]['js'] is True
        assert 'js' in listing[-1]['tags']

    def test_config_error_exit_code(self, capsys):
        assert main(['list', '--suite', 'checkout'], env={}) == EXIT_CONFIG
        assert 'Unknown suite' in capsys.readouterr().err

    def test_nothing_selected(self, capsys):
        code = main(['run', '--scenario', 'no such scenario'], env={})
        assert code == EXIT_CONFIG
        assert 'No scenarios selected' in capsys.readouterr().err
