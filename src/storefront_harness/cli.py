"""Command-line entry point: list and run acceptance scenarios.

Usage::

    # List built-in suites and their scenarios:
    storefront-harness list

    # Run the products suite against a local storefront:
    storefront-harness run --base-url http://localhost:3000

    # Run one scenario, keep going after failures, save evidence:
    storefront-harness run --base-url http://localhost:3000 \\
        --scenario 'search for a product' --no-fail-fast --evidence-dir evidence

    # Run markdown scenarios with a real browser:
    storefront-harness run --base-url http://localhost:3000 \\
        --scenarios-dir scenarios --driver playwright --json
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from pathlib import Path
from typing import Iterable, Sequence

import httpx

from .browser.factory import DriverFactory, http_driver_factory, playwright_driver_factory
from .errors import ConfigError
from .fixtures.backend import HttpFixtureBackend
from .observability import configure_logging, get_logger
from .scenarios.parser import scan_scenario_dir, to_definition
from .scenarios.registry import ScenarioDefinition, select_scenarios
from .scenarios.run_log import RunLog
from .scenarios.runner import RunConfig, ScenarioResult, ScenarioRunner, StepOutcome
from .settings import HarnessSettings
from .suites import SUITES

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='storefront-harness',
        description='Run storefront acceptance scenarios.',
    )
    parser.add_argument(
        '--log-level',
        default=None,
        help='Log level (default: LOG_LEVEL or INFO)',
    )
    sub = parser.add_subparsers(dest='command', required=True)

    list_cmd = sub.add_parser('list', help='List suites and scenarios')
    _add_selection_args(list_cmd)
    list_cmd.add_argument(
        '--json',
        action='store_true',
        dest='json_output',
        help='Output the listing as JSON',
    )

    run_cmd = sub.add_parser('run', help='Run scenarios against a storefront')
    _add_selection_args(run_cmd)
    run_cmd.add_argument(
        '--base-url',
        help='Storefront base URL (default: STOREFRONT_BASE_URL)',
    )
    run_cmd.add_argument(
        '--driver',
        choices=('http', 'playwright'),
        help='Browser driver (default: HARNESS_DRIVER or http)',
    )
    run_cmd.add_argument(
        '--js-driver',
        choices=('playwright',),
        help='Driver for scenarios that need JavaScript',
    )
    run_cmd.add_argument(
        '--no-fail-fast',
        action='store_true',
        help='Keep running scenarios after a failure',
    )
    run_cmd.add_argument(
        '--max-wait',
        type=float,
        help='Seconds JavaScript drivers retry queries (default: 2)',
    )
    run_cmd.add_argument(
        '--evidence-dir',
        type=Path,
        help='Write failure evidence (HTML, screenshots) here',
    )
    run_cmd.add_argument(
        '--log-out',
        type=Path,
        help='Write the JSON run log to this file',
    )
    run_cmd.add_argument(
        '--json',
        action='store_true',
        dest='json_output',
        help='Output results as JSON',
    )
    return parser


def _add_selection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--suite',
        action='append',
        default=[],
        help='Built-in suite key, repeatable (default: every suite unless --scenarios-dir)',
    )
    parser.add_argument(
        '--scenarios-dir',
        type=Path,
        help='Directory of markdown scenarios (sNNN_*.md)',
    )
    parser.add_argument(
        '--scenario',
        help='Scenario id or title substring',
    )
    parser.add_argument(
        '--tag',
        action='append',
        default=[],
        help='Only scenarios carrying this tag, repeatable',
    )
    parser.add_argument(
        '--exclude-tag',
        action='append',
        default=[],
        help='Skip scenarios carrying this tag, repeatable',
    )


def settings_from_args(
    args: argparse.Namespace,
    env: dict[str, str] | None = None,
) -> HarnessSettings:
    """Environment settings overridden by command-line flags, validated.

    Raises:
        ConfigError: If the resulting settings are invalid.
    """
    settings = HarnessSettings.from_env(env)
    overrides: dict[str, object] = {}
    if args.base_url:
        overrides['base_url'] = args.base_url.rstrip('/')
    if args.driver:
        overrides['driver'] = args.driver
    if args.max_wait is not None:
        overrides['max_wait'] = args.max_wait
    if args.evidence_dir is not None:
        overrides['evidence_dir'] = args.evidence_dir
    if args.no_fail_fast:
        overrides['fail_fast'] = False
    return dataclasses.replace(settings, **overrides).require_valid()


def collect_definitions(args: argparse.Namespace) -> list[ScenarioDefinition]:
    """Resolve suites and markdown scenarios, then apply filters.

    Raises:
        ConfigError: For an unknown suite or a missing scenarios directory.
    """
    definitions: list[ScenarioDefinition] = []

    suite_keys = list(args.suite)
    if not suite_keys and args.scenarios_dir is None:
        suite_keys = [s.key for s in SUITES]
    for key in suite_keys:
        try:
            suite = SUITES.get(key)
        except KeyError as exc:
            raise ConfigError(str(exc.args[0])) from None
        definitions.extend(suite.scenarios())

    if args.scenarios_dir is not None:
        if not args.scenarios_dir.is_dir():
            raise ConfigError(f'Scenarios directory not found: {args.scenarios_dir}')
        try:
            specs = scan_scenario_dir(args.scenarios_dir)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        definitions.extend(to_definition(spec) for spec in specs)

    return select_scenarios(
        definitions,
        only=args.scenario,
        tags=args.tag,
        exclude_tags=args.exclude_tag,
    )


async def execute(
    definitions: Iterable[ScenarioDefinition],
    settings: HarnessSettings,
    *,
    js_driver: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[ScenarioResult]:
    """Run *definitions* against the configured storefront.

    *transport* routes both the HTTP driver and the seed API client through
    a custom httpx transport (e.g. an in-process ASGI app).
    """
    if settings.driver == 'playwright':
        driver_factory: DriverFactory = playwright_driver_factory(settings)
    else:
        driver_factory = http_driver_factory(settings, transport=transport)
    js_factory = playwright_driver_factory(settings) if js_driver == 'playwright' else None

    client = httpx.AsyncClient(transport=transport)
    backend = HttpFixtureBackend(
        settings.base_url,
        prefix=settings.seed_prefix,
        client=client,
        timeout_seconds=settings.request_timeout,
    )
    runner = ScenarioRunner(
        RunConfig.from_settings(settings),
        driver_factory=driver_factory,
        js_driver_factory=js_factory,
        backend=backend,
    )
    try:
        return await runner.run_all(definitions)
    finally:
        await client.aclose()


# ── Output ─────────────────────────────────────────────────────────


def print_listing(definitions: Sequence[ScenarioDefinition], *, json_output: bool) -> None:
    if json_output:
        print(json.dumps([
            {
                'scenario_id': d.scenario_id,
                'title': d.title,
                'js': d.js,
                'tags': sorted(d.tags),
                'source': d.source,
            }
            for d in definitions
        ], indent=2))
        return

    listed = {d.scenario_id.rsplit('-', 1)[0] for d in definitions}
    suites = [suite for suite in SUITES if suite.key in listed]
    for suite in suites:
        print(f'{suite.key}: {suite.name} - {suite.description}')
    if suites:
        print()
    for d in definitions:
        marker = ' [js]' if d.js else ''
        print(f'{d.scenario_id}  {d.title}{marker}')
    print(f'\n{len(definitions)} scenarios')


def print_text_results(results: list[ScenarioResult]) -> None:
    """Print human-readable results."""
    for result in results:
        if result.skipped:
            icon = '⏩'
        elif result.passed:
            icon = '✔'
        else:
            icon = '✘'
        print(f'\n{icon} {result.scenario_id}: {result.title}')
        print(f'  Steps: {result.total_steps} | '
              f'Pass: {result.pass_count} | '
              f'Fail: {result.fail_count} | '
              f'Error: {result.error_count} | '
              f'Skip: {result.skip_count} | '
              f'Duration: {result.total_duration_ms:.0f}ms')

        if result.skipped:
            print(f'      {result.skip_reason}')
            continue

        for step in result.step_results:
            if step.outcome == StepOutcome.PASS:
                continue
            marker = '  ⏩' if step.outcome == StepOutcome.SKIP else '  ✘'
            print(f'{marker} Step {step.step_number}: {step.label} [{step.outcome.value}]')
            if step.error_detail and step.outcome != StepOutcome.SKIP:
                print(f'      {step.error_detail}')
                if step.url:
                    print(f'      at {step.url}')
            for path in step.evidence:
                print(f'      evidence: {path}')

    passed = sum(1 for r in results if r.passed)
    failed = [r for r in results if r.failed]
    skipped = sum(1 for r in results if r.skipped)

    print(f'\n{"=" * 60}')
    summary_icon = '✘' if failed else '✔'
    print(f'{summary_icon} Total: {passed} passed, {len(failed)} failed, '
          f'{skipped} skipped across {len(results)} scenarios')

    if failed:
        print('\nFailed scenarios:')
        for r in failed:
            print(f'  - {r.scenario_id}: {r.title}')


def print_json_results(results: list[ScenarioResult]) -> None:
    output = {
        'scenarios': [r.summary() for r in results],
        'overall_passed': not any(r.failed for r in results),
        'total_scenarios': len(results),
        'total_pass': sum(1 for r in results if r.passed),
        'total_fail': sum(1 for r in results if r.failed),
        'total_skip': sum(1 for r in results if r.skipped),
    }
    print(json.dumps(output, indent=2))


# ── Entry point ────────────────────────────────────────────────────


def main(
    argv: Sequence[str] | None = None,
    *,
    env: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, force=True)

    try:
        definitions = collect_definitions(args)
        if args.command == 'list':
            print_listing(definitions, json_output=args.json_output)
            return EXIT_OK
        settings = settings_from_args(args, env)
    except ConfigError as exc:
        print(f'ERROR: {exc}', file=sys.stderr)
        return EXIT_CONFIG

    if not definitions:
        print('ERROR: No scenarios selected', file=sys.stderr)
        return EXIT_CONFIG

    results = asyncio.run(execute(
        definitions, settings, js_driver=args.js_driver, transport=transport,
    ))

    if args.log_out is not None:
        RunLog.from_results(
            results,
            include_actions=True,
            metadata={
                'base_url': settings.base_url,
                'driver': settings.driver,
                'js_driver': args.js_driver,
            },
        ).write(args.log_out)

    if args.json_output:
        print_json_results(results)
    else:
        print_text_results(results)

    return EXIT_FAILED if any(r.failed for r in results) else EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
