"""Execute scenarios against a storefront with per-scenario isolation.

The runner takes a :class:`ScenarioDefinition` (from a suite or a parsed
markdown scenario) and executes its steps sequentially. Before each
scenario the fixture backend is reset, presets are applied and a fresh
driver is opened; after it the driver is closed and ``after`` hooks run
even when a step failed. Results carry per-step outcomes, the browser
actions performed and any failure evidence.

Usage::

    runner = ScenarioRunner(
        RunConfig.from_settings(settings),
        driver_factory=http_driver_factory(settings),
        backend=HttpFixtureBackend(settings.base_url),
    )
    results = await runner.run_suite(products_suite)
    assert all(r.passed for r in results)
"""

from __future__ import annotations

import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from ..browser.factory import DriverFactory
from ..browser.protocols import BrowserDriver
from ..browser.session import Session
from ..contract import StorefrontStrings
from ..errors import HarnessError
from ..fixtures.backend import FixtureBackend
from ..fixtures.factories import FactoryProvider
from ..fixtures.presets import get_preset
from ..observability import bind_scenario, get_logger
from ..settings import HarnessSettings
from .context import ScenarioContext
from .evidence import CaptureConfig, ProofSession
from .parser import ScenarioSpec, to_definition
from .registry import Hook, ScenarioDefinition, Step, Suite, select_scenarios

log = get_logger(__name__)

JS_REQUIRED = 'requires a JavaScript-capable driver'
PRIOR_FAILURE = 'Skipped due to prior failure'


class StepOutcome(str, Enum):
    """Outcome of a single scenario step."""

    PASS = 'pass'
    FAIL = 'fail'
    SKIP = 'skip'
    ERROR = 'error'


@dataclass(frozen=True, slots=True)
class StepResult:
    """Result of executing one step (hook, scenario body or command)."""

    step_number: int
    label: str
    kind: str
    outcome: StepOutcome
    timestamp: str  # ISO-8601
    duration_ms: float
    url: str | None = None
    status_code: int | None = None
    error_type: str | None = None
    error_detail: str | None = None
    actions: tuple[dict[str, Any], ...] = ()
    evidence: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return self.outcome == StepOutcome.PASS

    def to_dict(self, *, include_actions: bool = False) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict.

        Args:
            include_actions: If True, include the browser actions the step
                performed.
        """
        result: dict[str, Any] = {
            'step': self.step_number,
            'label': self.label,
            'kind': self.kind,
            'outcome': self.outcome.value,
            'timestamp': self.timestamp,
            'duration_ms': round(self.duration_ms, 2),
            'observed': {
                'url': self.url,
                'status': self.status_code,
            },
        }

        if self.error_detail:
            result['error_type'] = self.error_type
            result['error_detail'] = self.error_detail

        if self.evidence:
            result['evidence'] = list(self.evidence)

        if include_actions:
            result['actions'] = list(self.actions)

        return result


@dataclass(frozen=True, slots=True)
class ScenarioResult:
    """Aggregate result of executing a full scenario."""

    scenario_id: str
    title: str
    step_results: tuple[StepResult, ...]
    started_at: str  # ISO-8601
    finished_at: str  # ISO-8601
    total_duration_ms: float
    driver: str | None = None
    tags: tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return any(
            r.outcome in (StepOutcome.FAIL, StepOutcome.ERROR)
            for r in self.step_results
        )

    @property
    def skipped(self) -> bool:
        return bool(self.step_results) and all(
            r.outcome == StepOutcome.SKIP for r in self.step_results
        )

    @property
    def passed(self) -> bool:
        return not self.failed and not self.skipped

    @property
    def verdict(self) -> str:
        if self.failed:
            return 'fail'
        return 'skip' if self.skipped else 'pass'

    @property
    def pass_count(self) -> int:
        return sum(1 for r in self.step_results if r.passed)

    @property
    def fail_count(self) -> int:
        return sum(1 for r in self.step_results if r.outcome == StepOutcome.FAIL)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.step_results if r.outcome == StepOutcome.ERROR)

    @property
    def skip_count(self) -> int:
        return sum(1 for r in self.step_results if r.outcome == StepOutcome.SKIP)

    @property
    def total_steps(self) -> int:
        return len(self.step_results)

    @property
    def skip_reason(self) -> str | None:
        if not self.skipped:
            return None
        return self.step_results[0].error_detail

    def first_failure(self) -> StepResult | None:
        for r in self.step_results:
            if r.outcome in (StepOutcome.FAIL, StepOutcome.ERROR):
                return r
        return None

    def summary(self) -> dict[str, Any]:
        """Return a JSON-serializable summary of the result."""
        return {
            'scenario_id': self.scenario_id,
            'title': self.title,
            'verdict': self.verdict,
            'passed': self.passed,
            'driver': self.driver,
            'steps': self.total_steps,
            'pass': self.pass_count,
            'fail': self.fail_count,
            'error': self.error_count,
            'skip': self.skip_count,
            'duration_ms': round(self.total_duration_ms, 1),
            'started_at': self.started_at,
            'finished_at': self.finished_at,
        }

    def to_run_log(self, *, include_actions: bool = False) -> dict[str, Any]:
        """Return a machine-readable run log with per-step evidence.

        Args:
            include_actions: If True, include browser actions per step.
        """
        return {
            'scenario_id': self.scenario_id,
            'title': self.title,
            'driver': self.driver,
            'tags': list(self.tags),
            'started_at': self.started_at,
            'finished_at': self.finished_at,
            'duration_ms': round(self.total_duration_ms, 2),
            'verdict': self.verdict,
            'counts': {
                'total': self.total_steps,
                'pass': self.pass_count,
                'fail': self.fail_count,
                'error': self.error_count,
                'skip': self.skip_count,
            },
            'steps': [
                r.to_dict(include_actions=include_actions)
                for r in self.step_results
            ],
        }


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Configuration for a scenario run."""

    base_url: str
    max_wait: float = 2.0
    fail_fast: bool = False
    evidence_dir: Path | None = None
    settings: HarnessSettings = field(default_factory=HarnessSettings)

    @classmethod
    def from_settings(cls, settings: HarnessSettings) -> RunConfig:
        return cls(
            base_url=settings.base_url,
            max_wait=settings.max_wait,
            fail_fast=settings.fail_fast,
            evidence_dir=settings.evidence_dir,
            settings=settings,
        )


class ScenarioRunner:
    """Execute scenarios and record structured outcomes.

    Args:
        config: Run configuration.
        driver_factory: Opens a driver for each scenario.
        js_driver_factory: Opens a JavaScript-capable driver for ``js``
            scenarios. When omitted, ``driver_factory`` is used if its
            drivers support JavaScript; otherwise those scenarios are skipped.
        backend: Fixture backend reset and seeded before each scenario.
        strings: Storefront strings handed to scenario contexts.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        driver_factory: DriverFactory,
        backend: FixtureBackend,
        js_driver_factory: DriverFactory | None = None,
        strings: StorefrontStrings | None = None,
    ) -> None:
        self._config = config
        self._driver_factory = driver_factory
        self._js_driver_factory = js_driver_factory
        self._backend = backend
        self._strings = strings or StorefrontStrings()

    # ── Entry points ───────────────────────────────────────────────

    async def run_suite(
        self,
        suite: Suite,
        *,
        only: str | None = None,
        tags: Iterable[str] = (),
        exclude_tags: Iterable[str] = (),
    ) -> list[ScenarioResult]:
        """Run every selected scenario of *suite* in declaration order."""
        definitions = select_scenarios(
            suite.scenarios(), only=only, tags=tags, exclude_tags=exclude_tags,
        )
        return await self.run_all(definitions)

    async def run_specs(self, specs: Iterable[ScenarioSpec]) -> list[ScenarioResult]:
        """Run parsed markdown scenarios."""
        return await self.run_all(to_definition(spec) for spec in specs)

    async def run_all(self, definitions: Iterable[ScenarioDefinition]) -> list[ScenarioResult]:
        """Run *definitions* sequentially.

        With ``fail_fast`` the scenarios after the first failure are
        reported as skipped without being executed.
        """
        results: list[ScenarioResult] = []
        halted = False
        for definition in definitions:
            if halted:
                results.append(_skipped_result(definition, PRIOR_FAILURE))
                continue
            result = await self.run(definition)
            results.append(result)
            if result.failed and self._config.fail_fast:
                halted = True
        return results

    async def run(self, definition: ScenarioDefinition) -> ScenarioResult:
        """Execute one scenario in isolation."""
        with bind_scenario(definition.scenario_id):
            log.info(
                'scenario_started',
                title=definition.title,
                js=definition.js,
                steps=definition.step_count,
            )
            factory = self._factory_for(definition)
            if factory is None:
                result = _skipped_result(definition, JS_REQUIRED)
            else:
                result = await self._run_isolated(definition, factory)
            log.info(
                'scenario_finished',
                title=definition.title,
                verdict=result.verdict,
                duration_ms=round(result.total_duration_ms, 1),
            )
        return result

    def _factory_for(self, definition: ScenarioDefinition) -> DriverFactory | None:
        if not definition.js:
            return self._driver_factory
        if self._js_driver_factory is not None:
            return self._js_driver_factory
        if self._config.settings.driver == 'playwright':
            return self._driver_factory
        return None

    # ── Execution ──────────────────────────────────────────────────

    async def _run_isolated(
        self,
        definition: ScenarioDefinition,
        driver_factory: DriverFactory,
    ) -> ScenarioResult:
        started_at = _now_iso()
        start_time = time.monotonic()
        results: list[StepResult] = []
        driver_name: str | None = None

        proof = None
        if self._config.evidence_dir is not None:
            proof = ProofSession(
                CaptureConfig(output_dir=self._config.evidence_dir),
                definition.scenario_id,
            )

        async with AsyncExitStack() as stack:
            try:
                driver: BrowserDriver = await stack.enter_async_context(driver_factory())
            except Exception as exc:
                results.append(_error_step(1, 'open driver', 'setup', exc))
                results.extend(_skip_steps(2, definition.steps, definition.teardown))
            else:
                driver_name = driver.name
                ctx = self._build_context(definition, driver)
                await self._execute_steps(definition, ctx, results, proof)

        if proof is not None:
            proof.finalize()

        return ScenarioResult(
            scenario_id=definition.scenario_id,
            title=definition.title,
            step_results=tuple(results),
            started_at=started_at,
            finished_at=_now_iso(),
            total_duration_ms=(time.monotonic() - start_time) * 1000,
            driver=driver_name,
            tags=tuple(sorted(definition.tags)),
        )

    def _build_context(
        self,
        definition: ScenarioDefinition,
        driver: BrowserDriver,
    ) -> ScenarioContext:
        settings = self._config.settings
        page = Session(
            driver,
            base_url=self._config.base_url,
            max_wait=self._config.max_wait if driver.supports_javascript else 0.0,
        )
        return ScenarioContext(
            page=page,
            factory=FactoryProvider(self._backend),
            settings=settings,
            log=log.bind(scenario=definition.title),
            scenario_id=definition.scenario_id,
            strings=self._strings,
        )

    async def _execute_steps(
        self,
        definition: ScenarioDefinition,
        ctx: ScenarioContext,
        results: list[StepResult],
        proof: ProofSession | None,
    ) -> None:
        setup = [Step(label='reset fixtures', kind='setup', run=self._reset_fixtures(definition))]
        failed = False

        for step in (*setup, *definition.steps):
            number = len(results) + 1
            if failed:
                results.append(_skip_step(number, step, PRIOR_FAILURE))
                continue
            result = await self._execute_one(number, step, ctx, proof)
            results.append(result)
            failed = not result.passed

        # After hooks run regardless of earlier failures.
        for step in definition.teardown:
            results.append(await self._execute_one(len(results) + 1, step, ctx, proof))

    def _reset_fixtures(self, definition: ScenarioDefinition) -> Hook:
        async def reset(ctx: ScenarioContext) -> None:
            await self._backend.reset()
            log.info('fixture_reset', presets=list(definition.presets))
            for name in definition.presets:
                await get_preset(name)(ctx.factory)
        return reset

    async def _execute_one(
        self,
        number: int,
        step: Step,
        ctx: ScenarioContext,
        proof: ProofSession | None,
    ) -> StepResult:
        """Run one step and classify its outcome.

        ``AssertionError`` (including ``ExpectationFailed``) is a failure;
        any other exception is an error.
        """
        timestamp = _now_iso()
        start = time.monotonic()
        actions_before = len(ctx.page.actions)

        outcome = StepOutcome.PASS
        error_type: str | None = None
        error_detail: str | None = None
        try:
            await step.run(ctx)
        except AssertionError as exc:
            outcome = StepOutcome.FAIL
            error_type = type(exc).__name__
            error_detail = str(exc) or error_type
        except Exception as exc:
            outcome = StepOutcome.ERROR
            error_type = type(exc).__name__
            error_detail = f'{error_type}: {exc}'

        duration_ms = (time.monotonic() - start) * 1000
        actions = tuple(a.to_dict() for a in ctx.page.actions[actions_before:])

        evidence: tuple[str, ...] = ()
        if outcome != StepOutcome.PASS:
            log.warning(
                'step_failed',
                step=number,
                label=step.label,
                outcome=outcome.value,
                error_type=error_type,
                error=error_detail,
                url=ctx.page.current_url,
            )
            if proof is not None:
                evidence = await _capture(proof, number, step, ctx, actions)

        return StepResult(
            step_number=number,
            label=step.label,
            kind=step.kind,
            outcome=outcome,
            timestamp=timestamp,
            duration_ms=duration_ms,
            url=ctx.page.current_url,
            status_code=ctx.page.status_code,
            error_type=error_type,
            error_detail=error_detail,
            actions=actions,
            evidence=evidence,
        )


# ── Helpers ────────────────────────────────────────────────────────


def _now_iso() -> str:
    """Return current UTC timestamp in ISO-8601."""
    return datetime.now(timezone.utc).isoformat()


async def _capture(
    proof: ProofSession,
    number: int,
    step: Step,
    ctx: ScenarioContext,
    actions: tuple[dict[str, Any], ...],
) -> tuple[str, ...]:
    try:
        artifacts = await proof.capture_page(
            step=number, description=step.label, driver=ctx.page.driver,
        )
    except (HarnessError, OSError) as exc:
        log.warning('evidence_failed', step=number, error=f'{type(exc).__name__}: {exc}')
        artifacts = []
    if actions:
        artifacts.append(proof.record_actions(
            step=number, description=step.label, actions=actions,
        ))
    return tuple(a.file_path for a in artifacts)


def _skip_step(number: int, step: Step, reason: str) -> StepResult:
    return StepResult(
        step_number=number,
        label=step.label,
        kind=step.kind,
        outcome=StepOutcome.SKIP,
        timestamp=_now_iso(),
        duration_ms=0.0,
        error_detail=reason,
    )


def _skip_steps(start: int, *groups: Iterable[Step]) -> list[StepResult]:
    steps = [step for group in groups for step in group]
    return [
        _skip_step(number, step, PRIOR_FAILURE)
        for number, step in enumerate(steps, start=start)
    ]


def _error_step(number: int, label: str, kind: str, exc: Exception) -> StepResult:
    error_type = type(exc).__name__
    log.warning('step_failed', step=number, label=label, outcome='error', error=str(exc))
    return StepResult(
        step_number=number,
        label=label,
        kind=kind,
        outcome=StepOutcome.ERROR,
        timestamp=_now_iso(),
        duration_ms=0.0,
        error_type=error_type,
        error_detail=f'{error_type}: {exc}',
    )


def _skipped_result(definition: ScenarioDefinition, reason: str) -> ScenarioResult:
    now = _now_iso()
    body = Step(label=definition.title, kind='scenario', run=_noop)
    return ScenarioResult(
        scenario_id=definition.scenario_id,
        title=definition.title,
        step_results=(_skip_step(1, body, reason),),
        started_at=now,
        finished_at=now,
        total_duration_ms=0.0,
        tags=tuple(sorted(definition.tags)),
    )


async def _noop(ctx: ScenarioContext) -> None:
    return None
