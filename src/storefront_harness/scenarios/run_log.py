"""Aggregate report over a batch of scenario results.

Written by ``storefront-harness run --log-out``. Besides the per-scenario
step logs it records which driver ran each scenario, where failure
evidence landed and why scenarios were skipped, so a CI job can triage a
run from the JSON alone.

Usage::

    report = RunLog.from_results(results, metadata={'base_url': url})
    report.write(Path('evidence/run.json'))
"""

from __future__ import annotations

import json
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from .runner import ScenarioResult, StepOutcome

NO_DRIVER = 'none'


@dataclass(frozen=True, slots=True)
class RunLog:
    """Machine-readable report of one harness run.

    Attributes:
        run_id: ``run-`` followed by twelve hex digits unless given.
        created_at: ISO-8601 UTC timestamp.
        results: The scenario results, in execution order.
        include_actions: Whether step entries carry browser actions.
        metadata: Free-form run settings (base_url, driver, ...).
    """

    run_id: str
    created_at: str
    results: tuple[ScenarioResult, ...]
    include_actions: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_results(
        cls,
        results: Iterable[ScenarioResult],
        *,
        run_id: str = '',
        include_actions: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> RunLog:
        return cls(
            run_id=run_id or f'run-{uuid.uuid4().hex[:12]}',
            created_at=datetime.now(timezone.utc).isoformat(),
            results=tuple(results),
            include_actions=include_actions,
            metadata=dict(metadata or {}),
        )

    # ── Aggregates ─────────────────────────────────────────────────

    @property
    def overall_passed(self) -> bool:
        """Skipped scenarios do not fail a run."""
        return not any(r.failed for r in self.results)

    def verdicts(self) -> Counter[str]:
        return Counter(r.verdict for r in self.results)

    def step_outcomes(self) -> Counter[str]:
        return Counter(
            step.outcome.value for r in self.results for step in r.step_results
        )

    def drivers(self) -> dict[str, int]:
        """Scenario count per driver name; skipped-before-open scenarios count as ``none``."""
        return dict(Counter(r.driver or NO_DRIVER for r in self.results))

    def evidence(self) -> dict[str, list[str]]:
        """Evidence paths per scenario, relative to the evidence directory."""
        found: dict[str, list[str]] = {}
        for result in self.results:
            paths = [p for step in result.step_results for p in step.evidence]
            if paths:
                found[result.scenario_id] = paths
        return found

    def skipped_scenarios(self) -> list[dict[str, Any]]:
        return [
            {
                'scenario_id': r.scenario_id,
                'title': r.title,
                'reason': r.skip_reason,
            }
            for r in self.results
            if r.skipped
        ]

    def failed_steps(self) -> list[dict[str, Any]]:
        """Failed or errored steps, each tagged with its scenario id."""
        failures: list[dict[str, Any]] = []
        for result in self.results:
            for step in result.step_results:
                if step.outcome not in (StepOutcome.FAIL, StepOutcome.ERROR):
                    continue
                entry = step.to_dict(include_actions=self.include_actions)
                entry['scenario_id'] = result.scenario_id
                failures.append(entry)
        return failures

    # ── Output ─────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        verdicts = self.verdicts()
        steps = self.step_outcomes()
        return {
            'run_id': self.run_id,
            'created_at': self.created_at,
            'overall_passed': self.overall_passed,
            'summary': {
                'scenarios': len(self.results),
                'scenarios_passed': verdicts['pass'],
                'scenarios_failed': verdicts['fail'],
                'scenarios_skipped': verdicts['skip'],
                'steps': sum(steps.values()),
                **{outcome.value: steps[outcome.value] for outcome in StepOutcome},
            },
            'drivers': self.drivers(),
            'evidence': self.evidence(),
            'skipped': self.skipped_scenarios(),
            'metadata': self.metadata,
            'scenarios': [
                r.to_run_log(include_actions=self.include_actions) for r in self.results
            ],
        }

    def to_json(self, *, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding='utf-8')
