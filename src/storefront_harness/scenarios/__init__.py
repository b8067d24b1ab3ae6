"""Scenario runner: suites, declarative scenarios, execution and run logs."""

from .context import ScenarioContext
from .evidence import ArtifactType, CaptureConfig, EvidenceArtifact, ProofSession
from .parser import (
    BrowserCommand,
    ScenarioSpec,
    parse_command,
    parse_scenario,
    parse_scenario_file,
    scan_scenario_dir,
    to_definition,
)
from .registry import (
    Group,
    Lazy,
    ScenarioDefinition,
    Step,
    Suite,
    SuiteRegistry,
    select_scenarios,
)
from .run_log import RunLog
from .runner import (
    JS_REQUIRED,
    RunConfig,
    ScenarioResult,
    ScenarioRunner,
    StepOutcome,
    StepResult,
)

__all__ = [
    'ArtifactType',
    'BrowserCommand',
    'CaptureConfig',
    'EvidenceArtifact',
    'Group',
    'JS_REQUIRED',
    'Lazy',
    'ProofSession',
    'RunConfig',
    'RunLog',
    'ScenarioContext',
    'ScenarioDefinition',
    'ScenarioResult',
    'ScenarioRunner',
    'ScenarioSpec',
    'Step',
    'StepOutcome',
    'StepResult',
    'Suite',
    'SuiteRegistry',
    'parse_command',
    'parse_scenario',
    'parse_scenario_file',
    'scan_scenario_dir',
    'select_scenarios',
    'to_definition',
]
