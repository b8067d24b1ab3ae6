"""Parse declarative scenario markdown files into runnable definitions.

Reads ``scenarios/sNNN_*.md`` files and extracts:
  - Scenario ID and title from the H1 header (``# S-NNN: Title``)
  - Preconditions as a bullet list: preset names, ``config key: value``
    storefront preferences and ``currency CODE`` for the default store
  - Steps as a numbered list of browser commands
  - ``js: true`` / ``critical_path: false`` markers anywhere in the file

Step commands (arguments in double quotes)::

    visit "/products"
    click link "Ruby on Rails Tote"
    click button "add-to-cart-button"
    click on "$50 - $100"
    fill in "keywords" with "shirt"
    expect text "Added to cart successfully!"
    expect no text "Out of Stock"
    expect css ".product-component-name" 2 times
    expect no css ".product-component-name"
    expect title "Ruby on Rails Tote - Spree Test Store"
    expect path "/products/ruby-on-rails-tote"

Any command may be prefixed with ``within "<css>":``. Missing sections
produce empty lists; an unrecognised step is a ``ValueError``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from ..browser.session import Session
from .context import ScenarioContext
from .registry import Hook, ScenarioDefinition, Step

_H1_RE = re.compile(r'^#\s+S-(\d+):\s+(.+)$', re.MULTILINE)
_STEP_RE = re.compile(r'^\d+\.\s+(.+)$', re.MULTILINE)
_BULLET_RE = re.compile(r'^[-*]\s+(.+)$', re.MULTILINE)

_CONFIG_RE = re.compile(r'^config\s+(\w+)\s*:\s*(.+)$', re.IGNORECASE)
_CURRENCY_RE = re.compile(r'^currency\s+([A-Za-z]{3})$', re.IGNORECASE)
_WITHIN_RE = re.compile(r'^within\s+"(?P<scope>[^"]+)"\s*:\s*(?P<rest>.+)$', re.IGNORECASE)
_JS_RE = re.compile(r'^js:\s*true\s*$', re.IGNORECASE | re.MULTILINE)
_NOT_CRITICAL_RE = re.compile(r'^critical_path:\s*false\s*$', re.IGNORECASE | re.MULTILINE)

_COMMANDS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ('visit', re.compile(r'^visit\s+"([^"]*)"$')),
    ('click_link', re.compile(r'^click\s+link\s+"([^"]+)"$')),
    ('click_button', re.compile(r'^click\s+button\s+"([^"]+)"$')),
    ('click_on', re.compile(r'^click\s+on\s+"([^"]+)"$')),
    ('fill_in', re.compile(r'^fill\s+in\s+"([^"]+)"\s+with\s+"([^"]*)"$')),
    ('expect_no_text', re.compile(r'^expect\s+no\s+text\s+"([^"]+)"$')),
    ('expect_text', re.compile(r'^expect\s+text\s+"([^"]+)"$')),
    ('expect_no_css', re.compile(r'^expect\s+no\s+css\s+"([^"]+)"$')),
    ('expect_css', re.compile(r'^expect\s+css\s+"([^"]+)"(?:\s+(?:(\d+)\s+times?|(once)))?$')),
    ('expect_title', re.compile(r'^expect\s+title\s+"([^"]+)"$')),
    ('expect_path', re.compile(r'^expect\s+path\s+"([^"]+)"$')),
)


@dataclass(frozen=True, slots=True)
class BrowserCommand:
    """One parsed step: an action name, its arguments and optional scope."""

    step: int
    action: str
    args: tuple[str, ...]
    within: str | None = None
    count: int | None = None
    text: str = ''


@dataclass(frozen=True, slots=True)
class ScenarioSpec:
    """A scenario parsed from a markdown file."""

    scenario_id: str
    title: str
    source_path: str
    preconditions: tuple[str, ...]
    steps: tuple[str, ...]
    commands: tuple[BrowserCommand, ...]
    presets: tuple[str, ...] = ()
    config: dict[str, Any] = field(default_factory=dict)
    currency: str | None = None
    js: bool = False
    critical_path: bool = True

    @property
    def step_count(self) -> int:
        return len(self.steps)


def parse_scenario(text: str, source_path: str = '<string>') -> ScenarioSpec:
    """Parse scenario markdown text into a ScenarioSpec.

    Raises:
        ValueError: If the H1 header is missing or a step is not a known
            command.
    """
    h1_match = _H1_RE.search(text)
    if not h1_match:
        raise ValueError(
            f'No scenario header found in {source_path}. '
            f'Expected: # S-NNN: Title'
        )

    scenario_id = f'S-{h1_match.group(1).zfill(3)}'
    title = h1_match.group(2).strip()

    sections = _split_sections(text)
    preconditions = _extract_bullets(sections.get('preconditions', ''))
    steps = _extract_steps(sections.get('steps', ''))

    presets: list[str] = []
    config: dict[str, Any] = {}
    currency: str | None = None
    for item in preconditions:
        config_match = _CONFIG_RE.match(item)
        currency_match = _CURRENCY_RE.match(item)
        if config_match:
            config[config_match.group(1)] = _coerce(config_match.group(2).strip())
        elif currency_match:
            currency = currency_match.group(1).upper()
        else:
            presets.append(item.strip('`'))

    commands = tuple(
        parse_command(step, number, source_path=source_path)
        for number, step in enumerate(steps, start=1)
    )

    return ScenarioSpec(
        scenario_id=scenario_id,
        title=title,
        source_path=source_path,
        preconditions=tuple(preconditions),
        steps=tuple(steps),
        commands=commands,
        presets=tuple(presets),
        config=config,
        currency=currency,
        js=_JS_RE.search(text) is not None,
        critical_path=_NOT_CRITICAL_RE.search(text) is None,
    )


def parse_command(text: str, step: int = 1, *, source_path: str = '<string>') -> BrowserCommand:
    """Parse one step line into a :class:`BrowserCommand`."""
    body = text.strip()
    within: str | None = None
    scoped = _WITHIN_RE.match(body)
    if scoped:
        within = scoped.group('scope')
        body = scoped.group('rest').strip()

    for action, pattern in _COMMANDS:
        m = pattern.match(body)
        if not m:
            continue
        if action == 'expect_css':
            count = 1 if m.group(3) else (int(m.group(2)) if m.group(2) else None)
            return BrowserCommand(step, action, (m.group(1),), within, count, text.strip())
        return BrowserCommand(step, action, m.groups(), within, None, text.strip())

    raise ValueError(f'{source_path}: step {step}: unrecognised command {text!r}')


def parse_scenario_file(path: Path) -> ScenarioSpec:
    text = path.read_text(encoding='utf-8')
    return parse_scenario(text, source_path=str(path))


def scan_scenario_dir(
    directory: Path,
    *,
    pattern: str = 's[0-9][0-9][0-9]_*.md',
) -> list[ScenarioSpec]:
    """Scan a directory for scenario files and parse them all, sorted by name."""
    return [parse_scenario_file(path) for path in sorted(directory.glob(pattern))]


# ── Compilation ────────────────────────────────────────────────────


def to_definition(spec: ScenarioSpec) -> ScenarioDefinition:
    """Turn a parsed scenario into a definition the runner can execute.

    Storefront configuration becomes a leading ``configure`` step; every
    browser command is its own step.
    """
    steps: list[Step] = []
    if spec.config or spec.currency:
        steps.append(Step(
            label='configure storefront',
            kind='before',
            run=_configure(spec.config, spec.currency),
        ))
    steps.extend(
        Step(label=command.text, kind='step', run=_command_step(command))
        for command in spec.commands
    )
    tags = {'declarative'}
    if spec.js:
        tags.add('js')
    if spec.critical_path:
        tags.add('critical')
    return ScenarioDefinition(
        scenario_id=spec.scenario_id,
        title=spec.title,
        steps=tuple(steps),
        presets=spec.presets,
        js=spec.js,
        tags=frozenset(tags),
        source=spec.source_path,
    )


def _configure(config: dict[str, Any], currency: str | None) -> Hook:
    async def configure(ctx: ScenarioContext) -> None:
        if config:
            await ctx.factory.configure(**config)
        if currency:
            store = await ctx.factory.default_store()
            await ctx.factory.update(store, default_currency=currency)
    return configure


def _command_step(command: BrowserCommand) -> Hook:
    async def run(ctx: ScenarioContext) -> None:
        if command.within is None:
            await perform(ctx.page, command)
            return
        async with ctx.page.within(command.within):
            await perform(ctx.page, command)
    return run


async def perform(page: Session, command: BrowserCommand) -> None:
    """Execute *command* against *page*."""
    handler = _HANDLERS.get(command.action)
    if handler is None:
        raise ValueError(f'Unknown command {command.action!r}')
    await handler(page, command)


_HANDLERS: dict[str, Callable[[Session, BrowserCommand], Awaitable[None]]] = {
    'visit': lambda page, c: page.visit(c.args[0]),
    'click_link': lambda page, c: page.click_link(c.args[0]),
    'click_button': lambda page, c: page.click_button(c.args[0]),
    'click_on': lambda page, c: page.click_on(c.args[0]),
    'fill_in': lambda page, c: page.fill_in(c.args[0], with_=c.args[1]),
    'expect_text': lambda page, c: page.assert_text(c.args[0]),
    'expect_no_text': lambda page, c: page.assert_no_text(c.args[0]),
    'expect_css': lambda page, c: page.assert_selector(c.args[0], count=c.count),
    'expect_no_css': lambda page, c: page.assert_no_selector(c.args[0]),
    'expect_title': lambda page, c: page.assert_title(c.args[0]),
    'expect_path': lambda page, c: page.assert_current_path(c.args[0]),
}


# ── Private helpers ────────────────────────────────────────────────


def _split_sections(text: str) -> dict[str, str]:
    """Split markdown by H2 headers into a section dict."""
    sections: dict[str, str] = {}
    current_key: str | None = None
    current_lines: list[str] = []

    for line in text.split('\n'):
        if line.startswith('## '):
            if current_key is not None:
                sections[current_key] = '\n'.join(current_lines)
            current_key = line[3:].strip().lower()
            current_lines = []
        elif current_key is not None:
            current_lines.append(line)

    if current_key is not None:
        sections[current_key] = '\n'.join(current_lines)

    return sections


def _extract_steps(text: str) -> list[str]:
    return [m.group(1).strip() for m in _STEP_RE.finditer(text)]


def _extract_bullets(text: str) -> list[str]:
    return [m.group(1).strip() for m in _BULLET_RE.finditer(text)]


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered in ('true', 'false'):
        return lowered == 'true'
    try:
        return int(value)
    except ValueError:
        return value
