"""Suite registry: nested groups, hooks and scenario registration.

A suite reads like a describe/context tree::

    suite = Suite('Visiting Products', key='products', presets=('custom products',))

    @suite.before
    async def open_listing(ctx):
        await ctx.page.visit(ctx.routes.products_path())

    meta = suite.describe('meta tags and title')

    @meta.let('jersey')
    async def jersey(ctx):
        return await ctx.factory.find('product', name='Ruby on Rails Baseball Jersey')

    @meta.scenario('returns the correct title')
    async def correct_title(ctx):
        jersey = await ctx.jersey
        await ctx.page.click_link(jersey.name)

``let`` values are lazy: the hook runs on the first ``await ctx.<name>``.
``let(name, eager=True)`` computes the value in declaration order,
interleaved with ``before`` hooks of the same group. Outer-group setup runs
first; ``after`` hooks run innermost first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Iterator

if TYPE_CHECKING:
    from .context import ScenarioContext

Hook = Callable[['ScenarioContext'], Awaitable[Any]]

_KEY_RE = re.compile(r'[^a-z0-9]+')


class Lazy:
    """A ``let`` value computed on first ``await`` and memoised."""

    __slots__ = ('_fn', '_ctx', '_resolved', '_value')

    def __init__(self, fn: Hook, ctx: ScenarioContext) -> None:
        self._fn = fn
        self._ctx = ctx
        self._resolved = False
        self._value: Any = None

    def __repr__(self) -> str:
        state = repr(self._value) if self._resolved else 'pending'
        return f'<Lazy {self._fn.__name__} {state}>'

    @property
    def resolved(self) -> bool:
        return self._resolved

    async def resolve(self) -> Any:
        if not self._resolved:
            self._value = await self._fn(self._ctx)
            self._resolved = True
        return self._value

    def __await__(self):
        return self.resolve().__await__()


@dataclass(frozen=True, slots=True)
class Step:
    """One unit of scenario execution (a hook or the scenario body)."""

    label: str
    kind: str  # 'before' | 'let' | 'scenario' | 'step' | 'after'
    run: Hook


@dataclass(frozen=True, slots=True)
class ScenarioDefinition:
    """A flattened, runnable scenario."""

    scenario_id: str
    title: str
    steps: tuple[Step, ...]
    teardown: tuple[Step, ...] = ()
    presets: tuple[str, ...] = ()
    js: bool = False
    tags: frozenset[str] = frozenset()
    source: str = ''

    @property
    def step_count(self) -> int:
        return len(self.steps) + len(self.teardown)


def _let_step(name: str, fn: Hook, eager: bool) -> Step:
    async def assign(ctx: ScenarioContext) -> None:
        if eager:
            setattr(ctx, name, await fn(ctx))
        else:
            setattr(ctx, name, Lazy(fn, ctx))

    label = f'let! {name}' if eager else f'let {name}'
    return Step(label=label, kind='let', run=assign)


@dataclass(frozen=True, slots=True)
class _Registered:
    title: str
    body: Hook
    js: bool
    tags: frozenset[str]


class Group:
    """A named group of scenarios sharing hooks, presets and tags."""

    def __init__(
        self,
        name: str,
        *,
        parent: Group | None = None,
        presets: Iterable[str] = (),
        tags: Iterable[str] = (),
    ) -> None:
        self.name = name
        self.parent = parent
        self.presets = tuple(presets)
        self.tags = frozenset(tags)
        self._setup: list[Step] = []
        self._teardown: list[Step] = []
        # Child groups and scenarios in declaration order.
        self._order: list[Group | _Registered] = []

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.full_name!r}>'

    @property
    def full_name(self) -> str:
        if self.parent is None:
            return self.name
        return f'{self.parent.full_name} {self.name}'.strip()

    # ── Hooks ──────────────────────────────────────────────────────

    def before(self, fn: Hook) -> Hook:
        self._setup.append(Step(label=f'before {fn.__name__}', kind='before', run=fn))
        return fn

    def after(self, fn: Hook) -> Hook:
        self._teardown.append(Step(label=f'after {fn.__name__}', kind='after', run=fn))
        return fn

    def let(self, name: str, *, eager: bool = False) -> Callable[[Hook], Hook]:
        """Register a hook whose return value becomes ``ctx.<name>``.

        By default ``ctx.<name>`` is a :class:`Lazy`: the hook runs on the
        first ``await ctx.<name>`` and the value is memoised for the rest of
        the scenario, so a value nothing awaits is never created.
        ``eager=True`` runs the hook at this point of the setup chain and
        stores the plain value.
        """
        def register(fn: Hook) -> Hook:
            self._setup.append(_let_step(name, fn, eager))
            return fn
        return register

    # ── Structure ──────────────────────────────────────────────────

    def describe(
        self,
        name: str,
        *,
        presets: Iterable[str] = (),
        tags: Iterable[str] = (),
    ) -> Group:
        child = Group(name, parent=self, presets=presets, tags=tags)
        self._order.append(child)
        return child

    context = describe

    def scenario(
        self,
        title: str,
        *,
        js: bool = False,
        tags: Iterable[str] = (),
    ) -> Callable[[Hook], Hook]:
        def register(fn: Hook) -> Hook:
            entry = _Registered(title=title, body=fn, js=js, tags=frozenset(tags))
            self._order.append(entry)
            return fn
        return register

    # ── Flattening ─────────────────────────────────────────────────

    def _chain(self) -> list[Group]:
        chain: list[Group] = []
        node: Group | None = self
        while node is not None:
            chain.append(node)
            node = node.parent
        return list(reversed(chain))

    def _walk(self) -> Iterable[tuple[Group, _Registered]]:
        for item in self._order:
            if isinstance(item, Group):
                yield from item._walk()
            else:
                yield self, item


class Suite(Group):
    """Top-level group with a short ``key`` used in scenario ids.

    Args:
        name: Human-readable suite name (prefix of every scenario title).
        key: Identifier for the CLI and scenario ids; derived from *name*
            when omitted.
        description: One-line summary shown by ``storefront-harness list``.
    """

    def __init__(
        self,
        name: str,
        *,
        key: str = '',
        description: str = '',
        presets: Iterable[str] = (),
        tags: Iterable[str] = (),
    ) -> None:
        super().__init__(name, presets=presets, tags=tags)
        self.key = key or _KEY_RE.sub('-', name.lower()).strip('-')
        self.description = description

    def scenarios(self) -> list[ScenarioDefinition]:
        """Flatten the tree into runnable definitions, in declaration order."""
        definitions: list[ScenarioDefinition] = []
        for index, (group, entry) in enumerate(self._walk(), start=1):
            chain = group._chain()
            setup = [step for g in chain for step in g._setup]
            teardown = [step for g in reversed(chain) for step in g._teardown]
            presets = _unique(p for g in chain for p in g.presets)
            tags = frozenset().union(*(g.tags for g in chain), entry.tags)
            if entry.js:
                tags |= {'js'}

            body = Step(label=entry.title, kind='scenario', run=entry.body)
            definitions.append(ScenarioDefinition(
                scenario_id=f'{self.key}-{index:03d}',
                title=f'{group.full_name} {entry.title}',
                steps=(*setup, body),
                teardown=tuple(teardown),
                presets=presets,
                js=entry.js,
                tags=tags,
                source=f'{entry.body.__module__}.{entry.body.__qualname__}',
            ))
        return definitions


def select_scenarios(
    definitions: Iterable[ScenarioDefinition],
    *,
    only: str | None = None,
    tags: Iterable[str] = (),
    exclude_tags: Iterable[str] = (),
) -> list[ScenarioDefinition]:
    """Filter definitions by id/title substring and tags.

    *only* matches a scenario id exactly or a case-insensitive substring of
    the title. A scenario must carry every tag in *tags* and none in
    *exclude_tags*.
    """
    wanted = frozenset(tags)
    unwanted = frozenset(exclude_tags)
    selected: list[ScenarioDefinition] = []
    for definition in definitions:
        if only and not (
            definition.scenario_id == only
            or only.lower() in definition.title.lower()
        ):
            continue
        if not wanted <= definition.tags or definition.tags & unwanted:
            continue
        selected.append(definition)
    return selected


def _unique(items: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


@dataclass
class SuiteRegistry:
    """Suites known to the CLI, by key."""

    suites: dict[str, Suite] = field(default_factory=dict)

    def register(self, suite: Suite) -> Suite:
        if suite.key in self.suites:
            raise ValueError(f'Suite {suite.key!r} is already registered')
        self.suites[suite.key] = suite
        return suite

    def get(self, key: str) -> Suite:
        try:
            return self.suites[key]
        except KeyError:
            known = ', '.join(sorted(self.suites)) or 'none'
            raise KeyError(f'Unknown suite {key!r} (known: {known})') from None

    def __iter__(self) -> Iterator[Suite]:
        return iter(self.suites.values())

    def __len__(self) -> int:
        return len(self.suites)
