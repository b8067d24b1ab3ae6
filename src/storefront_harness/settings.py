"""Harness configuration settings.

HarnessSettings is the single configuration object accepted by the runner,
the drivers and the CLI. It is a plain dataclass (not env-coupled) so tests
can inject config without touching os.environ; ``from_env`` is the
convenience factory for command-line and CI use.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Literal, Mapping
from urllib.parse import urlparse

from .errors import ConfigError

DriverName = Literal['http', 'playwright']

_DRIVERS: tuple[str, ...] = ('http', 'playwright')

_TRUTHY = frozenset({'1', 'true', 'yes', 'on'})

DEFAULT_ROUTES: Mapping[str, str] = MappingProxyType({
    'products': '/products',
    'product': '/products/{slug}',
    'taxon': '/t/{permalink}',
    'cart': '/cart',
    'checkout': '/checkout',
})


@dataclass(frozen=True, slots=True)
class HarnessSettings:
    """Configuration for a harness run.

    All fields have defaults suitable for a storefront on localhost.
    """

    # ── Target ─────────────────────────────────────────────────────
    base_url: str = 'http://localhost:3000'
    """Storefront base URL (no trailing slash)."""

    seed_prefix: str = '/__harness__'
    """Path prefix of the storefront's test-only seed API."""

    routes: Mapping[str, str] = field(default_factory=lambda: DEFAULT_ROUTES)
    """Route templates keyed by name (products, product, taxon, cart, checkout)."""

    # ── Browser ────────────────────────────────────────────────────
    driver: DriverName = 'http'
    """Default driver for scenarios that do not need JavaScript."""

    max_wait: float = 2.0
    """Seconds JavaScript drivers keep retrying a query or assertion."""

    request_timeout: float = 30.0
    """Per-request timeout in seconds."""

    headless: bool = True
    """Run Playwright browsers headless."""

    # ── Runner ─────────────────────────────────────────────────────
    fail_fast: bool = True
    """Stop after the first failing scenario; later ones are reported as skipped."""

    evidence_dir: Path | None = None
    """Where failure evidence (HTML, screenshots) is written. None disables."""

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            errors.append(f'base_url must be an http(s) URL, got {self.base_url!r}')
        if self.driver not in _DRIVERS:
            errors.append(
                f'driver must be one of {", ".join(_DRIVERS)}, got {self.driver!r}'
            )
        if self.max_wait < 0:
            errors.append('max_wait must be >= 0')
        if self.request_timeout <= 0:
            errors.append('request_timeout must be > 0')
        if not self.seed_prefix.startswith('/'):
            errors.append('seed_prefix must start with "/"')
        missing = sorted(set(DEFAULT_ROUTES) - set(self.routes))
        if missing:
            errors.append(f'routes missing templates: {", ".join(missing)}')
        return errors

    def require_valid(self) -> HarnessSettings:
        """Return self, or raise ConfigError listing every problem."""
        errors = self.validate()
        if errors:
            raise ConfigError('; '.join(errors))
        return self

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> HarnessSettings:
        """Build settings from environment variables.

        Environment variables:
          - ``STOREFRONT_BASE_URL``
          - ``HARNESS_DRIVER`` (http, playwright)
          - ``HARNESS_MAX_WAIT`` / ``HARNESS_REQUEST_TIMEOUT`` (seconds)
          - ``HARNESS_SEED_PREFIX``
          - ``HARNESS_EVIDENCE_DIR``
          - ``HARNESS_FAIL_FAST`` / ``HARNESS_HEADLESS`` (1/0, true/false)
          - ``HARNESS_ROUTE_<NAME>`` overrides one route template

        Raises:
            ConfigError: If a numeric variable cannot be parsed.
        """
        if env is None:
            env = dict(os.environ)

        routes = dict(DEFAULT_ROUTES)
        for key, value in env.items():
            if key.startswith('HARNESS_ROUTE_') and value.strip():
                routes[key[len('HARNESS_ROUTE_'):].lower()] = value.strip()

        defaults = cls()
        evidence_raw = env.get('HARNESS_EVIDENCE_DIR', '').strip()

        return cls(
            base_url=env.get('STOREFRONT_BASE_URL', defaults.base_url).strip().rstrip('/'),
            seed_prefix=env.get('HARNESS_SEED_PREFIX', defaults.seed_prefix).strip(),
            routes=MappingProxyType(routes),
            driver=env.get('HARNESS_DRIVER', defaults.driver).strip().lower(),  # type: ignore[arg-type]
            max_wait=_float(env, 'HARNESS_MAX_WAIT', defaults.max_wait),
            request_timeout=_float(env, 'HARNESS_REQUEST_TIMEOUT', defaults.request_timeout),
            headless=_flag(env, 'HARNESS_HEADLESS', defaults.headless),
            fail_fast=_flag(env, 'HARNESS_FAIL_FAST', defaults.fail_fast),
            evidence_dir=Path(evidence_raw) if evidence_raw else None,
        )


# ── Helpers ────────────────────────────────────────────────────────


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, '').strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f'{key} must be a number, got {raw!r}') from None


def _flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key, '').strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY
