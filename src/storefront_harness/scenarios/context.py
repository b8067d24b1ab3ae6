"""Per-scenario namespace handed to hooks and scenario bodies."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, NoReturn

import structlog

from ..browser.session import Session
from ..contract import StorefrontRoutes, StorefrontStrings
from ..errors import ExpectationFailed
from ..fixtures.factories import FactoryProvider
from ..money import format_price
from ..settings import HarnessSettings


class ScenarioContext:
    """Everything one scenario may touch.

    ``let`` hooks add attributes to the context (``ctx.product``), so a
    fresh instance is built for every scenario and thrown away after it.
    """

    def __init__(
        self,
        *,
        page: Session,
        factory: FactoryProvider,
        settings: HarnessSettings,
        log: structlog.stdlib.BoundLogger,
        scenario_id: str = '',
        strings: StorefrontStrings | None = None,
    ) -> None:
        self.page = page
        self.factory = factory
        self.settings = settings
        self.log = log
        self.scenario_id = scenario_id
        self.routes = StorefrontRoutes(settings.routes)
        self.strings = strings or StorefrontStrings()

    def __repr__(self) -> str:
        return f'<ScenarioContext {self.scenario_id or "?"}>'

    @staticmethod
    def money(amount: Decimal | float | str, currency: str = 'USD') -> str:
        """Format *amount* the way the storefront renders it."""
        return format_price(amount, currency)

    @staticmethod
    def fail(message: str) -> NoReturn:
        raise ExpectationFailed(message)

    def get(self, name: str, default: Any = None) -> Any:
        return getattr(self, name, default)
