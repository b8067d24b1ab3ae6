"""Currency formatting for expected price strings.

Scenarios assert on the literal text a storefront renders for a price, so
the harness needs the same formatting rules: symbol, symbol position and two
decimal places.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


@dataclass(frozen=True, slots=True)
class CurrencyFormat:
    symbol: str
    symbol_first: bool
    separator: str = ''


CURRENCIES: dict[str, CurrencyFormat] = {
    'USD': CurrencyFormat('$', True),
    'CAD': CurrencyFormat('$', True),
    'AUD': CurrencyFormat('$', True),
    'EUR': CurrencyFormat('€', True),
    'GBP': CurrencyFormat('£', True),
    'JPY': CurrencyFormat('¥', True),
    'RUB': CurrencyFormat('₽', False, ' '),
    'PLN': CurrencyFormat('zł', False, ' '),
}

_CENTS = Decimal('0.01')


def to_amount(value: Decimal | float | int | str) -> Decimal:
    """Coerce *value* to a Decimal rounded to cents."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)


def format_price(amount: Decimal | float | int | str, currency: str = 'USD') -> str:
    """Render *amount* the way the storefront displays it.

    >>> format_price('159.99')
    '$159.99'
    >>> format_price(19.99, 'RUB')
    '19.99 ₽'
    """
    value = f'{to_amount(amount):,.2f}'
    fmt = CURRENCIES.get(currency.upper())
    if fmt is None:
        return f'{value} {currency.upper()}'
    if fmt.symbol_first:
        return f'{fmt.symbol}{fmt.separator}{value}'
    return f'{value}{fmt.separator}{fmt.symbol}'
