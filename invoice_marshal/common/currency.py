"""
Currency formatting shared by the API, PDF and email renderers.
"""
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Union


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"


CURRENCY_SYMBOLS = {
    Currency.USD: "$",
    Currency.EUR: "€",
}

CENT = Decimal("0.01")


def to_money(amount: Union[Decimal, int, float, str]) -> Decimal:
    """Normalize any numeric input to a 2-decimal Decimal."""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(amount: Union[Decimal, int, float, str], currency: Union[Currency, str]) -> str:
    """
    Format an amount en-US style: ``$1,234.50``, ``€1,234.50``, ``-$5.00``.

    Raises ValueError for currencies other than USD/EUR.
    """
    code = Currency(currency.value if isinstance(currency, Currency) else str(currency).upper())
    value = to_money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{CURRENCY_SYMBOLS[code]}{abs(value):,.2f}"
