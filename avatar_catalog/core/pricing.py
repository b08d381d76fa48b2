"""
Price parsing and currency display.

Handles lenient price strings and per-currency formatting for spend reports.
"""

import math
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Dict, Optional


DEFAULT_CURRENCY = "USD"

_NON_NUMERIC = re.compile(r"[^0-9.]")


@dataclass(frozen=True)
class CurrencyInfo:
    """Display information for a single currency."""
    code: str
    symbol: str
    name: str


@dataclass(frozen=True)
class CurrencyTable:
    """Fixed table of supported currencies."""
    currencies: Dict[str, CurrencyInfo]

    def get_currency(self, code: Optional[str]) -> CurrencyInfo:
        """Get display information for a currency code.

        Unknown or empty codes fall back to the default currency so that
        a stray code never breaks report rendering.

        Args:
            code: Currency code such as "USD" or "EUR"

        Returns:
            CurrencyInfo for the code, or for DEFAULT_CURRENCY
        """
        if code and code in self.currencies:
            return self.currencies[code]
        return self.currencies[DEFAULT_CURRENCY]


CURRENCY_TABLE = CurrencyTable({
    "USD": CurrencyInfo("USD", "$", "US Dollar"),
    "EUR": CurrencyInfo("EUR", "€", "Euro"),
    "GBP": CurrencyInfo("GBP", "£", "British Pound"),
    "JPY": CurrencyInfo("JPY", "¥", "Japanese Yen"),
    "CAD": CurrencyInfo("CAD", "C$", "Canadian Dollar"),
    "AUD": CurrencyInfo("AUD", "A$", "Australian Dollar"),
    "CNY": CurrencyInfo("CNY", "¥", "Chinese Yuan"),
    "INR": CurrencyInfo("INR", "₹", "Indian Rupee"),
    "BRL": CurrencyInfo("BRL", "R$", "Brazilian Real"),
    "RUB": CurrencyInfo("RUB", "₽", "Russian Ruble"),
    "KRW": CurrencyInfo("KRW", "₩", "South Korean Won"),
    "MXN": CurrencyInfo("MXN", "Mex$", "Mexican Peso"),
    "CHF": CurrencyInfo("CHF", "Fr", "Swiss Franc"),
})


def parse_price(value: Optional[str]) -> float:
    """Parse a free-form price string leniently.

    Every character other than digits and '.' is stripped before parsing,
    so "$12.50", "12.50 USD" and "¥1,500" all parse. Missing, empty,
    unparseable and non-finite prices are 0.0: free and unset are treated
    the same.

    Args:
        value: Raw price as stored on the asset

    Returns:
        Parsed price, or 0.0
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return _finite(float(value))

    numeric = _NON_NUMERIC.sub("", str(value))
    if not numeric:
        return 0.0
    try:
        return _finite(float(numeric))
    except ValueError:
        return 0.0


def normalize_currency(code: Optional[str]) -> str:
    """Normalize a currency code, defaulting to USD when absent."""
    if code is None or not str(code).strip():
        return DEFAULT_CURRENCY
    return str(code).strip().upper()


def format_amount(amount: float, currency: str) -> str:
    """Format an amount for display with the currency symbol.

    Rounds half-up to 2 decimal places. Only used at the display edge,
    aggregates keep full precision.

    Args:
        amount: Amount to display
        currency: Currency code

    Returns:
        Formatted string such as "€1,234.50"
    """
    info = CURRENCY_TABLE.get_currency(currency)
    if not math.isfinite(amount):
        return f"{info.symbol}{amount:,.2f}"

    value = Decimal(str(amount))
    with localcontext() as ctx:
        # Enough digits for the integer part plus two decimals
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        rounded = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{info.symbol}{rounded:,.2f}"


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0
