from __future__ import annotations

from typing import Optional

CURRENCY_SYMBOLS = {
    "usd": "$",
    "cad": "CA$",
    "aud": "A$",
    "eur": "€",
    "gbp": "£",
}


def format_money(cents: Optional[int], currency: str = "usd") -> str:
    """US-style formatting: $1,234.50 (unknown currencies get a code suffix)."""
    try:
        value = int(cents or 0) / 100
    except (TypeError, ValueError):
        value = 0.0
    code = (currency or "usd").lower()
    amount = f"{abs(value):,.2f}"
    sign = "-" if value < 0 else ""
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{sign}{symbol}{amount}"
    return f"{sign}{amount} {code.upper()}"
