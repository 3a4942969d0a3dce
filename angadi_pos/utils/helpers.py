# utils/helpers.py
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
import logging
from typing import Union, Optional

from dateutil.relativedelta import relativedelta

NumberLike = Union[Decimal, float, int, str]

_log = logging.getLogger(__name__)

_ONES = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine"]
_TEENS = [
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen",
    "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def today_str() -> str:
    """Return today's date as ISO string (YYYY-MM-DD)."""
    return date.today().isoformat()


def add_months(iso_date: str, months: int) -> str:
    """Calendar-aware month offset ('2025-08-31' + 6 -> '2026-02-28')."""
    return (date.fromisoformat(iso_date) + relativedelta(months=months)).isoformat()


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default (strict=False, sentinel=None), returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError on parse failures.
    """
    try:
        x = v if isinstance(v, Decimal) else Decimal(str(v))
        if not x.is_finite():
            raise ValueError(f"non-finite amount {v!r}")
    except Exception as e:
        _log.debug("fmt_money: failed to parse %r as a number: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    q = x.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return f"{q:,.{places}f}"


def _below_thousand(n: int) -> str:
    if n == 0:
        return ""
    if n < 10:
        return _ONES[n]
    if n < 20:
        return _TEENS[n - 10]
    if n < 100:
        return _TENS[n // 10] + (" " + _ONES[n % 10] if n % 10 else "")
    return _ONES[n // 100] + " Hundred" + (" " + _below_thousand(n % 100) if n % 100 else "")


def number_to_words(num: int) -> str:
    """Indian numbering: thousand, lakh, crore."""
    if num == 0:
        return "Zero"
    if num < 1000:
        return _below_thousand(num)
    if num < 100_000:
        rest = num % 1000
        return _below_thousand(num // 1000) + " Thousand" + (" " + _below_thousand(rest) if rest else "")
    if num < 10_000_000:
        rest = num % 100_000
        return _below_thousand(num // 100_000) + " Lakh" + (" " + number_to_words(rest) if rest else "")
    rest = num % 10_000_000
    return number_to_words(num // 10_000_000) + " Crore" + (" " + number_to_words(rest) if rest else "")


def amount_in_words(amount: NumberLike) -> str:
    """'212.40' -> 'Two Hundred Twelve Rupees and Forty Paise Only'."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    rupees = int(value)
    paise = int((value - rupees) * 100)
    words = number_to_words(rupees) + " Rupees"
    if paise > 0:
        words += " and " + number_to_words(paise) + " Paise"
    return words + " Only"
