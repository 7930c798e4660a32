"""Cell-level normalizers: signed currency amounts and calendar dates.

Both parsers are tolerant by contract. They never raise for bad input:

- :func:`parse_signed_amount` returns ``Decimal(0)`` for unparseable text,
  which makes the record parser skip the row.
- :func:`parse_date` returns the supplied "now" for unparseable text; the row
  is kept.

Amount notations handled (any currency symbol from ``_CURRENCY_SYMBOLS``):
``"-$1,234.56"``, ``"+ $375.00"``, ``"(100.00)"`` (accounting negative),
``"100.00DR"`` / ``"100.00 cr"`` (debit/credit suffixes).

Date notations handled, in order: anything ``dateutil`` understands, then
``DD/MM/YYYY``, ``MM/DD/YY[YY]``, ``YYYY/MM/DD`` (``-`` also accepted as the
separator).
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, DecimalException, getcontext, localcontext

from dateutil import parser as date_parser

# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_CURRENCY_SYMBOLS = "$€£¥₹₽₩₪₱₺₴₦₫฿¢"
_STRIP_RE = re.compile("[" + re.escape(_CURRENCY_SYMBOLS) + r",\s()]")
_CR_DR_SUFFIX_RE = re.compile(r"(CR|DR)$", re.IGNORECASE)
# Leading numeric prefix; trailing garbage after it is ignored.
_NUMBER_PREFIX_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

ZERO = Decimal(0)


def parse_signed_amount(value: str | None) -> Decimal:
    """Parse free-text currency into a signed ``Decimal``.

    Steps:
    - parentheses around the whole value flag a negative amount;
    - currency symbols, thousands separators, whitespace and parentheses are
      removed;
    - a trailing ``DR`` flags negative, a trailing ``CR`` flags positive;
    - the remaining leading number is parsed; the flags override its sign
      (parentheses/``DR`` force ``-abs``, ``CR`` forces ``abs``).

    Returns ``Decimal(0)`` when nothing numeric can be read.
    """

    if not value:
        return ZERO
    trimmed = value.strip()

    parenthesized = trimmed.startswith("(") and trimmed.endswith(")")

    cleaned = _STRIP_RE.sub("", trimmed)
    upper = cleaned.upper()
    is_debit = upper.endswith("DR")
    is_credit = upper.endswith("CR")
    cleaned = _CR_DR_SUFFIX_RE.sub("", cleaned)

    match = _NUMBER_PREFIX_RE.match(cleaned)
    if match is None:
        return ZERO
    try:
        number = Decimal(match.group(0))
    except DecimalException:
        return ZERO
    # Magnitudes at the context's exponent limit overflow on abs() or summing.
    if number and number.adjusted() >= getcontext().Emax:
        return ZERO

    if parenthesized or is_debit:
        return -abs(number)
    if is_credit:
        return abs(number)
    return number


def format_amount(d: Decimal) -> str:
    """Exactly two decimals, ASCII dot, leading minus for negatives."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, d.adjusted() + 3)
        q = d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{q:.2f}"


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_DAY_FIRST_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$")
_MONTH_FIRST_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})$")
_YEAR_FIRST_RE = re.compile(r"^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})$")


def _generic_parse(text: str) -> datetime | None:
    try:
        parsed = date_parser.parse(text)
        if parsed.tzinfo is not None:
            # Keep every timestamp naive local time so range filters can compare them.
            parsed = parsed.astimezone().replace(tzinfo=None)
    except (ValueError, OverflowError):
        return None
    return parsed


def _build(year: int, month: int, day: int) -> datetime | None:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def try_parse_date(value: str | None) -> datetime | None:
    """Parse a date cell, or return ``None`` when no notation fits.

    Generic parsing wins when it succeeds, so the ambiguous ``03/04/2024``
    reads month-first. The explicit patterns only run for text the generic
    parser rejects; the first one that yields a valid calendar date wins.
    """

    trimmed = (value or "").strip()
    if not trimmed:
        return None

    parsed = _generic_parse(trimmed)
    if parsed is not None:
        return parsed

    m = _DAY_FIRST_RE.match(trimmed)
    if m:
        day, month, year = (int(g) for g in m.groups())
        built = _build(year, month, day)
        if built is not None:
            return built

    m = _MONTH_FIRST_RE.match(trimmed)
    if m:
        month, day, year = (int(g) for g in m.groups())
        if year < 100:
            year += 2000
        built = _build(year, month, day)
        if built is not None:
            return built

    m = _YEAR_FIRST_RE.match(trimmed)
    if m:
        year, month, day = (int(g) for g in m.groups())
        return _build(year, month, day)

    return None


def parse_date(value: str | None, *, now: datetime | None = None) -> datetime:
    """:func:`try_parse_date`, falling back to ``now`` (default: current time)."""
    parsed = try_parse_date(value)
    if parsed is not None:
        return parsed
    return now if now is not None else datetime.now()


__all__ = ["ZERO", "parse_signed_amount", "format_amount", "try_parse_date", "parse_date"]
