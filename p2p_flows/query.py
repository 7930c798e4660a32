"""Row-level filtering and sorting for transaction listings.

Mirrors what a transaction table needs: focus on one person (alias-aware),
restrict to a transaction type, free-text search, and a sort column.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .aliases import apply_alias
from .models import Transaction

SORT_FIELDS: tuple[str, ...] = ("datetime", "from", "to", "amount", "type")


def transaction_types(transactions: Iterable[Transaction]) -> list[str]:
    """Distinct ``type`` values, sorted."""
    return sorted({tx.type for tx in transactions})


def _sort_key(
    sort_field: str, alias_map: Mapping[str, str] | None
) -> Callable[[Transaction], Any]:
    if sort_field == "datetime":
        return lambda tx: tx.datetime
    if sort_field == "from":
        return lambda tx: apply_alias(tx.sender, alias_map).lower()
    if sort_field == "to":
        return lambda tx: apply_alias(tx.recipient, alias_map).lower()
    if sort_field == "amount":
        return lambda tx: abs(tx.amount)
    if sort_field == "type":
        return lambda tx: tx.type.lower()
    raise ValueError(f"unknown sort field: {sort_field!r}. Allowed: {list(SORT_FIELDS)}")


def query_transactions(
    transactions: Iterable[Transaction],
    *,
    alias_map: Mapping[str, str] | None = None,
    person: str | None = None,
    type_filter: str | None = None,
    search: str | None = None,
    sort_field: str = "datetime",
    descending: bool = True,
) -> list[Transaction]:
    """Filter and sort transactions for display.

    - ``person``: keep rows where either party resolves (through
      ``alias_map``) to the same name ``person`` resolves to.
    - ``type_filter``: exact match on ``type``; ``None`` or ``"all"`` disables it.
    - ``search``: case-insensitive substring over the resolved parties, note,
      type and source file.
    - ``sort_field``: one of ``SORT_FIELDS``; ``amount`` sorts by magnitude.
      Sorting is stable.
    """

    key = _sort_key(sort_field, alias_map)
    rows = list(transactions)

    if person:
        target = apply_alias(person, alias_map)
        rows = [
            tx
            for tx in rows
            if apply_alias(tx.sender, alias_map) == target
            or apply_alias(tx.recipient, alias_map) == target
        ]

    if type_filter and type_filter != "all":
        rows = [tx for tx in rows if tx.type == type_filter]

    if search:
        needle = search.lower()
        rows = [
            tx
            for tx in rows
            if needle in apply_alias(tx.sender, alias_map).lower()
            or needle in apply_alias(tx.recipient, alias_map).lower()
            or needle in tx.note.lower()
            or needle in tx.type.lower()
            or needle in tx.source_file.lower()
        ]

    return sorted(rows, key=key, reverse=descending)


__all__ = ["SORT_FIELDS", "transaction_types", "query_transactions"]
