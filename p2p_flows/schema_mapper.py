"""Infer which CSV column carries each semantic transaction field.

Payment exports disagree on header spelling ("Amount (total)", "Amount",
"Total", "Value", ...), on column order, and on whether a preamble precedes
the header. Headers are normalized (lowercase, trimmed, non-alphanumerics
removed) and matched against an ordered alias list per field:

1. exact match of the normalized header against each alias, in alias order;
2. otherwise substring containment (header contains alias), in alias order;
3. otherwise the field is unmapped (``-1``).
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Header vocabulary
# ---------------------------------------------------------------------------

# Alias order is the match priority.
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "transactionid", "txid", "transid", "referenceid", "ref", "transactionref"),
    "datetime": (
        "datetime",
        "date",
        "timestamp",
        "createdat",
        "time",
        "transactiondate",
        "paymentdate",
        "processeddate",
        "completeddate",
    ),
    "type": ("type", "transactiontype", "paymenttype", "category", "txtype"),
    "status": ("status", "state", "paymentstatus", "txstatus"),
    "note": ("note", "description", "memo", "message", "comment", "details", "purpose", "reason"),
    "from": (
        "from",
        "sender",
        "fromuser",
        "payer",
        "source",
        "debitfrom",
        "paid by",
        "sentby",
        "origin",
        "fromname",
        "sendername",
        "payername",
    ),
    "to": (
        "to",
        "recipient",
        "touser",
        "payee",
        "destination",
        "creditto",
        "paid to",
        "sentto",
        "receiver",
        "toname",
        "recipientname",
        "payeename",
        "beneficiary",
    ),
    "amount": (
        "amounttotal",
        "amount",
        "total",
        "amountusd",
        "value",
        "sum",
        "payment",
        "transactionamount",
        "netamount",
        "grossamount",
        "price",
        "cost",
        "debit",
        "credit",
    ),
    "tip": ("tip", "tipamount", "gratuity"),
    "tax": ("tax", "taxamount", "salestax", "vat"),
    "fee": ("fee", "feeamount", "servicefee", "transactionfee", "processingfee"),
}

FIELDS: tuple[str, ...] = tuple(HEADER_ALIASES)
REQUIRED_FIELDS: tuple[str, ...] = ("from", "to", "amount")

# Header search window and minimum width of a plausible header row.
HEADER_SCAN_ROWS = 15
MIN_HEADER_CELLS = 3

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_header(header: str | None) -> str:
    """Lowercase, trim, and strip every non-alphanumeric character."""
    return _NON_ALNUM_RE.sub("", (header or "").lower().strip())


def find_column_index(headers: Sequence[str], field_name: str) -> int:
    """Return the column index for ``field_name`` or ``-1`` when unmapped.

    Unknown field names fall back to matching the field name itself.
    """

    normalized_headers = [normalize_header(h) for h in headers]
    candidates = [normalize_header(a) for a in HEADER_ALIASES.get(field_name, (field_name,))]

    for alias in candidates:
        for idx, header in enumerate(normalized_headers):
            if header == alias:
                return idx

    for alias in candidates:
        for idx, header in enumerate(normalized_headers):
            if alias in header:
                return idx

    return -1


def is_header_row(row: Sequence[str] | None) -> bool:
    """Heuristic: >= 3 cells with something like "from", "to" and "amount"/"total"."""

    if not row or len(row) < MIN_HEADER_CELLS:
        return False

    cells = [normalize_header(c) for c in row]
    has_from = any("from" in c for c in cells)
    has_to = any("to" in c for c in cells)
    has_amount = any("amount" in c or c == "total" for c in cells)
    return has_from and has_to and has_amount


@dataclass(frozen=True, slots=True)
class HeaderLocation:
    """Where the header row sits and what it says.

    ``assumed`` is true when no row looked like a header and the first row was
    taken as a fallback.
    """

    row_index: int
    headers: tuple[str, ...]
    assumed: bool = False


def locate_header_row(rows: Sequence[Sequence[str]]) -> HeaderLocation | None:
    """Find the header row within the first ``HEADER_SCAN_ROWS`` rows.

    Falls back to row 0 (``assumed=True``) when it has at least
    ``MIN_HEADER_CELLS`` cells; returns ``None`` when no usable header exists.
    """

    for i, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if is_header_row(row):
            return HeaderLocation(i, tuple((h or "").strip() for h in row))

    if rows and len(rows[0]) >= MIN_HEADER_CELLS:
        return HeaderLocation(0, tuple((h or "").strip() for h in rows[0]), assumed=True)
    return None


@dataclass(frozen=True, slots=True)
class ColumnMap:
    """Column index per semantic field; ``-1`` means the export lacks it."""

    id: int
    datetime: int
    type: int
    status: int
    note: int
    sender: int
    recipient: int
    amount: int
    tip: int
    tax: int
    fee: int

    @classmethod
    def from_headers(cls, headers: Sequence[str]) -> ColumnMap:
        return cls(
            id=find_column_index(headers, "id"),
            datetime=find_column_index(headers, "datetime"),
            type=find_column_index(headers, "type"),
            status=find_column_index(headers, "status"),
            note=find_column_index(headers, "note"),
            sender=find_column_index(headers, "from"),
            recipient=find_column_index(headers, "to"),
            amount=find_column_index(headers, "amount"),
            tip=find_column_index(headers, "tip"),
            tax=find_column_index(headers, "tax"),
            fee=find_column_index(headers, "fee"),
        )

    @property
    def min_row_width(self) -> int:
        """Cells a data row needs so that every mandatory column is present."""
        return max(self.sender, self.recipient, self.amount) + 1


__all__ = [
    "HEADER_ALIASES",
    "FIELDS",
    "REQUIRED_FIELDS",
    "HEADER_SCAN_ROWS",
    "MIN_HEADER_CELLS",
    "normalize_header",
    "find_column_index",
    "is_header_row",
    "HeaderLocation",
    "locate_header_row",
    "ColumnMap",
]
