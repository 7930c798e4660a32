"""CSV and JSON renderings of transactions and flows.

CSV output has a bare header line, quotes every data field (embedded quotes
doubled) and uses ``\\n`` line endings. JSON output is pretty-printed with
two-space indentation; datetimes are ISO-8601 and money values are exact
decimal strings (never floats).
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from typing import Any

from .models import Flow, PersonAmount, SummaryStats, Transaction
from .normalizers import format_amount

TRANSACTION_CSV_HEADERS: tuple[str, ...] = (
    "ID",
    "Date",
    "From",
    "To",
    "Amount",
    "Type",
    "Status",
    "Note",
    "Source File",
)
FLOW_CSV_HEADERS: tuple[str, ...] = ("Source", "Target", "Total Amount", "Sentiment")

EXPORT_KINDS: tuple[str, ...] = ("transactions", "flows")
EXPORT_FORMATS: tuple[str, ...] = ("csv", "json")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _decimal_str(d: Decimal) -> str:
    # Fixed-point notation; no exponent even for values like Decimal("1E+2").
    return format(d, "f")


def _write_csv(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    # Header line is bare; data cells are always quoted.
    buf = StringIO()
    buf.write(",".join(headers) + "\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue().rstrip("\n")


def _export_date(now: datetime | None) -> str:
    return (now if now is not None else datetime.now()).isoformat()


def _person_amounts(items: Iterable[PersonAmount]) -> list[dict[str, str]]:
    return [{"name": p.name, "amount": _decimal_str(p.amount)} for p in items]


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def transactions_to_csv(transactions: Iterable[Transaction]) -> str:
    rows = (
        (
            tx.id,
            tx.datetime.strftime("%Y-%m-%d"),
            tx.sender,
            tx.recipient,
            format_amount(tx.amount),
            tx.type,
            tx.status,
            tx.note,
            tx.source_file,
        )
        for tx in transactions
    )
    return _write_csv(TRANSACTION_CSV_HEADERS, rows)


def flows_to_csv(flows: Iterable[Flow]) -> str:
    rows = ((f.source, f.target, format_amount(f.value), f.sentiment) for f in flows)
    return _write_csv(FLOW_CSV_HEADERS, rows)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def transactions_to_json(
    transactions: Sequence[Transaction], *, now: datetime | None = None
) -> str:
    payload: dict[str, Any] = {
        "exportDate": _export_date(now),
        "transactionCount": len(transactions),
        "transactions": [
            {
                "id": tx.id,
                "datetime": tx.datetime.isoformat(),
                "from": tx.sender,
                "to": tx.recipient,
                "amount": _decimal_str(tx.amount),
                "type": tx.type,
                "status": tx.status,
                "note": tx.note,
                "sourceFile": tx.source_file,
            }
            for tx in transactions
        ],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def flows_to_json(
    flows: Sequence[Flow], stats: SummaryStats, *, now: datetime | None = None
) -> str:
    payload: dict[str, Any] = {
        "exportDate": _export_date(now),
        "summary": {
            "totalSent": _decimal_str(stats.total_sent),
            "totalReceived": _decimal_str(stats.total_received),
            "totalTransactions": stats.total_transactions,
            "uniquePeople": stats.unique_people,
        },
        "flows": [
            {
                "source": f.source,
                "target": f.target,
                "value": _decimal_str(f.value),
                "sentiment": f.sentiment,
            }
            for f in flows
        ],
        "topPayees": _person_amounts(stats.top_payees),
        "topPayers": _person_amounts(stats.top_payers),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Filenames
# ---------------------------------------------------------------------------


def export_filename(kind: str, fmt: str, today: date | None = None) -> str:
    """Return ``p2p-<kind>-YYYY-MM-DD.<fmt>``.

    Raises ``ValueError`` for an unknown ``kind`` or ``fmt``.
    """

    if kind not in EXPORT_KINDS:
        raise ValueError(f"unknown export kind: {kind!r}. Allowed: {list(EXPORT_KINDS)}")
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"unknown export format: {fmt!r}. Allowed: {list(EXPORT_FORMATS)}")
    day = today if today is not None else date.today()
    return f"p2p-{kind}-{day.isoformat()}.{fmt}"


__all__ = [
    "TRANSACTION_CSV_HEADERS",
    "FLOW_CSV_HEADERS",
    "EXPORT_KINDS",
    "EXPORT_FORMATS",
    "transactions_to_csv",
    "flows_to_csv",
    "transactions_to_json",
    "flows_to_json",
    "export_filename",
]
