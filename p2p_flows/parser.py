"""CSV text -> :class:`~p2p_flows.models.Transaction` records.

The parser drives :mod:`p2p_flows.schema_mapper` (where are the columns?) and
:mod:`p2p_flows.normalizers` (what do the cells mean?). It performs no I/O and
never raises for bad data; every problem is reported through
``ParseResult.errors``:

- CSV syntax problems (stray quotes, unterminated quoted fields): up to
  ``MAX_SYNTAX_ERRORS`` messages, parsing continues with the next row.
- No usable header row, or missing From/To/Amount columns: the file yields
  zero transactions and a human-readable message.
- Short rows, rows without either party, zero/unparseable amounts: skipped and
  counted. The count is only reported when the whole file yielded nothing.
- Non-empty date cells that no notation fits: the row keeps the parse-time
  timestamp and one summary message counts them.

Splitting follows RFC 4180 via the stdlib :mod:`csv` module (quoted fields with
embedded commas and newlines, doubled quotes).
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from io import StringIO

from .logging_setup import get_logger
from .models import UNKNOWN_PARTY, ParseResult, Transaction
from .normalizers import ZERO, parse_signed_amount, try_parse_date
from .schema_mapper import ColumnMap, locate_header_row

MAX_SYNTAX_ERRORS = 5
DEFAULT_TYPE = "Payment"
DEFAULT_STATUS = "Complete"

EMPTY_FILE_ERROR = "CSV file is empty"
NO_HEADER_ERROR = (
    "Could not find header row with From, To, and Amount columns. "
    "Please ensure your CSV has these columns."
)
ASSUMED_HEADER_WARNING = "Using first row as headers - format may not be a standard export"
NO_AMOUNT_ERROR = "Could not find Amount column in CSV"

_logger = get_logger("p2p_flows.parser")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read_rows(csv_text: str) -> tuple[list[list[str]], list[str]]:
    """Split ``csv_text`` into rows, skipping blank lines.

    Returns ``(rows, syntax_errors)``. A row that trips a syntax error is
    dropped and reading resumes on the following line.
    """

    if csv_text.startswith("\ufeff"):
        csv_text = csv_text[1:]

    rows: list[list[str]] = []
    syntax_errors: list[str] = []
    reader = csv.reader(StringIO(csv_text, newline=""), strict=True)
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            syntax_errors.append(f"Row {reader.line_num}: {exc}")
            continue
        if not any(cell.strip() for cell in row):
            continue
        rows.append(row)
    return rows, syntax_errors


def _cell(row: Sequence[str], idx: int) -> str:
    if 0 <= idx < len(row):
        return (row[idx] or "").strip()
    return ""


def _optional_amount(row: Sequence[str], idx: int) -> Decimal | None:
    if idx < 0:
        return None
    return abs(parse_signed_amount(_cell(row, idx)))


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def parse_csv(
    csv_text: str,
    source_file: str,
    *,
    now: datetime | None = None,
) -> ParseResult:
    """Parse one CSV export into transactions plus diagnostics.

    Parameters
    ----------
    csv_text:
        Full file content as text.
    source_file:
        Label of the originating file; used in transaction ids
        (``"{source_file}-{row_index}"``) and ``Transaction.source_file``.
    now:
        Timestamp substituted for missing/unparseable dates. Defaults to the
        time of the call (one value shared by every row of the file).
    """

    parsed_at = now if now is not None else datetime.now()
    transactions: list[Transaction] = []
    errors: list[str] = []

    rows, syntax_errors = _read_rows(csv_text)
    if syntax_errors:
        _logger.debug(
            "parse:syntax_errors file=%s count=%d", source_file, len(syntax_errors)
        )
        errors.extend(syntax_errors[:MAX_SYNTAX_ERRORS])

    if not rows:
        errors.append(EMPTY_FILE_ERROR)
        return ParseResult(transactions, errors)

    location = locate_header_row(rows)
    if location is None:
        _logger.warning("parse:no_header file=%s rows=%d", source_file, len(rows))
        errors.append(NO_HEADER_ERROR)
        return ParseResult(transactions, errors)

    headers = location.headers
    columns = ColumnMap.from_headers(headers)

    # A structural failure supersedes the assumed-header warning.
    if columns.sender == -1 or columns.recipient == -1:
        _logger.warning("parse:missing_parties file=%s headers=%s", source_file, headers)
        errors.append(f"Missing required columns. Found headers: {', '.join(headers)}")
        return ParseResult(transactions, errors)
    if columns.amount == -1:
        _logger.warning("parse:missing_amount file=%s headers=%s", source_file, headers)
        errors.append(NO_AMOUNT_ERROR)
        return ParseResult(transactions, errors)

    if location.assumed:
        _logger.warning("parse:assumed_header file=%s", source_file)
        errors.append(ASSUMED_HEADER_WARNING)

    skipped = 0
    bad_dates = 0
    min_width = columns.min_row_width
    for i in range(location.row_index + 1, len(rows)):
        row = rows[i]
        if len(row) < min_width:
            skipped += 1
            continue

        sender = _cell(row, columns.sender)
        recipient = _cell(row, columns.recipient)
        if not sender and not recipient:
            skipped += 1
            continue

        amount = parse_signed_amount(_cell(row, columns.amount))
        if amount == ZERO:
            skipped += 1
            continue

        occurred_at = parsed_at
        if columns.datetime >= 0:
            raw_date = _cell(row, columns.datetime)
            parsed_date = try_parse_date(raw_date)
            if parsed_date is not None:
                occurred_at = parsed_date
            elif raw_date:
                bad_dates += 1

        transactions.append(
            Transaction(
                id=f"{source_file}-{i}",
                datetime=occurred_at,
                type=_cell(row, columns.type) or DEFAULT_TYPE,
                status=_cell(row, columns.status) or DEFAULT_STATUS,
                note=_cell(row, columns.note),
                sender=sender or UNKNOWN_PARTY,
                recipient=recipient or UNKNOWN_PARTY,
                amount=amount,
                source_file=source_file,
                tip=_optional_amount(row, columns.tip),
                tax=_optional_amount(row, columns.tax),
                fee=_optional_amount(row, columns.fee),
            )
        )

    if bad_dates:
        _logger.warning("parse:date_fallback file=%s rows=%d", source_file, bad_dates)
        errors.append(f"{bad_dates} row(s) had unparseable dates; import time used")

    if not transactions and skipped > 0:
        errors.append(
            f"Parsed 0 transactions. {skipped} rows were skipped (empty or invalid data)."
        )

    _logger.info(
        "parse:done file=%s parsed=%d skipped=%d diagnostics=%d",
        source_file,
        len(transactions),
        skipped,
        len(errors),
    )
    return ParseResult(transactions, errors)


__all__ = [
    "MAX_SYNTAX_ERRORS",
    "DEFAULT_TYPE",
    "DEFAULT_STATUS",
    "EMPTY_FILE_ERROR",
    "NO_HEADER_ERROR",
    "ASSUMED_HEADER_WARNING",
    "NO_AMOUNT_ERROR",
    "parse_csv",
]
