# ruff: noqa: E501
import textwrap
from datetime import datetime
from decimal import Decimal

from p2p_flows.models import Transaction
from p2p_flows.parser import (
    ASSUMED_HEADER_WARNING,
    EMPTY_FILE_ERROR,
    MAX_SYNTAX_ERRORS,
    NO_AMOUNT_ERROR,
    NO_HEADER_ERROR,
    parse_csv,
)

NOW = datetime(2025, 6, 1, 12, 0, 0)


def _dedent(s: str) -> str:
    # Keep internal newlines, but normalize indentation for readability.
    return textwrap.dedent(s).lstrip("\n").rstrip()


def test_venmo_statement_snapshot():
    csv_text = _dedent(
        """
        Account Statement - (@alice-wong) ,,,,,,,,,,
        Account Activity,,,,,,,,,,
        ,ID,Datetime,Type,Status,Note,From,To,Amount (total),Amount (tip),Amount (fee)
        ,3001,2024-01-15T10:30:00,Payment,Complete,Dinner 🍕,Alice Wong,Bob Jones,- $25.00,,
        ,3002,2024-01-16T09:00:00,Charge,Complete,"Rent, January",Carol Diaz,Alice Wong,"+ $1,200.00",,$0.50
        ,,,,,,,,,,
        ,,,,,,,,$1175.00,,
        """
    )

    result = parse_csv(csv_text, "venmo.csv", now=NOW)

    assert result.errors == []
    assert result.transactions == [
        Transaction(
            id="venmo.csv-3",
            datetime=datetime(2024, 1, 15, 10, 30),
            type="Payment",
            status="Complete",
            note="Dinner 🍕",
            sender="Alice Wong",
            recipient="Bob Jones",
            amount=Decimal("-25.00"),
            source_file="venmo.csv",
            tip=Decimal(0),
            tax=None,
            fee=Decimal(0),
        ),
        Transaction(
            id="venmo.csv-4",
            datetime=datetime(2024, 1, 16, 9, 0),
            type="Charge",
            status="Complete",
            note="Rent, January",
            sender="Carol Diaz",
            recipient="Alice Wong",
            amount=Decimal("1200.00"),
            source_file="venmo.csv",
            tip=Decimal(0),
            tax=None,
            fee=Decimal("0.50"),
        ),
    ]


def test_minimal_export_uses_defaults():
    csv_text = _dedent(
        """
        Date,From,To,Amount
        2024-03-02,Alice Wong,,-5.00
        """
    )

    result = parse_csv(csv_text, "min.csv", now=NOW)

    assert result.errors == []
    assert result.transactions == [
        Transaction(
            id="min.csv-1",
            datetime=datetime(2024, 3, 2),
            type="Payment",
            status="Complete",
            note="",
            sender="Alice Wong",
            recipient="Unknown",
            amount=Decimal("-5.00"),
            source_file="min.csv",
        )
    ]


def test_bom_and_crlf_are_tolerated():
    csv_text = "\ufeffFrom,To,Amount\r\nAlice Wong,Bob Jones,7.25\r\n"

    result = parse_csv(csv_text, "bom.csv", now=NOW)

    assert result.errors == []
    assert [(t.sender, t.recipient, t.amount) for t in result.transactions] == [
        ("Alice Wong", "Bob Jones", Decimal("7.25"))
    ]


def test_quoted_field_with_embedded_newline_and_quotes():
    csv_text = _dedent(
        '''
        From,To,Amount,Note
        Alice Wong,Bob Jones,5.00,"line one
        line two ""quoted"""
        '''
    )

    result = parse_csv(csv_text, "multi.csv", now=NOW)

    assert result.errors == []
    assert [t.note for t in result.transactions] == ['line one\nline two "quoted"']


def test_assumed_header_is_reported_and_rows_still_parse():
    csv_text = _dedent(
        """
        Payer,Payee,Value
        Alice Wong,Bob Jones,12.00
        """
    )

    result = parse_csv(csv_text, "odd.csv", now=NOW)

    assert result.errors == [ASSUMED_HEADER_WARNING]
    assert len(result.transactions) == 1
    tx = result.transactions[0]
    assert (tx.sender, tx.recipient, tx.amount) == ("Alice Wong", "Bob Jones", Decimal("12.00"))
    # No date column: every row gets the parse-time timestamp.
    assert tx.datetime == NOW


def test_missing_from_column_yields_single_diagnostic():
    csv_text = _dedent(
        """
        Date,Recipient,Amount
        2024-01-01,Bob Jones,10.00
        """
    )

    result = parse_csv(csv_text, "nofrom.csv", now=NOW)

    assert result.transactions == []
    assert result.errors == ["Missing required columns. Found headers: Date, Recipient, Amount"]


def test_missing_amount_column():
    csv_text = _dedent(
        """
        From,To,Note
        Alice Wong,Bob Jones,hi
        """
    )

    result = parse_csv(csv_text, "noamount.csv", now=NOW)

    assert result.transactions == []
    assert result.errors == [NO_AMOUNT_ERROR]


def test_empty_and_blank_files():
    assert parse_csv("", "empty.csv", now=NOW).errors == [EMPTY_FILE_ERROR]
    assert parse_csv("\n  \n,,,\n", "blank.csv", now=NOW).errors == [EMPTY_FILE_ERROR]


def test_single_narrow_row_has_no_header():
    result = parse_csv("just one line", "one.csv", now=NOW)
    assert result.transactions == []
    assert result.errors == [NO_HEADER_ERROR]


def test_all_rows_skipped_reports_count():
    csv_text = _dedent(
        """
        From,To,Amount
        Alice Wong,Bob Jones,0
        Alice Wong,Bob Jones,abc
        ,,5.00
        Alice Wong
        """
    )

    result = parse_csv(csv_text, "skipped.csv", now=NOW)

    assert result.transactions == []
    assert result.errors == [
        "Parsed 0 transactions. 4 rows were skipped (empty or invalid data)."
    ]


def test_skipped_rows_are_silent_when_something_parsed():
    csv_text = _dedent(
        """
        From,To,Amount
        Alice Wong,Bob Jones,0
        Alice Wong,Bob Jones,3.00
        """
    )

    result = parse_csv(csv_text, "partial.csv", now=NOW)

    assert result.errors == []
    assert [t.id for t in result.transactions] == ["partial.csv-2"]


def test_syntax_error_row_is_reported_and_parsing_continues():
    csv_text = _dedent(
        """
        From,To,Amount
        Alice Wong,"Bob" Jones,5.00
        Carol Diaz,Dave Brown,7.00
        """
    )

    result = parse_csv(csv_text, "broken.csv", now=NOW)

    assert len(result.errors) == 1
    assert result.errors[0].startswith("Row 2: ")
    assert [(t.sender, t.recipient) for t in result.transactions] == [("Carol Diaz", "Dave Brown")]


def test_syntax_errors_are_capped():
    bad = "\n".join('x,"y"z,1' for _ in range(MAX_SYNTAX_ERRORS + 2))
    csv_text = "From,To,Amount\n" + bad + "\nAlice Wong,Bob Jones,1.00"

    result = parse_csv(csv_text, "many.csv", now=NOW)

    assert len(result.errors) == MAX_SYNTAX_ERRORS
    assert len(result.transactions) == 1


def test_ids_are_unique_per_file_and_row():
    csv_text = _dedent(
        """
        From,To,Amount
        Alice Wong,Bob Jones,1.00
        Alice Wong,Bob Jones,1.00
        """
    )

    a = parse_csv(csv_text, "a.csv", now=NOW).transactions
    b = parse_csv(csv_text, "b.csv", now=NOW).transactions

    ids = [t.id for t in a + b]
    assert len(ids) == len(set(ids)) == 4


def test_unparseable_dates_use_parse_time_and_are_counted():
    csv_text = _dedent(
        """
        Date,From,To,Amount
        not a date,Alice Wong,Bob Jones,-5.00
        2024-03-02,Alice Wong,Bob Jones,-6.00
        9999-12-31T23:00:00-05:00,Carol Diaz,Alice Wong,7.00
        ,Carol Diaz,Alice Wong,8.00
        """
    )

    result = parse_csv(csv_text, "dates.csv", now=NOW)

    assert result.errors == ["2 row(s) had unparseable dates; import time used"]
    assert [t.datetime for t in result.transactions] == [NOW, datetime(2024, 3, 2), NOW, NOW]


def test_out_of_range_amount_is_skipped_not_raised():
    csv_text = _dedent(
        """
        From,To,Amount
        Alice Wong,Bob Jones,(1e999999999)
        Alice Wong,Bob Jones,1e999999999
        """
    )

    result = parse_csv(csv_text, "huge.csv", now=NOW)

    assert result.transactions == []
    assert result.errors == [
        "Parsed 0 transactions. 2 rows were skipped (empty or invalid data)."
    ]
