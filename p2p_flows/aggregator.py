"""Flow, people, graph and summary views over a transaction set.

Every function here is pure: it reads its arguments and returns fresh
structures. The views are meant to be derived together from one filtered
transaction set (see :func:`build_views`) so that a flow list, a graph and
the summary cards never disagree after an upload, an alias change or a
filter change.

Pipeline for each view:

1. :func:`filter_transactions` drops merchant transactions (optional) and
   transactions outside ``[start_date, end_of_day(end_date)]``.
2. Party names go through the alias lookup (no-op when absent).
3. The view-specific accumulation runs over the result.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal

from .aliases import apply_alias
from .merchants import is_merchant
from .models import (
    UNKNOWN_PARTY,
    Flow,
    PersonAmount,
    SankeyGraph,
    SankeyLink,
    SankeyNode,
    Sentiment,
    SummaryStats,
    Transaction,
)

TOP_N = 10

type DateBound = date | datetime | None

_ZERO = Decimal(0)


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def _start_of(bound: date | datetime) -> datetime:
    if isinstance(bound, datetime):
        return bound
    return datetime.combine(bound, time.min)


def _end_of_day(bound: date | datetime) -> datetime:
    day = bound.date() if isinstance(bound, datetime) else bound
    return datetime.combine(day, time.max)


def filter_transactions(
    transactions: Iterable[Transaction],
    *,
    hide_merchants: bool = False,
    start_date: DateBound = None,
    end_date: DateBound = None,
) -> list[Transaction]:
    """Apply the merchant and date-range filters.

    The range is inclusive: ``start_date`` itself (midnight when a plain
    ``date``) through the last instant of ``end_date``'s day. A missing bound
    leaves that side open.
    """

    lower = _start_of(start_date) if start_date is not None else None
    upper = _end_of_day(end_date) if end_date is not None else None

    kept: list[Transaction] = []
    for tx in transactions:
        if hide_merchants and (is_merchant(tx.sender) or is_merchant(tx.recipient)):
            continue
        if lower is not None and tx.datetime < lower:
            continue
        if upper is not None and tx.datetime > upper:
            continue
        kept.append(tx)
    return kept


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------


def aggregate_flows(
    transactions: Iterable[Transaction],
    hide_merchants: bool = False,
    alias_map: Mapping[str, str] | None = None,
    *,
    start_date: DateBound = None,
    end_date: DateBound = None,
) -> list[Flow]:
    """Sum absolute amounts per ordered ``(source, target)`` pair.

    Self-flows (same party after alias substitution) are skipped. Sentiment is
    ``positive`` when the positive-signed total for the pair is at least the
    negative-signed total. Flows are returned in first-seen pair order.
    """

    filtered = filter_transactions(
        transactions, hide_merchants=hide_merchants, start_date=start_date, end_date=end_date
    )
    return _flows_from(filtered, alias_map)


def _flows_from(
    transactions: Iterable[Transaction], alias_map: Mapping[str, str] | None
) -> list[Flow]:
    # pair -> [total, received_sum, sent_sum]
    acc: dict[tuple[str, str], list[Decimal]] = {}
    for tx in transactions:
        source = apply_alias(tx.sender, alias_map)
        target = apply_alias(tx.recipient, alias_map)
        if not source or not target or source == target:
            continue
        magnitude = abs(tx.amount)
        if magnitude == _ZERO:
            continue
        entry = acc.setdefault((source, target), [_ZERO, _ZERO, _ZERO])
        entry[0] += magnitude
        if tx.amount > 0:
            entry[1] += magnitude
        else:
            entry[2] += magnitude

    flows: list[Flow] = []
    for (source, target), (total, received, sent) in acc.items():
        if total <= _ZERO:
            continue
        sentiment: Sentiment = "positive" if received >= sent else "negative"
        flows.append(Flow(source=source, target=target, value=total, sentiment=sentiment))
    return flows


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------


def _people_from(
    transactions: Iterable[Transaction], alias_map: Mapping[str, str] | None
) -> list[str]:
    people: set[str] = set()
    for tx in transactions:
        for party in (tx.sender, tx.recipient):
            name = apply_alias(party, alias_map)
            if name and name != UNKNOWN_PARTY:
                people.add(name)
    return sorted(people)


def get_unique_people(
    transactions: Iterable[Transaction],
    hide_merchants: bool = False,
    alias_map: Mapping[str, str] | None = None,
    *,
    start_date: DateBound = None,
    end_date: DateBound = None,
) -> list[str]:
    """Sorted alias-substituted party names, without the ``"Unknown"`` placeholder."""

    filtered = filter_transactions(
        transactions, hide_merchants=hide_merchants, start_date=start_date, end_date=end_date
    )
    return _people_from(filtered, alias_map)


def get_original_people(
    transactions: Iterable[Transaction],
    hide_merchants: bool = False,
    *,
    start_date: DateBound = None,
    end_date: DateBound = None,
) -> list[str]:
    """Sorted party names before alias substitution (alias-suggestion pool)."""

    return get_unique_people(
        transactions, hide_merchants, None, start_date=start_date, end_date=end_date
    )


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


def build_sankey_graph(flows: Sequence[Flow], people: Sequence[str]) -> SankeyGraph:
    """Index ``people`` as nodes and turn ``flows`` into index-based links.

    A link is emitted only when both endpoints are known nodes, the endpoints
    differ, and the value is positive.
    """

    if not flows or not people:
        return SankeyGraph()

    index = {name: i for i, name in enumerate(people)}
    links = [
        SankeyLink(
            source=index[f.source],
            target=index[f.target],
            value=f.value,
            sentiment=f.sentiment,
        )
        for f in flows
        if f.source in index and f.target in index and f.source != f.target and f.value > 0
    ]
    return SankeyGraph(nodes=[SankeyNode(name) for name in people], links=links)


# ---------------------------------------------------------------------------
# Summary statistics
# ---------------------------------------------------------------------------


def _top(totals: dict[str, Decimal]) -> list[PersonAmount]:
    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [PersonAmount(name=name, amount=amount) for name, amount in ranked[:TOP_N]]


def _stats_from(
    transactions: Sequence[Transaction], alias_map: Mapping[str, str] | None
) -> SummaryStats:
    sent_by: dict[str, Decimal] = {}
    received_by: dict[str, Decimal] = {}
    total_sent = _ZERO
    total_received = _ZERO

    for tx in transactions:
        magnitude = abs(tx.amount)
        if tx.amount < 0:
            total_sent += magnitude
        elif tx.amount > 0:
            total_received += magnitude

        sender = apply_alias(tx.sender, alias_map)
        recipient = apply_alias(tx.recipient, alias_map)
        sent_by[sender] = sent_by.get(sender, _ZERO) + magnitude
        received_by[recipient] = received_by.get(recipient, _ZERO) + magnitude

    # Unsigned exports: report magnitudes as both sent and received in the
    # aggregate totals only.
    if total_sent == _ZERO and total_received == _ZERO and transactions:
        total_sent = sum((abs(tx.amount) for tx in transactions), _ZERO)
        total_received = total_sent

    return SummaryStats(
        total_sent=total_sent,
        total_received=total_received,
        total_transactions=len(transactions),
        unique_people=len(_people_from(transactions, alias_map)),
        top_payees=_top(received_by),
        top_payers=_top(sent_by),
    )


def calculate_summary_stats(
    transactions: Iterable[Transaction],
    hide_merchants: bool = False,
    alias_map: Mapping[str, str] | None = None,
    *,
    start_date: DateBound = None,
    end_date: DateBound = None,
) -> SummaryStats:
    """Totals, counts and top-10 payee/payer lists over the filtered set.

    Aggregate ``total_sent``/``total_received`` follow the sign of each amount.
    The per-person breakdown credits the sender with "sent" and the recipient
    with "received" for every transaction, independent of the flow map.
    Top lists are sorted by amount descending; ties keep first-seen order.
    """

    filtered = filter_transactions(
        transactions, hide_merchants=hide_merchants, start_date=start_date, end_date=end_date
    )
    return _stats_from(filtered, alias_map)


# ---------------------------------------------------------------------------
# All views at once
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Views:
    """Every derived view, computed from the same filtered transaction set."""

    transactions: list[Transaction]
    flows: list[Flow]
    people: list[str]
    original_people: list[str]
    graph: SankeyGraph
    stats: SummaryStats


def build_views(
    transactions: Iterable[Transaction],
    *,
    hide_merchants: bool = False,
    alias_map: Mapping[str, str] | None = None,
    start_date: DateBound = None,
    end_date: DateBound = None,
) -> Views:
    """Filter once, then derive flows, people, graph and stats from that set."""

    filtered = filter_transactions(
        transactions, hide_merchants=hide_merchants, start_date=start_date, end_date=end_date
    )
    flows = _flows_from(filtered, alias_map)
    people = _people_from(filtered, alias_map)
    return Views(
        transactions=filtered,
        flows=flows,
        people=people,
        original_people=_people_from(filtered, None),
        graph=build_sankey_graph(flows, people),
        stats=_stats_from(filtered, alias_map),
    )


__all__ = [
    "TOP_N",
    "DateBound",
    "filter_transactions",
    "aggregate_flows",
    "get_unique_people",
    "get_original_people",
    "build_sankey_graph",
    "calculate_summary_stats",
    "Views",
    "build_views",
]
