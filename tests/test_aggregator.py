from datetime import date, datetime
from decimal import Decimal

from p2p_flows.aggregator import (
    TOP_N,
    aggregate_flows,
    build_sankey_graph,
    build_views,
    calculate_summary_stats,
    filter_transactions,
    get_original_people,
    get_unique_people,
)
from p2p_flows.aliases import build_alias_map
from p2p_flows.models import AliasMapping, Flow, PersonAmount, SankeyLink, SankeyNode, Transaction

# ---- Helpers -----------------------------------------------------------------


def _tx(i: int, sender: str, recipient: str, amount: str, when: datetime) -> Transaction:
    return Transaction(
        id=f"t.csv-{i}",
        datetime=when,
        type="Payment",
        status="Complete",
        note="",
        sender=sender,
        recipient=recipient,
        amount=Decimal(amount),
        source_file="t.csv",
    )


T1 = _tx(1, "Alice Wong", "Bob Jones", "-25.00", datetime(2024, 1, 15, 10, 30))
T2 = _tx(2, "Carol Diaz", "Alice Wong", "1200.00", datetime(2024, 1, 16, 9, 0))
T3 = _tx(3, "Alice Wong", "Bob Jones", "-10.00", datetime(2024, 2, 1, 23, 59, 59))
T4 = _tx(4, "Alice Wong", "Starbucks", "-5.00", datetime(2024, 2, 2, 8, 0))
T5 = _tx(5, "Alice Wong", "Unknown", "-7.00", datetime(2024, 2, 3, 8, 0))

BOB_ALIAS = build_alias_map([AliasMapping("Bob Jones", ("Bob J.",))])


# ---- Filtering ---------------------------------------------------------------


def test_filter_transactions_date_range_is_inclusive_through_end_of_day():
    kept = filter_transactions(
        [T1, T2, T3, T4], start_date=date(2024, 1, 16), end_date=date(2024, 2, 1)
    )
    assert kept == [T2, T3]


def test_filter_transactions_open_bounds_and_merchants():
    assert filter_transactions([T1, T2, T3, T4], start_date=date(2024, 2, 1)) == [T3, T4]
    assert filter_transactions([T1, T4], end_date=date(2024, 1, 31)) == [T1]
    assert filter_transactions([T1, T4], hide_merchants=True) == [T1]


# ---- Flows -------------------------------------------------------------------


def test_aggregate_flows_sums_magnitudes_in_first_seen_order():
    assert aggregate_flows([T1, T2, T3]) == [
        Flow("Alice Wong", "Bob Jones", Decimal("35.00"), "negative"),
        Flow("Carol Diaz", "Alice Wong", Decimal("1200.00"), "positive"),
    ]


def test_aggregate_flows_sentiment_positive_on_tie():
    back = _tx(9, "Alice Wong", "Bob Jones", "25.00", datetime(2024, 1, 20))
    assert aggregate_flows([T1, back]) == [
        Flow("Alice Wong", "Bob Jones", Decimal("50.00"), "positive")
    ]


def test_aggregate_flows_applies_aliases_and_skips_self_flows():
    variant = _tx(6, "Alice Wong", "Bob J.", "-5.00", datetime(2024, 1, 17))
    self_flow = _tx(7, "Bob J.", "Bob Jones", "-3.00", datetime(2024, 1, 18))
    flows = aggregate_flows([T1, variant, self_flow], alias_map=BOB_ALIAS)
    assert flows == [Flow("Alice Wong", "Bob Jones", Decimal("30.00"), "negative")]


def test_aggregate_flows_hide_merchants_and_date_range():
    assert aggregate_flows([T1, T4], hide_merchants=True) == [
        Flow("Alice Wong", "Bob Jones", Decimal("25.00"), "negative")
    ]
    assert aggregate_flows([T1, T2, T3], start_date=date(2024, 2, 1)) == [
        Flow("Alice Wong", "Bob Jones", Decimal("10.00"), "negative")
    ]


def test_flow_totals_equal_filtered_magnitudes():
    transactions = [T1, T2, T3, T4]
    total = sum((f.value for f in aggregate_flows(transactions)), Decimal(0))
    assert total == sum((abs(t.amount) for t in transactions), Decimal(0))


# ---- People and graph --------------------------------------------------------


def test_get_unique_people_sorted_without_unknown():
    assert get_unique_people([T1, T2, T5]) == ["Alice Wong", "Bob Jones", "Carol Diaz"]


def test_people_with_and_without_aliases():
    variant = _tx(6, "Alice Wong", "Bob J.", "-5.00", datetime(2024, 1, 17))
    assert get_unique_people([T1, variant], alias_map=BOB_ALIAS) == ["Alice Wong", "Bob Jones"]
    assert get_original_people([T1, variant]) == ["Alice Wong", "Bob J.", "Bob Jones"]


def test_build_sankey_graph_indexes_people():
    flows = aggregate_flows([T1, T2, T5])
    people = get_unique_people([T1, T2, T5])
    graph = build_sankey_graph(flows, people)

    assert graph.nodes == [
        SankeyNode("Alice Wong"),
        SankeyNode("Bob Jones"),
        SankeyNode("Carol Diaz"),
    ]
    # The flow to "Unknown" has no node and therefore no link.
    assert graph.links == [
        SankeyLink(0, 1, Decimal("25.00"), "negative"),
        SankeyLink(2, 0, Decimal("1200.00"), "positive"),
    ]
    for link in graph.links:
        assert 0 <= link.source < len(graph.nodes)
        assert 0 <= link.target < len(graph.nodes)
        assert link.source != link.target


def test_build_sankey_graph_empty_inputs():
    graph = build_sankey_graph([], ["Alice Wong"])
    assert graph.nodes == []
    assert graph.links == []


# ---- Summary statistics ------------------------------------------------------


def test_calculate_summary_stats():
    stats = calculate_summary_stats([T1, T2, T3])

    assert stats.total_sent == Decimal("35.00")
    assert stats.total_received == Decimal("1200.00")
    assert stats.total_transactions == 3
    assert stats.unique_people == 3
    assert stats.top_payees == [
        PersonAmount("Alice Wong", Decimal("1200.00")),
        PersonAmount("Bob Jones", Decimal("35.00")),
    ]
    assert stats.top_payers == [
        PersonAmount("Carol Diaz", Decimal("1200.00")),
        PersonAmount("Alice Wong", Decimal("35.00")),
    ]


def test_summary_stats_top_lists_are_capped_and_stable():
    transactions = [
        _tx(i, "Alice Wong", f"Friend {i:02d}", "-1.00", datetime(2024, 3, 1)) for i in range(12)
    ]
    stats = calculate_summary_stats(transactions)
    assert len(stats.top_payees) == TOP_N
    assert [p.name for p in stats.top_payees] == [f"Friend {i:02d}" for i in range(TOP_N)]


def test_summary_stats_empty():
    stats = calculate_summary_stats([])
    assert stats.total_sent == Decimal(0)
    assert stats.total_received == Decimal(0)
    assert stats.total_transactions == 0
    assert stats.top_payees == []


# ---- All views ---------------------------------------------------------------


def test_build_views_share_one_filtered_set():
    views = build_views(
        [T1, T2, T3, T4, T5],
        hide_merchants=True,
        alias_map=BOB_ALIAS,
        start_date=date(2024, 1, 16),
    )

    assert views.transactions == [T2, T3, T5]
    assert views.people == ["Alice Wong", "Bob Jones", "Carol Diaz"]
    assert views.stats.total_transactions == len(views.transactions)
    assert views.stats.unique_people == len(views.people)
    assert [n.name for n in views.graph.nodes] == views.people
    assert len(views.graph.links) == 2
    flow_total = sum((f.value for f in views.flows), Decimal(0))
    assert flow_total == sum((abs(t.amount) for t in views.transactions), Decimal(0))


def test_aggregate_flows_is_idempotent():
    transactions = [T1, T2, T3, T4, T5]
    assert aggregate_flows(transactions, alias_map=BOB_ALIAS) == aggregate_flows(
        transactions, alias_map=BOB_ALIAS
    )


def test_opposite_directions_stay_separate_flows():
    out = _tx(20, "Alice Wong", "Bob Jones", "-50.00", datetime(2024, 4, 1))
    back = _tx(21, "Bob Jones", "Alice Wong", "30.00", datetime(2024, 4, 2))
    assert aggregate_flows([out, back]) == [
        Flow("Alice Wong", "Bob Jones", Decimal("50.00"), "negative"),
        Flow("Bob Jones", "Alice Wong", Decimal("30.00"), "positive"),
    ]


def test_every_alias_variant_collapses_to_canonical_person():
    alex = build_alias_map([AliasMapping("Alex", ("alex j", "AlexJ"))])
    transactions = [
        _tx(22, "alex j", "Alex", "-4.00", datetime(2024, 4, 3)),
        _tx(23, "AlexJ", "alex j", "-6.00", datetime(2024, 4, 4)),
    ]
    assert get_unique_people(transactions, alias_map=alex) == ["Alex"]


def test_merchant_counterparty_toggles_with_hide_merchants():
    delivery = _tx(24, "DoorDash", "Alice Wong", "12.00", datetime(2024, 4, 5))
    transactions = [T1, delivery]

    hidden_flows = aggregate_flows(transactions, hide_merchants=True)
    hidden_stats = calculate_summary_stats(transactions, hide_merchants=True)
    assert all("DoorDash" not in (f.source, f.target) for f in hidden_flows)
    assert hidden_stats.total_transactions == 1
    assert hidden_stats.total_received == Decimal(0)

    shown_flows = aggregate_flows(transactions, hide_merchants=False)
    shown_stats = calculate_summary_stats(transactions, hide_merchants=False)
    assert Flow("DoorDash", "Alice Wong", Decimal("12.00"), "positive") in shown_flows
    assert shown_stats.total_transactions == 2
    assert shown_stats.total_received == Decimal("12.00")
