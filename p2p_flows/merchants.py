"""Merchant recognition against a curated catalog of name fragments.

Matching rule (shared by :func:`is_merchant` and :func:`find_merchant_cluster`):
lowercase the party name; it matches a catalog fragment when

- the name contains the fragment, or
- the name is longer than 4 characters and the fragment contains the name's
  first 5 characters.

The second clause is deliberately loose so that truncated or suffixed
merchant strings in exports ("Starbucks Store #1234", "DOORD") still match.
Cluster lookup walks ``MERCHANT_CATEGORIES`` in declaration order and returns
the first cluster with a matching fragment.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from .models import Transaction

_PREFIX_LEN = 5

KNOWN_MERCHANTS: tuple[str, ...] = (
    "doordash",
    "uber",
    "lyft",
    "grubhub",
    "instacart",
    "amazon",
    "venmo",
    "paypal",
    "netflix",
    "spotify",
    "apple",
    "google",
    "microsoft",
    "walmart",
    "target",
    "costco",
    "starbucks",
    "mcdonalds",
    "chipotle",
    "panera",
    "dunkin",
    "dominos",
    "pizza hut",
    "taco bell",
    "wendys",
    "burger king",
    "subway",
    "chick-fil-a",
    "cvs",
    "walgreens",
    "rite aid",
    "7-eleven",
    "shell",
    "chevron",
    "exxon",
    "bp",
    "airbnb",
    "vrbo",
    "hotels.com",
    "expedia",
    "booking.com",
    "delta",
    "united",
    "american airlines",
    "southwest",
    "jetblue",
    "spirit",
    "frontier",
    "att",
    "verizon",
    "t-mobile",
    "sprint",
    "comcast",
    "xfinity",
    "spectrum",
    "cox",
    "hulu",
    "disney+",
    "hbo",
    "paramount+",
    "peacock",
    "youtube",
    "twitch",
    "patreon",
    "cash app",
    "zelle",
)


@dataclass(frozen=True, slots=True)
class MerchantCluster:
    """A named category of merchants sharing recognizable name fragments."""

    name: str
    merchants: tuple[str, ...]


MERCHANT_CATEGORIES: tuple[MerchantCluster, ...] = (
    MerchantCluster(
        "Food Delivery",
        ("doordash", "uber eats", "grubhub", "instacart", "postmates", "seamless"),
    ),
    MerchantCluster("Rideshare", ("uber", "lyft", "bolt")),
    MerchantCluster(
        "Restaurants",
        (
            "starbucks",
            "mcdonalds",
            "chipotle",
            "panera",
            "dunkin",
            "dominos",
            "pizza hut",
            "taco bell",
            "wendys",
            "burger king",
            "subway",
            "chick-fil-a",
        ),
    ),
    MerchantCluster(
        "Streaming",
        (
            "netflix",
            "spotify",
            "hulu",
            "disney+",
            "hbo",
            "paramount+",
            "peacock",
            "youtube",
            "twitch",
            "amazon prime",
        ),
    ),
    MerchantCluster("E-Commerce", ("amazon", "walmart", "target", "costco", "ebay", "etsy")),
    MerchantCluster("Payments", ("venmo", "paypal", "cash app", "zelle", "square")),
    MerchantCluster("Pharmacy", ("cvs", "walgreens", "rite aid")),
    MerchantCluster("Convenience", ("7-eleven", "wawa", "sheetz", "circle k")),
    MerchantCluster("Gas Stations", ("shell", "chevron", "exxon", "bp", "mobil", "sunoco")),
    MerchantCluster(
        "Travel",
        ("airbnb", "vrbo", "hotels.com", "expedia", "booking.com", "kayak", "priceline"),
    ),
    MerchantCluster(
        "Airlines",
        (
            "delta",
            "united",
            "american airlines",
            "southwest",
            "jetblue",
            "spirit",
            "frontier",
            "alaska airlines",
        ),
    ),
    MerchantCluster(
        "Telecom",
        ("att", "verizon", "t-mobile", "sprint", "comcast", "xfinity", "spectrum", "cox"),
    ),
    MerchantCluster("Tech", ("apple", "google", "microsoft", "adobe")),
)

OTHER_CLUSTER = "Other"


def _matches(lower_name: str, fragment: str) -> bool:
    if fragment in lower_name:
        return True
    return len(lower_name) >= _PREFIX_LEN and lower_name[:_PREFIX_LEN] in fragment


def is_merchant(name: str | None) -> bool:
    """Return ``True`` when ``name`` matches any ``KNOWN_MERCHANTS`` fragment."""
    if not name:
        return False
    lower_name = name.lower()
    return any(_matches(lower_name, fragment) for fragment in KNOWN_MERCHANTS)


def find_merchant_cluster(name: str | None) -> MerchantCluster | None:
    """Return the first cluster (catalog order) with a matching fragment."""
    if not name:
        return None
    lower_name = name.lower()
    for cluster in MERCHANT_CATEGORIES:
        for fragment in cluster.merchants:
            if _matches(lower_name, fragment):
                return cluster
    return None


def get_cluster_name(name: str) -> str:
    """Cluster name for a merchant, or ``name`` itself when uncategorized."""
    cluster = find_merchant_cluster(name)
    return cluster.name if cluster else name


# ---------------------------------------------------------------------------
# Merchant statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MerchantStat:
    name: str
    cluster: str
    total_amount: Decimal
    transaction_count: int


def merchant_stats(
    transactions: Iterable[Transaction], *, by_cluster: bool = False
) -> list[MerchantStat]:
    """Totals per merchant (or per cluster when ``by_cluster``).

    Both parties of each transaction are checked; a transaction between two
    merchants counts once for each. Sorted by total descending; ties keep
    first-seen order.
    """

    acc: dict[str, list] = {}
    for tx in transactions:
        magnitude = abs(tx.amount)
        for party in (tx.sender, tx.recipient):
            cluster = find_merchant_cluster(party)
            if cluster is None:
                continue
            key = cluster.name if by_cluster else party
            entry = acc.setdefault(key, [cluster.name, Decimal(0), 0])
            entry[1] += magnitude
            entry[2] += 1

    stats = [
        MerchantStat(name=key, cluster=c, total_amount=total, transaction_count=count)
        for key, (c, total, count) in acc.items()
    ]
    return sorted(stats, key=lambda s: s.total_amount, reverse=True)


def group_by_cluster(transactions: Iterable[Transaction]) -> dict[str, list[Transaction]]:
    """Bucket transactions by the sender's cluster, else the recipient's, else "Other"."""

    groups: dict[str, list[Transaction]] = {}
    for tx in transactions:
        cluster = find_merchant_cluster(tx.sender) or find_merchant_cluster(tx.recipient)
        groups.setdefault(cluster.name if cluster else OTHER_CLUSTER, []).append(tx)
    return groups


__all__ = [
    "KNOWN_MERCHANTS",
    "MerchantCluster",
    "MERCHANT_CATEGORIES",
    "OTHER_CLUSTER",
    "is_merchant",
    "find_merchant_cluster",
    "get_cluster_name",
    "MerchantStat",
    "merchant_stats",
    "group_by_cluster",
]
