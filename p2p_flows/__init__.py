"""Public interface for the ``p2p_flows`` package.

This module exposes the ingestion pipeline (parse, resolve identities,
aggregate) and its public models as the stable import surface. There is no
runtime logic here, only symbol re-exports.
"""

from .aggregator import (
    Views,
    aggregate_flows,
    build_sankey_graph,
    build_views,
    calculate_summary_stats,
    filter_transactions,
    get_original_people,
    get_unique_people,
)
from .aliases import (
    apply_alias,
    build_alias_map,
    find_similar_names,
    mapping_from_suggestion,
    select_canonical_name,
    suggest_aliases,
)
from .merchants import find_merchant_cluster, get_cluster_name, is_merchant, merchant_stats
from .models import (
    AliasMapping,
    Flow,
    NameSuggestion,
    ParseResult,
    PersonAmount,
    SankeyGraph,
    SankeyLink,
    SankeyNode,
    SummaryStats,
    Transaction,
    UploadedFile,
)
from .parser import parse_csv
from .query import query_transactions, transaction_types
from .workspace import SourceFile, Workspace

__all__ = [
    # Pipeline
    "parse_csv",
    "is_merchant",
    "find_merchant_cluster",
    "get_cluster_name",
    "merchant_stats",
    "find_similar_names",
    "select_canonical_name",
    "suggest_aliases",
    "mapping_from_suggestion",
    "build_alias_map",
    "apply_alias",
    "filter_transactions",
    "aggregate_flows",
    "get_unique_people",
    "get_original_people",
    "build_sankey_graph",
    "calculate_summary_stats",
    "build_views",
    "query_transactions",
    "transaction_types",
    # Models / types
    "Transaction",
    "ParseResult",
    "UploadedFile",
    "AliasMapping",
    "NameSuggestion",
    "Flow",
    "PersonAmount",
    "SummaryStats",
    "SankeyNode",
    "SankeyLink",
    "SankeyGraph",
    "Views",
    "SourceFile",
    "Workspace",
]
