"""Data models for the ``p2p_flows`` pipeline.

All records are frozen ``dataclass`` instances with ``slots=True``: the parser
creates transactions once and every later stage (alias resolution, filtering,
aggregation) derives fresh structures instead of mutating its inputs.

Money is carried as :class:`decimal.Decimal` end to end. Sign encodes
direction on :attr:`Transaction.amount` (negative = sent, positive =
received); aggregated values (flow totals, summary totals) are non-negative
magnitudes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal

# Placeholder used by the parser when a party cell is blank.
UNKNOWN_PARTY = "Unknown"

type Sentiment = Literal["positive", "negative"]
"""Dominant direction of a flow: ``positive`` when receipts >= payments."""

type AliasLookup = dict[str, str]
"""Flattened ``name -> canonical`` map produced by ``build_alias_map``."""


# ---------------------------------------------------------------------------
# Parsed records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """A single peer-to-peer payment parsed from one CSV data row.

    ``id`` is ``"{source_file}-{row_index}"`` and therefore unique per source
    file and row. ``amount`` is never zero; zero-amount rows are dropped by the
    parser. ``tip``/``tax``/``fee`` are ``None`` when the export has no such
    column and non-negative otherwise.
    """

    id: str
    datetime: datetime
    type: str
    status: str
    note: str
    sender: str
    recipient: str
    amount: Decimal
    source_file: str
    tip: Decimal | None = None
    tax: Decimal | None = None
    fee: Decimal | None = None


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Outcome of parsing one CSV file: partial results plus diagnostics."""

    transactions: list[Transaction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """Bookkeeping for a source file that contributed transactions."""

    name: str
    size: int
    transaction_count: int


# ---------------------------------------------------------------------------
# Identity resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AliasMapping:
    """An equivalence class of names that refer to the same person.

    ``canonical`` is the display name. ``aliases`` are the other spellings and
    must not contain ``canonical`` itself; use :meth:`create` to build a
    mapping from loosely collected names.
    """

    canonical: str
    aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.canonical.strip():
            raise ValueError("AliasMapping.canonical must be non-empty")
        if self.canonical in self.aliases:
            raise ValueError(
                f"AliasMapping.canonical {self.canonical!r} must not be listed in aliases"
            )

    @classmethod
    def create(cls, canonical: str, aliases: list[str] | tuple[str, ...]) -> AliasMapping:
        """Build a mapping, dropping ``canonical`` and duplicates from ``aliases``."""

        seen: set[str] = set()
        kept: list[str] = []
        for name in aliases:
            if name == canonical or name in seen:
                continue
            seen.add(name)
            kept.append(name)
        return cls(canonical=canonical, aliases=tuple(kept))

    @property
    def names(self) -> tuple[str, ...]:
        """Every name covered by this mapping, canonical first."""
        return (self.canonical, *self.aliases)


@dataclass(frozen=True, slots=True)
class NameSuggestion:
    """A proposed merge: ``names`` (sorted) all look like ``suggested``."""

    names: tuple[str, ...]
    suggested: str


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Flow:
    """Aggregated money moved from ``source`` to ``target``."""

    source: str
    target: str
    value: Decimal
    sentiment: Sentiment


@dataclass(frozen=True, slots=True)
class PersonAmount:
    name: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class SummaryStats:
    total_sent: Decimal
    total_received: Decimal
    total_transactions: int
    unique_people: int
    top_payees: list[PersonAmount]
    top_payers: list[PersonAmount]


@dataclass(frozen=True, slots=True)
class SankeyNode:
    name: str


@dataclass(frozen=True, slots=True)
class SankeyLink:
    """A graph edge; ``source``/``target`` are positions in ``SankeyGraph.nodes``."""

    source: int
    target: int
    value: Decimal
    sentiment: Sentiment


@dataclass(frozen=True, slots=True)
class SankeyGraph:
    nodes: list[SankeyNode] = field(default_factory=list)
    links: list[SankeyLink] = field(default_factory=list)


__all__ = [
    "UNKNOWN_PARTY",
    "Sentiment",
    "AliasLookup",
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
]
