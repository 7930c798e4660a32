"""Identity resolution: detect name variants and collapse them to one person.

Two halves:

- Suggestions. :func:`find_similar_names` runs a greedy single pass over the
  candidate names. Each name not yet consumed seeds a group; every later,
  unconsumed name that looks similar joins it and is consumed. The pass is
  order-dependent on purpose: with an intransitive similarity (A~B, B~C,
  A!~C) a different input order can produce different groups, and callers rely
  on first-match-wins grouping rather than a transitive closure.
- Substitution. :func:`build_alias_map` flattens user-approved
  :class:`~p2p_flows.models.AliasMapping` objects into a ``name -> canonical``
  lookup, and :func:`apply_alias` resolves a single name through it. When two
  mappings claim the same source name, the mapping applied last wins.

Similarity is ``1 - levenshtein(a, b) / max(len(a), len(b))`` (``1.0`` for two
empty strings), with the edit distance from ``rapidfuzz``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence

from rapidfuzz.distance import Levenshtein

from .logging_setup import get_logger
from .models import AliasLookup, AliasMapping, NameSuggestion

DEFAULT_SUGGESTION_THRESHOLD = 0.75
"""Threshold used for suggestions over people not yet covered by a mapping."""

FIND_SIMILAR_DEFAULT_THRESHOLD = 0.8

_WHITESPACE_RE = re.compile(r"\s+")
_UPPER_RE = re.compile(r"[A-Z]")
_LOWER_RE = re.compile(r"[a-z]")

_logger = get_logger("p2p_flows.aliases")


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def normalize_name_for_matching(name: str) -> str:
    """Lowercase, trim, and collapse internal whitespace to single spaces."""
    return _WHITESPACE_RE.sub(" ", name.lower().strip())


def similarity(a: str, b: str) -> float:
    """Normalized edit-distance similarity in ``[0, 1]``."""
    if not a:
        return 1.0 if not b else 0.0
    if not b:
        return 0.0
    distance = Levenshtein.distance(a, b)
    return 1.0 - distance / max(len(a), len(b))


def _are_similar(a: str, b: str, threshold: float) -> bool:
    """Compare two normalized names.

    Names with the same token count match when every token pair is equal or
    strictly above ``threshold``; otherwise the whole strings must reach
    ``threshold``.
    """

    if a == b:
        return True

    a_parts = a.split()
    b_parts = b.split()
    if len(a_parts) == len(b_parts) and all(
        x == y or similarity(x, y) > threshold for x, y in zip(a_parts, b_parts, strict=True)
    ):
        return True

    return similarity(a, b) >= threshold


def _has_proper_case(name: str) -> bool:
    return bool(_UPPER_RE.search(name)) and bool(_LOWER_RE.search(name))


def select_canonical_name(names: Sequence[str]) -> str:
    """Pick the display name for a group.

    Mixed-case names beat all-lower/all-upper ones; among equals the longer
    name wins; remaining ties keep the earlier name.
    """

    if not names:
        raise ValueError("select_canonical_name requires at least one name")

    best = names[0]
    for name in names[1:]:
        name_proper = _has_proper_case(name)
        best_proper = _has_proper_case(best)
        if name_proper and not best_proper:
            best = name
        elif name_proper == best_proper and len(name) > len(best):
            best = name
    return best


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


def find_similar_names(
    people: Sequence[str],
    threshold: float = FIND_SIMILAR_DEFAULT_THRESHOLD,
) -> list[NameSuggestion]:
    """Group near-duplicate names with a greedy, consume-once pass.

    Only groups with more than one member are reported. ``names`` in each
    suggestion are sorted; the canonical choice is made over that sorted
    order.
    """

    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be within [0, 1], got {threshold!r}")

    normalized = [normalize_name_for_matching(p) for p in people]
    consumed: set[str] = set()
    suggestions: list[NameSuggestion] = []

    for i, seed in enumerate(people):
        if seed in consumed:
            continue

        group = [seed]
        for j in range(i + 1, len(people)):
            other = people[j]
            if other in consumed:
                continue
            if _are_similar(normalized[i], normalized[j], threshold):
                group.append(other)
                consumed.add(other)

        if len(group) > 1:
            consumed.add(seed)
            names = sorted(group)
            suggestions.append(
                NameSuggestion(names=tuple(names), suggested=select_canonical_name(names))
            )

    _logger.debug(
        "aliases:suggestions candidates=%d groups=%d threshold=%.2f",
        len(people),
        len(suggestions),
        threshold,
    )
    return suggestions


def covered_names(mappings: Iterable[AliasMapping]) -> set[str]:
    """Every name (canonical or alias) already claimed by a mapping."""
    return {name for m in mappings for name in m.names}


def suggest_aliases(
    people: Sequence[str],
    mappings: Iterable[AliasMapping] = (),
    threshold: float = DEFAULT_SUGGESTION_THRESHOLD,
) -> list[NameSuggestion]:
    """Suggestions restricted to people no existing mapping already covers."""
    taken = covered_names(mappings)
    return find_similar_names([p for p in people if p not in taken], threshold)


def mapping_from_suggestion(suggestion: NameSuggestion) -> AliasMapping:
    """Accept a suggestion as-is: the suggested name becomes canonical."""
    return AliasMapping.create(suggestion.suggested, list(suggestion.names))


# ---------------------------------------------------------------------------
# Substitution
# ---------------------------------------------------------------------------


def build_alias_map(mappings: Iterable[AliasMapping]) -> AliasLookup:
    """Flatten mappings into ``name -> canonical``; canonical maps to itself.

    Later mappings overwrite earlier ones for any name both claim.
    """

    lookup: AliasLookup = {}
    for mapping in mappings:
        for alias in mapping.aliases:
            lookup[alias] = mapping.canonical
        lookup[mapping.canonical] = mapping.canonical
    return lookup


def apply_alias(name: str, lookup: Mapping[str, str] | None) -> str:
    """Resolve ``name`` through ``lookup``; unknown names pass through."""
    if not lookup:
        return name
    return lookup.get(name) or name


__all__ = [
    "DEFAULT_SUGGESTION_THRESHOLD",
    "FIND_SIMILAR_DEFAULT_THRESHOLD",
    "normalize_name_for_matching",
    "similarity",
    "select_canonical_name",
    "find_similar_names",
    "covered_names",
    "suggest_aliases",
    "mapping_from_suggestion",
    "build_alias_map",
    "apply_alias",
]
