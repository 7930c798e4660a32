import pytest

from p2p_flows.aliases import (
    apply_alias,
    build_alias_map,
    find_similar_names,
    mapping_from_suggestion,
    normalize_name_for_matching,
    select_canonical_name,
    similarity,
    suggest_aliases,
)
from p2p_flows.models import AliasMapping, NameSuggestion


def test_normalize_name_for_matching():
    assert normalize_name_for_matching("  John   SMITH ") == "john smith"


def test_similarity_is_normalized_edit_distance():
    assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)
    assert similarity("", "") == 1.0
    assert similarity("abc", "") == 0.0
    assert similarity("same", "same") == 1.0


def test_find_similar_names_groups_spelling_variants():
    suggestions = find_similar_names(["John Smith", "Jon Smith", "Alice Wong"], 0.75)
    assert suggestions == [
        NameSuggestion(names=("John Smith", "Jon Smith"), suggested="John Smith")
    ]


def test_find_similar_names_case_variants_prefer_proper_case():
    suggestions = find_similar_names(["alice wong", "Alice Wong"])
    assert suggestions == [
        NameSuggestion(names=("Alice Wong", "alice wong"), suggested="Alice Wong")
    ]


def test_find_similar_names_equal_length_tie_keeps_earlier_sorted_name():
    suggestions = find_similar_names(["Jon Smith", "Jan Smith"])
    assert suggestions == [NameSuggestion(names=("Jan Smith", "Jon Smith"), suggested="Jan Smith")]


def test_find_similar_names_is_greedy_and_order_dependent():
    # Sarah~Sarai and Sarai~Sarii, but Sarah and Sarii are two edits apart.
    first = find_similar_names(["Sarah", "Sarai", "Sarii"], 0.8)
    assert first == [NameSuggestion(names=("Sarah", "Sarai"), suggested="Sarah")]

    second = find_similar_names(["Sarai", "Sarah", "Sarii"], 0.8)
    assert second == [NameSuggestion(names=("Sarah", "Sarai", "Sarii"), suggested="Sarah")]


def test_find_similar_names_each_name_in_at_most_one_group():
    people = ["John Smith", "Jon Smith", "John Smyth", "Alice Wong", "Alice Wang"]
    suggestions = find_similar_names(people, 0.75)
    seen = [name for s in suggestions for name in s.names]
    assert len(seen) == len(set(seen))
    assert all(len(s.names) > 1 for s in suggestions)


def test_find_similar_names_rejects_out_of_range_threshold():
    with pytest.raises(ValueError):
        find_similar_names(["a", "b"], 1.5)


def test_select_canonical_name():
    assert select_canonical_name(["bob jones", "BOB JONES", "Bob Jones"]) == "Bob Jones"
    assert select_canonical_name(["Bob", "Bobby"]) == "Bobby"
    with pytest.raises(ValueError):
        select_canonical_name([])


def test_suggest_aliases_skips_names_already_mapped():
    people = ["Alice Wong", "John Smith", "Jon Smith", "alice wong"]
    mappings = [AliasMapping("Alice Wong", ("alice wong",))]
    suggestions = suggest_aliases(people, mappings)
    assert [s.names for s in suggestions] == [("John Smith", "Jon Smith")]


def test_mapping_from_suggestion():
    mapping = mapping_from_suggestion(
        NameSuggestion(names=("John Smith", "Jon Smith"), suggested="John Smith")
    )
    assert mapping == AliasMapping("John Smith", ("Jon Smith",))


def test_alias_mapping_validation_and_create():
    with pytest.raises(ValueError):
        AliasMapping("Alice", ("Alice",))
    with pytest.raises(ValueError):
        AliasMapping("  ")
    mapping = AliasMapping.create("Alice", ["Alice", "Ally", "Ally", "Al"])
    assert mapping.aliases == ("Ally", "Al")
    assert mapping.names == ("Alice", "Ally", "Al")


def test_build_alias_map_and_apply_alias():
    lookup = build_alias_map([AliasMapping("John Smith", ("Jon Smith", "J. Smith"))])
    assert lookup == {
        "Jon Smith": "John Smith",
        "J. Smith": "John Smith",
        "John Smith": "John Smith",
    }
    assert apply_alias("Jon Smith", lookup) == "John Smith"
    assert apply_alias("Alice Wong", lookup) == "Alice Wong"
    assert apply_alias("Jon Smith", None) == "Jon Smith"


def test_build_alias_map_last_mapping_wins_on_overlap():
    lookup = build_alias_map(
        [AliasMapping("Bob", ("Robert",)), AliasMapping("Bobby", ("Robert",))]
    )
    assert apply_alias("Robert", lookup) == "Bobby"


def test_find_similar_names_groups_case_and_spelling_variants_together():
    suggestions = find_similar_names(["John Smith", "john smith", "Jon Smith"], 0.8)
    assert suggestions == [
        NameSuggestion(names=("John Smith", "Jon Smith", "john smith"), suggested="John Smith")
    ]
