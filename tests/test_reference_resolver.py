from __future__ import annotations

from constants import INITIAL_CHARACTERS, INITIAL_LOCATIONS
from reference_catalog import merge_catalogs
from reference_resolver import get_referenced_ids, resolve_mentioned_ids

CATALOG = {
    "auraayo": {"id": "auraayo", "name": "Ayo", "type": "character", "description": "red skin"},
    "rayneaura": {"id": "rayneaura", "name": "Rayne", "type": "character", "description": "blue hair"},
}


def test_alias_and_handle_resolve():
    assert get_referenced_ids("Ayo fights @rayneaura", CATALOG, {"ayo": "auraayo"}) == ["auraayo", "rayneaura"]


def test_order_follows_first_mention():
    assert get_referenced_ids("@rayneaura blocks, then Ayo counters", CATALOG, {}) == ["rayneaura", "auraayo"]


def test_matching_is_case_insensitive():
    assert get_referenced_ids("AYO and @RayneAura", CATALOG, {}) == ["auraayo", "rayneaura"]


def test_whole_words_only():
    assert get_referenced_ids("Ayoka meets @rayneaurax", CATALOG, {"ayo": "auraayo"}) == []


def test_duplicates_collapse():
    assert get_referenced_ids("Ayo, @auraayo and AYO again", CATALOG, {"ayo": "auraayo"}) == ["auraayo"]


def test_alias_for_missing_entry_is_ignored():
    assert get_referenced_ids("Jax watches", CATALOG, {"jax": "jaxiron"}) == []


def test_no_negation_handling():
    assert get_referenced_ids("Rayne is not here", CATALOG, {}) == ["rayneaura"]


def test_default_alias_table_on_seed_catalog():
    catalog = merge_catalogs(INITIAL_CHARACTERS, INITIAL_LOCATIONS)
    ids = resolve_mentioned_ids("Sparky and Hanna race through South City", catalog)
    assert ids == ["aurakinetic", "aurahana", "loccity"]


def test_empty_text():
    assert get_referenced_ids("", CATALOG) == []
