from __future__ import annotations

import pytest

from presets import create_preset, delete_preset, export_preset, import_preset, validate_preset_document

CHARACTERS = {"auraayo": {"id": "auraayo", "name": "Ayo"}}
LOCATIONS = {"loccity": {"id": "loccity", "name": "South City"}}


def test_create_preset():
    preset = create_preset("  Team A ", CHARACTERS, LOCATIONS)
    assert preset["name"] == "Team A"
    assert preset["characters"] == CHARACTERS
    assert preset["id"] == str(preset["created_at"])


def test_create_preset_requires_name():
    with pytest.raises(ValueError):
        create_preset(" ", CHARACTERS, LOCATIONS)


@pytest.mark.parametrize("doc", [
    None,
    [],
    {"characters": {}, "locations": {}},
    {"name": "", "characters": {}, "locations": {}},
    {"name": "A", "characters": [], "locations": {}},
    {"name": "A", "characters": {}, "locations": "nope"},
])
def test_invalid_documents(doc):
    with pytest.raises(ValueError):
        validate_preset_document(doc)


def test_import_assigns_fresh_ids():
    doc = {"id": "123", "name": "Shared", "characters": CHARACTERS, "locations": LOCATIONS}
    first = import_preset(doc)
    second = import_preset(doc)
    assert first["id"].startswith("import_")
    assert first["id"] != second["id"]
    assert first["characters"] == CHARACTERS


def test_export_round_trips_through_import():
    preset = create_preset("Team A", CHARACTERS, LOCATIONS)
    doc = export_preset(preset)
    assert "id" not in doc
    assert import_preset(doc)["locations"] == LOCATIONS


def test_delete_preset():
    presets = [{"id": "a"}, {"id": "b"}]
    assert delete_preset(presets, "a") == [{"id": "b"}]
    assert delete_preset(presets, "zzz") == presets
