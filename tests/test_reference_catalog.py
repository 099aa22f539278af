from __future__ import annotations

import pytest

from reference_catalog import (
    DEFAULT_COLOR,
    add_reference,
    build_reference,
    clean_handle,
    delete_reference,
    merge_catalogs,
    reference_images,
    set_reference_image,
    update_reference,
)


def test_clean_handle():
    assert clean_handle("@Neo_Kid 2!") == "neokid2"
    assert clean_handle(None) == ""


def test_build_reference_defaults():
    entry = build_reference("character", "Neo", " Neo ", " Kid in a jacket ")
    assert entry == {
        "id": "neo",
        "name": "Neo",
        "type": "character",
        "color": DEFAULT_COLOR,
        "description": "Kid in a jacket",
        "voice": None,
        "image_base64": None,
        "mime_type": None,
    }


@pytest.mark.parametrize("args", [
    ("monster", "neo", "Neo", "desc"),
    ("character", "!!!", "Neo", "desc"),
    ("character", "neo", "", "desc"),
    ("location", "dock", "Dock", "   "),
])
def test_build_reference_validation(args):
    with pytest.raises(ValueError):
        build_reference(*args)


def test_mutations_return_new_maps():
    catalog = {}
    entry = build_reference("location", "dock", "Dock", "Foggy harbor")
    added = add_reference(catalog, entry)
    assert catalog == {}

    updated = update_reference(added, "dock", name="Old Dock")
    assert added["dock"]["name"] == "Dock"
    assert updated["dock"]["name"] == "Old Dock"

    with_image = set_reference_image(updated, "dock", "aGk=", None)
    assert with_image["dock"]["mime_type"] == "image/png"
    assert updated["dock"]["image_base64"] is None

    assert delete_reference(with_image, "dock") == {}
    assert "dock" in with_image


def test_update_reference_rejects_bad_input():
    catalog = add_reference({}, build_reference("location", "dock", "Dock", "Foggy harbor"))
    with pytest.raises(KeyError):
        update_reference(catalog, "pier", name="Pier")
    with pytest.raises(ValueError):
        update_reference(catalog, "dock", type="character")
    with pytest.raises(ValueError):
        update_reference(catalog, "dock", description=" ")


def test_reference_images_in_requested_order():
    catalog = merge_catalogs(
        {"a": {"id": "a", "image_base64": "AAA", "mime_type": "image/jpeg"}, "b": {"id": "b", "image_base64": None}},
        {"c": {"id": "c", "image_base64": "CCC"}},
    )
    assert reference_images(catalog, ["c", "b", "a", "zzz"]) == [
        {"id": "c", "data": "CCC", "mime_type": "image/png"},
        {"id": "a", "data": "AAA", "mime_type": "image/jpeg"},
    ]
