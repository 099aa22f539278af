"""
Reference Catalog — characters and locations available to scenes.

Entries are plain dicts keyed by handle:
    {"id", "name", "type", "color", "description", "voice",
     "image_base64", "mime_type"}

Every mutation returns a NEW map; callers swap the whole map in.
"""
import re

REFERENCE_TYPES = ("character", "location")
DEFAULT_COLOR = "#6b7280"


def clean_handle(handle):
    """Lowercase and strip everything that is not a-z/0-9."""
    return re.sub(r'[^a-z0-9]', '', (handle or "").lower())


def build_reference(ref_type, handle, name, description, color=None, voice=None):
    """
    Validate user input and build a new reference entry.

    Raises:
        ValueError: on a missing handle/name/description or unknown type
    """
    if ref_type not in REFERENCE_TYPES:
        raise ValueError(f"Unknown reference type: {ref_type}")

    handle = clean_handle(handle)
    name = (name or "").strip()
    description = (description or "").strip()

    if not handle:
        raise ValueError("Handle is required (letters and digits only)")
    if not name:
        raise ValueError("Name is required")
    if not description:
        raise ValueError("Description is required")

    return {
        "id": handle,
        "name": name,
        "type": ref_type,
        "color": color or DEFAULT_COLOR,
        "description": description,
        "voice": (voice or "").strip() or None,
        "image_base64": None,
        "mime_type": None,
    }


def add_reference(catalog, entry):
    """Return a copy of `catalog` with `entry` stored under its handle."""
    updated = dict(catalog)
    updated[entry["id"]] = entry
    return updated


def update_reference(catalog, ref_id, **fields):
    """Return a copy of `catalog` with one entry's editable fields replaced."""
    if ref_id not in catalog:
        raise KeyError(ref_id)

    editable = {"name", "description", "voice", "color"}
    unknown = set(fields) - editable
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    entry = dict(catalog[ref_id])
    for key, value in fields.items():
        if key in ("name", "description"):
            value = (value or "").strip()
            if not value:
                raise ValueError(f"{key.title()} cannot be empty")
        entry[key] = value

    updated = dict(catalog)
    updated[ref_id] = entry
    return updated


def delete_reference(catalog, ref_id):
    """Return a copy of `catalog` without `ref_id` (no-op when absent)."""
    if ref_id not in catalog:
        return catalog
    updated = dict(catalog)
    del updated[ref_id]
    return updated


def set_reference_image(catalog, ref_id, image_base64, mime_type):
    """Return a copy of `catalog` with an attached reference image."""
    if ref_id not in catalog:
        raise KeyError(ref_id)
    entry = dict(catalog[ref_id])
    entry["image_base64"] = image_base64
    entry["mime_type"] = mime_type or "image/png"
    updated = dict(catalog)
    updated[ref_id] = entry
    return updated


def merge_catalogs(characters, locations):
    """Single lookup map over both categories."""
    merged = dict(characters)
    merged.update(locations)
    return merged


def reference_images(catalog, ref_ids):
    """
    Collect attached images for the given handles, in order.

    Returns:
        [{"id", "data": base64 str, "mime_type"}] for every id with an image
    """
    images = []
    for ref_id in ref_ids:
        ref = catalog.get(ref_id)
        if ref and ref.get("image_base64"):
            images.append({
                "id": ref_id,
                "data": ref["image_base64"],
                "mime_type": ref.get("mime_type") or "image/png",
            })
    return images
