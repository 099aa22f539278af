"""
Presets — named snapshots of the reference catalog.

A preset document:
    {"id", "name", "characters": {...}, "locations": {...}, "created_at": epoch_ms}
"""
import random
import string
import time


def _now_ms():
    return int(time.time() * 1000)


def create_preset(name, characters, locations):
    """Snapshot the current catalog under `name`."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Preset name is required")
    created_at = _now_ms()
    return {
        "id": str(created_at),
        "name": name,
        "characters": dict(characters),
        "locations": dict(locations),
        "created_at": created_at,
    }


def validate_preset_document(doc):
    """
    Check an externally supplied preset.

    Raises:
        ValueError: when the name is missing or a collection is not an object
    """
    if not isinstance(doc, dict):
        raise ValueError("Invalid preset file format.")
    name = doc.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Invalid preset file format.")
    for key in ("characters", "locations"):
        if not isinstance(doc.get(key), dict):
            raise ValueError("Invalid preset file format.")


def import_preset(doc):
    """Validate `doc` and return it as a new preset with a fresh id."""
    validate_preset_document(doc)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return {
        **doc,
        "id": f"import_{_now_ms()}_{suffix}",
        "name": doc["name"].strip(),
        "created_at": _now_ms(),
    }


def export_preset(preset):
    """Document suitable for download / later import_preset()."""
    return {
        "name": preset["name"],
        "characters": preset["characters"],
        "locations": preset["locations"],
        "created_at": preset.get("created_at"),
    }


def find_preset(presets, preset_id):
    for preset in presets:
        if preset["id"] == preset_id:
            return preset
    raise KeyError(preset_id)


def delete_preset(presets, preset_id):
    """New list without `preset_id`."""
    return [p for p in presets if p["id"] != preset_id]
