"""
Storage — flat key/value persistence, one JSON file per collection.
"""
import json
from pathlib import Path

STORAGE_KEYS = (
    "characters",
    "locations",
    "prompts",
    "generations",
    "lore",
    "presets",
    "settings",
)


class JsonStore:
    """Stores each logical collection as `<data_dir>/<key>.json`."""

    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key):
        if key not in STORAGE_KEYS:
            raise KeyError(f"Unknown storage key: {key}")
        return self.data_dir / f"{key}.json"

    def load(self, key, default=None):
        """Stored value for `key`, or `default` when nothing was saved."""
        path = self._path(key)
        if not path.exists():
            return default
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def save(self, key, value):
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False)
        tmp_path.replace(path)

    def clear(self):
        """Remove every stored collection."""
        for key in STORAGE_KEYS:
            path = self.data_dir / f"{key}.json"
            if path.exists():
                path.unlink()
        print(f"[storage] Cleared {self.data_dir}")
