"""
Workspace — the storyboard project held in memory and mirrored to storage.

Owns the reference catalog (characters + locations), the scene list, the
generation-result map, lore, presets and the user toggles. Every user intent
(import, edit, reorder, refine, preset load, ...) is a method here; the Flask
layer only translates HTTP to these calls.

Validation errors raise ValueError/KeyError before any state is touched.

Every scene also carries a "key": a stable token assigned when the scene is
created. Positional ids change on every structural edit, so work that spans a
service call (rendering, refining) finds its scene again by key before writing.
"""
import base64
import io
import threading
import uuid
import zipfile

import presets as preset_ops
import reference_catalog
import storyboard
from constants import (
    INITIAL_CHARACTERS,
    INITIAL_LOCATIONS,
    INITIAL_LORE,
    INITIAL_SCRIPT,
)
from image_utils import resize_image
from prompt_compiler import STYLE_MODES, style_prefix, toggle_no_music_tag
from reference_resolver import get_referenced_ids
from script_parser import parse_script

DEFAULT_SETTINGS = {
    "style_mode": "anime",
    "voice_mode": False,
    "no_music_mode": False,
}

STYLE_LABELS = {
    "anime": "Anime",
    "aaa": "AAA Cinematic",
    "pixar": "Pixar 3D",
}

MIN_EPISODE_SCENES = 4
MAX_EPISODE_SCENES = 40

EXPORT_FOLDER = "Storyboard_Project"


def new_scene_key():
    return str(uuid.uuid4())[:12]


def _with_keys(prompts):
    """Give every scene without a key a fresh one."""
    return [p if p.get("key") else {**p, "key": new_scene_key()} for p in prompts]


class Workspace:
    """
    Args:
        store: Persistence collaborator with load/save/clear (None keeps state in memory)
        text_engine: Module/object exposing the story_engine text helpers
        max_reference_width: Uploaded reference images are resized to this width
        reference_quality: JPEG quality for resized reference images
    """

    def __init__(self, store=None, text_engine=None, max_reference_width=1024, reference_quality=85):
        self.store = store
        self._text_engine = text_engine
        self.max_reference_width = max_reference_width
        self.reference_quality = reference_quality
        self._lock = threading.RLock()
        self._set_defaults()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _set_defaults(self):
        self.characters = dict(INITIAL_CHARACTERS)
        self.locations = dict(INITIAL_LOCATIONS)
        self.prompts = _with_keys(parse_script(INITIAL_SCRIPT, self.catalog()))
        self.generations = {}
        self.lore = INITIAL_LORE
        self.presets = []
        self.settings = dict(DEFAULT_SETTINGS)

    @property
    def text_engine(self):
        if self._text_engine is None:
            import story_engine
            self._text_engine = story_engine
        return self._text_engine

    def hydrate(self):
        """Load whatever the store has saved; missing keys keep their defaults."""
        if self.store is None:
            return
        with self._lock:
            for key in ("characters", "locations", "prompts", "generations", "lore", "presets"):
                saved = self.store.load(key)
                if saved is not None:
                    setattr(self, key, saved)
            self.prompts = _with_keys(self.prompts)
            # A render in flight when the process stopped will never finish.
            self.generations = {
                scene_id: {**result, "pending": False} for scene_id, result in self.generations.items()
            }
            saved_settings = self.store.load("settings")
            if saved_settings:
                self.settings = {**DEFAULT_SETTINGS, **saved_settings}
        print(f"[workspace] Hydrated: {len(self.prompts)} scenes, {len(self.catalog())} references")

    def _persist(self, *keys):
        if self.store is None:
            return
        for key in keys:
            self.store.save(key, getattr(self, key))

    def reset(self):
        """Back to the seed project."""
        with self._lock:
            if self.store is not None:
                self.store.clear()
            self._set_defaults()

    def clean_slate(self):
        """Remove all scenes, references and results (lore, presets and settings are kept)."""
        with self._lock:
            if self.store is not None:
                self.store.clear()
            self.characters = {}
            self.locations = {}
            self.prompts = []
            self.generations = {}
            self._persist("characters", "locations", "prompts", "generations", "lore", "presets", "settings")

    def snapshot(self):
        with self._lock:
            return {
                "characters": self.characters,
                "locations": self.locations,
                "prompts": self.prompts,
                "generations": self.generations,
                "lore": self.lore,
                "presets": self.presets,
                "settings": self.settings,
            }

    # -------------------------------------------------------------------------
    # Lookups used by the scheduler
    # -------------------------------------------------------------------------

    def catalog(self):
        return reference_catalog.merge_catalogs(self.characters, self.locations)

    @property
    def style_mode(self):
        return self.settings.get("style_mode", "anime")

    def find_prompt(self, scene_id):
        for prompt in self.prompts:
            if prompt["id"] == scene_id:
                return prompt
        return None

    def find_prompt_by_key(self, key):
        """Current scene carrying `key`, or None once it has been deleted."""
        for prompt in self.prompts:
            if prompt.get("key") == key:
                return prompt
        return None

    def scene_key(self, scene_id):
        prompt = self.find_prompt(scene_id)
        return prompt.get("key") if prompt else None

    def _require_prompt(self, scene_id):
        prompt = self.find_prompt(scene_id)
        if prompt is None:
            raise KeyError(f"Scene not found: {scene_id}")
        return prompt

    def get_generation(self, scene_id):
        return self.generations.get(scene_id)

    def set_generation(self, scene_id, result):
        """Replace one result entry whole; the map itself is swapped, never mutated."""
        with self._lock:
            updated = dict(self.generations)
            updated[scene_id] = {**storyboard.empty_generation(), **result}
            self.generations = updated
            self._persist("generations")

    def update_scene_generation(self, key, **fields):
        """
        Merge `fields` into the result of the scene carrying `key`.

        The scene is looked up at write time, so a result started before an
        insert/delete/move lands on the same content it was produced for.

        Returns:
            The scene's current id, or None if the scene no longer exists
            (nothing is written then).
        """
        with self._lock:
            prompt = self.find_prompt_by_key(key)
            if prompt is None:
                return None
            scene_id = prompt["id"]
            current = self.generations.get(scene_id) or storyboard.empty_generation()
            self.set_generation(scene_id, {**current, **fields})
            return scene_id

    # -------------------------------------------------------------------------
    # References
    # -------------------------------------------------------------------------

    def _collection_for(self, ref_id):
        if ref_id in self.characters:
            return "characters"
        if ref_id in self.locations:
            return "locations"
        raise KeyError(f"Reference not found: {ref_id}")

    def add_reference(self, ref_type, handle, name, description, color=None, voice=None):
        entry = reference_catalog.build_reference(ref_type, handle, name, description, color, voice)
        key = "characters" if ref_type == "character" else "locations"
        with self._lock:
            setattr(self, key, reference_catalog.add_reference(getattr(self, key), entry))
            self._persist(key)
        return entry

    def update_reference(self, ref_id, **fields):
        with self._lock:
            key = self._collection_for(ref_id)
            updated = reference_catalog.update_reference(getattr(self, key), ref_id, **fields)
            setattr(self, key, updated)
            self._persist(key)
        return updated[ref_id]

    def delete_reference(self, ref_id):
        with self._lock:
            key = self._collection_for(ref_id)
            setattr(self, key, reference_catalog.delete_reference(getattr(self, key), ref_id))
            self._persist(key)

    def set_reference_image(self, ref_id, image_bytes):
        """Resize an uploaded image and attach it to the reference."""
        key = self._collection_for(ref_id)
        image_base64, mime_type = resize_image(
            image_bytes, max_width=self.max_reference_width, quality=self.reference_quality
        )
        with self._lock:
            updated = reference_catalog.set_reference_image(getattr(self, key), ref_id, image_base64, mime_type)
            setattr(self, key, updated)
            self._persist(key)
        return updated[ref_id]

    # -------------------------------------------------------------------------
    # Scenes
    # -------------------------------------------------------------------------

    def _prepare_scenes(self, scenes):
        no_music = self.settings.get("no_music_mode", False)
        return _with_keys([{**s, "content": toggle_no_music_tag(s["content"], no_music)} for s in scenes])

    def import_script(self, text, append=False):
        """
        Parse `text` into scenes and add them to the board.

        Args:
            text: Raw script
            append: Add after the existing scenes instead of replacing them

        Returns:
            Number of scenes imported (0 means nothing was detected)
        """
        with self._lock:
            catalog = self.catalog()
            if append:
                start_index, start_time = storyboard.append_offsets(self.prompts)
                scenes = self._prepare_scenes(parse_script(text, catalog, start_index, start_time))
                self.prompts = self.prompts + scenes
            else:
                scenes = self._prepare_scenes(parse_script(text, catalog))
                self.prompts = scenes
                self.generations = {}
            self._persist("prompts", "generations")

        if scenes:
            print(f"[workspace] Imported {len(scenes)} scenes")
        else:
            print("[workspace] No scenes detected.")
        return len(scenes)

    def update_prompt(self, scene_id, content):
        with self._lock:
            self._require_prompt(scene_id)
            catalog = self.catalog()
            self.prompts = [
                {**p, "content": content, "referenced_ids": get_referenced_ids(content, catalog)}
                if p["id"] == scene_id else p
                for p in self.prompts
            ]
            self._persist("prompts")
        return self.find_prompt(scene_id)

    def _apply_structure(self, result):
        prompts, self.generations = result
        self.prompts = _with_keys(prompts)
        self._persist("prompts", "generations")

    def delete_prompt(self, index):
        with self._lock:
            self._apply_structure(storyboard.delete_prompt(self.prompts, self.generations, index))

    def move_prompt(self, index, direction):
        with self._lock:
            self._apply_structure(storyboard.move_prompt(self.prompts, self.generations, index, direction))

    def placeholder_content(self, number):
        content = (
            f"Sequence {number}: [New Scene]\n"
            f"Prompt: {style_prefix(self.style_mode)}[Describe scene here]\n"
            "Chronological Flow:\n"
            "(Action) ..."
        )
        return toggle_no_music_tag(content, self.settings.get("no_music_mode", False))

    def insert_prompt(self, index, position):
        with self._lock:
            number = index + 1 if position == "before" else index + 2
            placeholder = self.placeholder_content(number)
            self._apply_structure(
                storyboard.insert_prompt(self.prompts, self.generations, index, position, placeholder)
            )

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def set_style(self, style_mode):
        if style_mode not in STYLE_MODES:
            raise ValueError(f"Unknown style mode: {style_mode}")
        with self._lock:
            self.settings = {**self.settings, "style_mode": style_mode}
            self._persist("settings")
        return style_mode

    def cycle_style(self):
        """anime -> aaa -> pixar -> anime"""
        current = self.style_mode if self.style_mode in STYLE_MODES else STYLE_MODES[-1]
        next_mode = STYLE_MODES[(STYLE_MODES.index(current) + 1) % len(STYLE_MODES)]
        return self.set_style(next_mode)

    def toggle_voice_mode(self):
        with self._lock:
            enabled = not self.settings.get("voice_mode", False)
            self.settings = {**self.settings, "voice_mode": enabled}
            self._persist("settings")
        return enabled

    def toggle_no_music(self):
        """Flip no-music mode and re-tag every scene."""
        with self._lock:
            enabled = not self.settings.get("no_music_mode", False)
            self.settings = {**self.settings, "no_music_mode": enabled}
            self.prompts = [{**p, "content": toggle_no_music_tag(p["content"], enabled)} for p in self.prompts]
            self._persist("settings", "prompts")
        return enabled

    def set_lore(self, lore):
        with self._lock:
            self.lore = lore or ""
            self._persist("lore")

    # -------------------------------------------------------------------------
    # AI helpers
    # -------------------------------------------------------------------------

    def _script_context(self):
        return {
            "use_voice": self.settings.get("voice_mode", False),
            "lore": self.lore,
            "style_mode": self.style_mode,
        }

    def refine_prompt(self, scene_id, instruction):
        """
        Rewrite one scene with the text model.

        Failures are stored on the scene's result as "Refine failed: ...".
        The text call runs outside the lock; the rewrite is applied to
        whichever id the scene has by then, and dropped if it was deleted.

        Returns:
            True on success
        """
        with self._lock:
            prompt = self._require_prompt(scene_id)
            key = prompt["key"]
            self.update_scene_generation(key, pending=True, error=None)
        try:
            refined = self.text_engine.refine_text_prompt(prompt["content"], instruction)
        except Exception as e:
            print(f"[workspace] Refine failed for scene {scene_id}: {e}")
            self.update_scene_generation(key, pending=False, error=f"Refine failed: {e}")
            return False

        with self._lock:
            current = self.find_prompt_by_key(key)
            if current is None:
                print(f"[workspace] Scene {scene_id} was deleted during refine; result dropped")
                return False
            self.update_prompt(current["id"], toggle_no_music_tag(refined, self.settings.get("no_music_mode", False)))
            self.update_scene_generation(key, pending=False, error=None)
        return True

    def next_beat(self):
        """Ask the text model for the sequence after the last one and append it."""
        last = self.prompts[-1] if self.prompts else None
        last_id = int(last["id"]) if last else 0
        text = self.text_engine.generate_next_beat(
            last_id, last["content"] if last else None, self.catalog(), **self._script_context()
        )
        return self.import_script(text, append=True)

    def draft_script(self, idea):
        if not (idea or "").strip():
            raise ValueError("Idea is required")
        return self.text_engine.generate_script_from_idea(idea, self.catalog(), **self._script_context())

    def break_down_script(self, script_text):
        if not (script_text or "").strip():
            raise ValueError("Script text is required")
        return self.text_engine.break_script_down(script_text, self.catalog(), **self._script_context())

    def generate_episode(self, idea, scene_count=12):
        """Write a full episode and replace the board with it."""
        if not (idea or "").strip():
            raise ValueError("Idea is required")
        scene_count = int(scene_count)
        if not MIN_EPISODE_SCENES <= scene_count <= MAX_EPISODE_SCENES:
            raise ValueError(f"Scene count must be between {MIN_EPISODE_SCENES} and {MAX_EPISODE_SCENES}")
        script = self.text_engine.generate_full_episode(idea, scene_count, self.catalog(), **self._script_context())
        return self.import_script(script, append=False)

    # -------------------------------------------------------------------------
    # Presets
    # -------------------------------------------------------------------------

    def save_preset(self, name):
        with self._lock:
            preset = preset_ops.create_preset(name, self.characters, self.locations)
            self.presets = [preset] + self.presets
            self._persist("presets")
        return preset

    def load_preset(self, preset_id):
        with self._lock:
            preset = preset_ops.find_preset(self.presets, preset_id)
            self.characters = dict(preset["characters"])
            self.locations = dict(preset["locations"])
            self._persist("characters", "locations")
        return preset

    def delete_preset(self, preset_id):
        with self._lock:
            preset_ops.find_preset(self.presets, preset_id)
            self.presets = preset_ops.delete_preset(self.presets, preset_id)
            self._persist("presets")

    def import_preset(self, doc):
        preset = preset_ops.import_preset(doc)
        with self._lock:
            self.presets = [preset] + self.presets
            self._persist("presets")
        return preset

    def export_preset(self, preset_id):
        return preset_ops.export_preset(preset_ops.find_preset(self.presets, preset_id))

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_zip(self):
        """
        Zip the project: reference images, one .txt per scene and one .png
        per rendered scene.

        Returns:
            Zip archive bytes
        """
        with self._lock:
            catalog = self.catalog()
            prompts = list(self.prompts)
            generations = dict(self.generations)

        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            for ref in catalog.values():
                if ref.get("image_base64"):
                    ext = "jpg" if ref.get("mime_type") == "image/jpeg" else "png"
                    zf.writestr(
                        f"{EXPORT_FOLDER}/references/{ref['type']}_{ref['id']}.{ext}",
                        base64.b64decode(ref["image_base64"]),
                    )
            for prompt in prompts:
                zf.writestr(f"{EXPORT_FOLDER}/{prompt['id']}.txt", prompt["content"])
                result = generations.get(prompt["id"]) or {}
                if result.get("image_base64"):
                    zf.writestr(f"{EXPORT_FOLDER}/{prompt['id']}.png", base64.b64decode(result["image_base64"]))
        return buf.getvalue()
