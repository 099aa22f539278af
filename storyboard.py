"""
Storyboard — structural edits on the scene list.

Scene ids are positional labels ("01", "02", ...) and are recomputed after
every insert/delete/move. Generation results are stored under those ids, so
every edit must carry each result along with the content it belongs to.

Each operation builds the new ordering as (scene, id_before_edit) pairs and
hands it to migrate_generations(); the migration never does position math.

All functions return new lists/maps and leave their inputs untouched.
"""
import re

from script_parser import CLIP_DURATION, format_scene_id, format_time_range

SEQUENCE_HEADING = re.compile(r'^Sequence \d+:', re.IGNORECASE)


def empty_generation():
    return {"image_base64": None, "pending": False, "error": None}


def reindex_prompts(prompts):
    """Recompute id, time range and the 'Sequence N:' heading from position."""
    reindexed = []
    for index, prompt in enumerate(prompts):
        number = index + 1
        content = SEQUENCE_HEADING.sub(f"Sequence {number}:", prompt.get("content", ""), count=1)
        reindexed.append({
            **prompt,
            "id": format_scene_id(number),
            "time_range": format_time_range(index * CLIP_DURATION),
            "content": content,
        })
    return reindexed


def migrate_generations(ordered, reindexed, generations):
    """
    Re-key generation results after a structural edit.

    Args:
        ordered: [(scene, old_id or None)] in the NEW order, pre-reindex
        reindexed: reindex_prompts() of the same scenes
        generations: {old_id: result} before the edit

    Returns:
        {new_id: result}. New scenes get an empty result; scenes that never
        had a result stay absent. Results of removed scenes are dropped.
    """
    migrated = {}
    for (_, old_id), scene in zip(ordered, reindexed):
        if old_id is None:
            migrated[scene["id"]] = empty_generation()
        elif old_id in generations:
            migrated[scene["id"]] = generations[old_id]
    return migrated


def _apply(ordered, generations):
    reindexed = reindex_prompts([scene for scene, _ in ordered])
    return reindexed, migrate_generations(ordered, reindexed, generations)


def delete_prompt(prompts, generations, index):
    """Remove the scene at `index`. Out-of-range index is a no-op."""
    if not 0 <= index < len(prompts):
        return list(prompts), dict(generations)
    ordered = [(p, p["id"]) for i, p in enumerate(prompts) if i != index]
    return _apply(ordered, generations)


def move_prompt(prompts, generations, index, direction):
    """Swap the scene at `index` with its neighbour ('up' or 'down')."""
    if direction not in ("up", "down"):
        return list(prompts), dict(generations)
    target = index - 1 if direction == "up" else index + 1
    if not (0 <= index < len(prompts) and 0 <= target < len(prompts)):
        return list(prompts), dict(generations)

    ordered = [(p, p["id"]) for p in prompts]
    ordered[index], ordered[target] = ordered[target], ordered[index]
    return _apply(ordered, generations)


def insert_prompt(prompts, generations, index, position, placeholder_content):
    """
    Insert a placeholder scene before or after the scene at `index`.

    An empty board accepts index 0 with either position.
    """
    if position not in ("before", "after"):
        return list(prompts), dict(generations)
    if prompts and not 0 <= index < len(prompts):
        return list(prompts), dict(generations)

    new_index = index if position == "before" else index + 1
    new_index = min(max(new_index, 0), len(prompts))

    placeholder = {
        "id": "",
        "time_range": "",
        "referenced_ids": [],
        "content": placeholder_content,
    }
    ordered = [(p, p["id"]) for p in prompts]
    ordered.insert(new_index, (placeholder, None))
    return _apply(ordered, generations)


def append_offsets(prompts):
    """(start_index, start_time_seconds) for scenes appended after `prompts`."""
    last_number = int(prompts[-1]["id"]) if prompts else 0
    return last_number, len(prompts) * CLIP_DURATION
