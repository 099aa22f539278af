"""
Reference Resolver — finds which catalog entries a piece of scene text mentions.

Purely lexical: @handles, display names and the fixed alias table, all
case-insensitive and whole-word. No negation handling: any mention counts.
"""
import re

from constants import SMART_ALIASES


def _word(term):
    return re.compile(rf'\b{re.escape(term)}\b', re.IGNORECASE)


def _handle(ref_id):
    return re.compile(rf'@{re.escape(ref_id)}\b', re.IGNORECASE)


def get_referenced_ids(text, catalog, aliases=None):
    """
    Scan text for handles, names and aliases.

    Args:
        text: Scene content
        catalog: {id: reference entry}
        aliases: {informal name: id}, defaults to SMART_ALIASES

    Returns:
        Deduplicated list of ids, ordered by first mention in the text
    """
    if not text:
        return []
    aliases = SMART_ALIASES if aliases is None else aliases

    first_seen = {}

    def _note(ref_id, match):
        if match and (ref_id not in first_seen or match.start() < first_seen[ref_id]):
            first_seen[ref_id] = match.start()

    for alias, ref_id in aliases.items():
        if ref_id in catalog:
            _note(ref_id, _word(alias).search(text))

    for ref_id, ref in catalog.items():
        _note(ref_id, _handle(ref_id).search(text))
        name = (ref.get("name") or "").strip()
        if name:
            _note(ref_id, _word(name).search(text))

    return sorted(first_seen, key=lambda ref_id: (first_seen[ref_id], ref_id))


# Same scan at segmentation time and at generation time
resolve_mentioned_ids = get_referenced_ids
