"""
Script Parser — Splits a pasted or generated script into timed scenes.

Recognised chunk headers (the header stays attached to its chunk):
- Sequence N: TITLE
- Title: ...
- Scene N: ...

Scripts without headers fall back to blank-line separated paragraphs.

Each scene is a dict:
    {"id": "01", "time_range": "00:00 - 00:15", "referenced_ids": [...], "content": str}
"""

import re
import json

from reference_resolver import get_referenced_ids

# Every scene is one 15-second clip
CLIP_DURATION = 15

# Chunks shorter than this are stray fragments, not scenes
MIN_CHUNK_LENGTH = 20

HEADER_MARKER = r'Sequence \d+:|Title:|Scene \d+:'
HEADER_SPLIT = re.compile(rf'(?={HEADER_MARKER})')
HEADER_FOUND = re.compile(HEADER_MARKER)


def format_scene_id(number: int) -> str:
    """1 -> '01', 123 -> '123'."""
    return str(number).zfill(2)


def format_time(seconds: int) -> str:
    """75 -> '01:15'."""
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def format_time_range(start_seconds: int) -> str:
    """Label for the clip starting at `start_seconds`."""
    return f"{format_time(start_seconds)} - {format_time(start_seconds + CLIP_DURATION)}"


def split_chunks(raw_text: str) -> list:
    """Header-based split, falling back to paragraphs. Noise is dropped."""
    normalized = (raw_text or "").replace("\r\n", "\n")

    if HEADER_FOUND.search(normalized):
        chunks = [c.strip() for c in HEADER_SPLIT.split(normalized)]
        chunks = [c for c in chunks if len(c) > MIN_CHUNK_LENGTH]
        if chunks:
            return chunks

    paragraphs = [p.strip() for p in normalized.split("\n\n")]
    return [p for p in paragraphs if len(p) > MIN_CHUNK_LENGTH]


def parse_script(raw_text: str, catalog: dict, start_index: int = 0, start_time_seconds: int = 0) -> list:
    """
    Parse raw script text into scenes.

    Args:
        raw_text: Script as pasted by the user or returned by Gemini
        catalog: {id: reference entry} used to tag each scene's references
        start_index: Number of scenes already on the board (ids continue from here)
        start_time_seconds: Time code the first new scene starts at

    Returns:
        List of scene dicts. Empty when nothing usable was found.
    """
    scenes = []
    for index, chunk in enumerate(split_chunks(raw_text)):
        scenes.append({
            "id": format_scene_id(start_index + index + 1),
            "time_range": format_time_range(start_time_seconds + index * CLIP_DURATION),
            "referenced_ids": get_referenced_ids(chunk, catalog),
            "content": chunk,
        })
    return scenes


# Quick test when run directly
if __name__ == "__main__":
    import sys
    from constants import INITIAL_CHARACTERS, INITIAL_LOCATIONS
    from reference_catalog import merge_catalogs

    if len(sys.argv) > 1:
        with open(sys.argv[1], "r") as f:
            raw = f.read()
        result = parse_script(raw, merge_catalogs(INITIAL_CHARACTERS, INITIAL_LOCATIONS))
        print(json.dumps(result, indent=2))
    else:
        print("Usage: python script_parser.py <script.txt>")
