from __future__ import annotations

from constants import INITIAL_CHARACTERS, INITIAL_LOCATIONS
from prompt_compiler import (
    AAA_PREFIX,
    ANIME_PREFIX,
    NO_MUSIC_TAG,
    OUTFIT_INSTRUCTION,
    PIXAR_PREFIX,
    compile_prompt,
    enhance_prompt,
    inject_style,
    sanitize_prompt,
    strip_style_prefixes,
    toggle_no_music_tag,
)
from reference_catalog import merge_catalogs

CATALOG = merge_catalogs(INITIAL_CHARACTERS, INITIAL_LOCATIONS)


def test_style_injection_is_idempotent():
    once = inject_style("Ayo jumps", "anime")
    assert once == ANIME_PREFIX + "Ayo jumps"
    assert inject_style(once, "anime") == once


def test_switching_style_replaces_the_prefix():
    anime = inject_style("Ayo jumps", "anime")
    pixar = inject_style(anime, "pixar")
    assert pixar == PIXAR_PREFIX + "Ayo jumps"
    assert inject_style(pixar, "aaa") == AAA_PREFIX + "Ayo jumps"


def test_embedded_prefixes_are_removed():
    content = "Sequence 1: Start\nPrompt: ADD SHONEN ANIME, 4K, wide shot of the city"
    compiled = inject_style(content, "anime")
    assert compiled.count("ADD SHONEN ANIME") == 1
    assert "Prompt: wide shot of the city" in compiled


def test_unknown_style_falls_back_to_anime():
    assert inject_style("x", "watercolor") == ANIME_PREFIX + "x"


def test_strip_leaves_no_leading_comma():
    assert strip_style_prefixes(", " + ANIME_PREFIX + "rest") == "rest"


def test_handles_and_names_become_descriptors():
    ayo = INITIAL_CHARACTERS["auraayo"]
    rayne = INITIAL_CHARACTERS["rayneaura"]
    text = enhance_prompt("@auraayo punches Rayne", ["auraayo", "rayneaura"], CATALOG, "anime")
    assert text == (
        ANIME_PREFIX
        + f"(Ayo: {ayo['description']}{OUTFIT_INSTRUCTION}) punches "
        + f"(Rayne: {rayne['description']}{OUTFIT_INSTRUCTION})"
    )


def test_locations_get_no_outfit_instruction():
    city = INITIAL_LOCATIONS["loccity"]
    text = enhance_prompt("Night in @loccity", ["loccity"], CATALOG, "anime")
    assert text.endswith(f"(South City: {city['description']})")


def test_speaker_labels_are_left_alone():
    text = enhance_prompt("Ayo: Let's go!", ["auraayo"], CATALOG, "anime")
    assert text == ANIME_PREFIX + "Ayo: Let's go!"


def test_only_referenced_ids_are_expanded():
    text = enhance_prompt("@auraayo and @rayneaura", ["auraayo"], CATALOG, "anime")
    assert "@rayneaura" in text
    assert "@auraayo" not in text


def test_descriptors_are_not_rescanned():
    text = enhance_prompt("@jaxiron stands guard", ["jaxiron"], CATALOG, "anime")
    assert text.count("(Jax Iron:") == 1
    assert text.count("(") == 1


def test_quoted_dialogue_is_stripped_before_term_table():
    clean = sanitize_prompt('The hell gate opens. Rayne: "go to hell" and smiles')
    assert "go to" not in clean
    assert "hell" not in clean
    assert clean.startswith("The heck gate opens.")


def test_single_and_curly_quotes_are_stripped():
    clean = sanitize_prompt("He yells 'damn it' then “what the hell” and leaves")
    assert clean == "He yells  then  and leaves"


def test_apostrophes_inside_words_survive():
    assert sanitize_prompt("Ayo's fist isn't done") == "Ayo's fist isn't done"


def test_terms_match_whole_words_only():
    assert sanitize_prompt("A shell on the class hold") == "A shell on the class hold"
    assert sanitize_prompt("He SMASHED the wall") == "He defeat the wall"


def test_no_music_toggle_is_idempotent():
    tagged = toggle_no_music_tag("Scene text", True)
    assert tagged == "Scene text" + NO_MUSIC_TAG
    assert toggle_no_music_tag(tagged, True) == tagged
    assert toggle_no_music_tag(tagged, False) == "Scene text"
    assert toggle_no_music_tag("Scene text", False) == "Scene text"


def test_compile_prompt_runs_every_pass():
    compiled = compile_prompt('@auraayo shouts "damn" in the rain', ["auraayo"], CATALOG, "aaa")
    assert compiled.startswith(AAA_PREFIX + "(Ayo:")
    assert "damn" not in compiled
