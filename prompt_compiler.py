"""
Prompt Compiler — turns scene content into the text sent to the image model.

Three passes, always in this order at generation time:
1. inject_style():    exactly one style prefix at the front
2. enhance_prompt():  @handles / names / aliases become inline visual descriptors
3. sanitize_prompt(): quoted dialogue removed, flagged vocabulary neutralised

toggle_no_music_tag() is applied to stored scene content, not at generation time.
"""
import re

from constants import SMART_ALIASES

NO_MUSIC_TAG = " [AUDIO: NO MUSIC, SFX ONLY]"

ANIME_PREFIX = "ADD SHONEN ANIME, 4K, "
AAA_PREFIX = (
    "CINEMATIC, AAAA PHOTOREALISTIC MOVIE, UNLIMITED VFX BUDGET, 8K RESOLUTION, "
    "HYPER-DETAILED TEXTURES, VOLUMETRIC LIGHTING, SHOT ON ARRI ALEXA 65 WITH 2.39:1 ASPECT RATIO, "
    "STEVEN SPIELBERG/JAMES CAMERON STYLE, "
)
PIXAR_PREFIX = (
    "PIXAR STYLE 3D ANIMATION, DISNEY ANIMATION STUDIOS STYLE, 8K RENDER, OCTANE RENDER, "
    "VOLUMETRIC LIGHTING, SUBSURFACE SCATTERING, VIBRANT COLOR PALETTE, EXPRESSIVE FACIAL FEATURES, "
    "CUTE STYLIZED PROPORTIONS, 3D CGI, "
)

STYLE_PREFIXES = {
    "anime": ANIME_PREFIX,
    "aaa": AAA_PREFIX,
    "pixar": PIXAR_PREFIX,
}
STYLE_MODES = tuple(STYLE_PREFIXES)

OUTFIT_INSTRUCTION = ", wearing the outfit shown in reference image"

# (pattern, replacement), evaluated top to bottom, case-insensitive
FORBIDDEN_TERMS = [
    (r"bitch(?:es)?", "enemy"),
    (r"ho", "person"),
    (r"ass", "self"),
    (r"smash(?:es|ed|ing)?", "defeat"),
    (r"shit", "stuff"),
    (r"negus", "ancient warriors"),
    (r"freak(?:s|ed|ing)?", "weird"),
    (r"thotty", "rude"),
    (r"vagil", "medicine"),
    (r"cocaine", "dust"),
    (r"hell", "heck"),
    (r"damn", "darn"),
    (r"fuck(?:ing|ed|s)?", "frick"),
    (r"niggas", "warriors"),
    (r"cum", "white energy"),
    (r"nut", "explode"),
    (r"boner", "power surge"),
    (r"pussy", "courage"),
    (r"whore", "villain"),
    (r"slut", "enemy"),
    (r"handjobs", "hand strikes"),
    (r"bukkake", "barrage"),
    (r"sex", "love"),
    (r"orgasm", "climax"),
    (r"tits", "chest"),
    (r"penis", "weapon"),
    (r"dick", "weapon"),
    (r"cock", "weapon"),
    (r"jerked off", "manipulated"),
]

_FORBIDDEN_RULES = [
    (re.compile(rf'\b{pattern}\b', re.IGNORECASE), replacement)
    for pattern, replacement in FORBIDDEN_TERMS
]

# Dialogue in double, curly or single quotes (apostrophes inside words are kept)
_QUOTED_SPANS = [
    re.compile(r'"[^"\n]*"'),
    re.compile(r'“[^”\n]*”'),
    re.compile(r"(?<!\w)'[^'\n]*'(?!\w)"),
]

_PREFIX_STRIPPERS = [
    re.compile(re.escape(prefix.strip()) + r'\s*', re.IGNORECASE)
    for prefix in STYLE_PREFIXES.values()
]


def style_prefix(style_mode):
    return STYLE_PREFIXES.get(style_mode, ANIME_PREFIX)


def strip_style_prefixes(text):
    """Remove every previously injected style prefix, wherever it sits."""
    for stripper in _PREFIX_STRIPPERS:
        text = stripper.sub("", text)
    return re.sub(r'^[\s,]+', '', text)


def inject_style(text, style_mode="anime"):
    """Exactly one prefix, for the current style, at the front. Idempotent."""
    return style_prefix(style_mode) + strip_style_prefixes(text or "")


def describe_reference(ref):
    """'(Name: description[, outfit instruction])' for inline substitution."""
    outfit = OUTFIT_INSTRUCTION if ref.get("type") == "character" else ""
    return f"({ref['name']}: {ref['description']}{outfit})"


def _mention_pattern(ref_ids, catalog, aliases):
    handles = {}
    words = {}
    for ref_id in ref_ids:
        handles[ref_id.lower()] = ref_id
        name = (catalog[ref_id].get("name") or "").strip()
        if name:
            words.setdefault(name.lower(), ref_id)
    for alias, ref_id in aliases.items():
        if ref_id in ref_ids:
            words.setdefault(alias.lower(), ref_id)

    def _alternation(terms):
        return "|".join(re.escape(t) for t in sorted(terms, key=len, reverse=True))

    parts = []
    if handles:
        parts.append(rf'@(?P<handle>{_alternation(handles)})\b')
    if words:
        # Not a handle, and not a speaker label ("Ayo: ...")
        parts.append(rf'(?<![@\w])(?P<word>{_alternation(words)})\b(?!:)')
    return re.compile("|".join(parts), re.IGNORECASE), handles, words


def enhance_prompt(text, referenced_ids, catalog, style_mode="anime", aliases=None):
    """
    Style injection + reference substitution.

    Args:
        text: Scene content
        referenced_ids: Ids to expand (None expands the whole catalog)
        catalog: {id: reference entry}
        style_mode: 'anime' | 'aaa' | 'pixar'
        aliases: {informal name: id}, defaults to SMART_ALIASES

    Returns:
        Compiled prompt text (not yet sanitized)
    """
    aliases = SMART_ALIASES if aliases is None else aliases
    enhanced = inject_style(text, style_mode)

    ids = catalog.keys() if referenced_ids is None else referenced_ids
    ref_ids = [ref_id for ref_id in ids if ref_id in catalog]
    if not ref_ids:
        return enhanced

    pattern, handles, words = _mention_pattern(ref_ids, catalog, aliases)

    # Single pass: inserted descriptors are never rescanned
    def _substitute(match):
        found = match.groupdict()
        if found.get("handle"):
            ref_id = handles[found["handle"].lower()]
        else:
            ref_id = words[found["word"].lower()]
        return describe_reference(catalog[ref_id])

    return pattern.sub(_substitute, enhanced)


def sanitize_prompt(text):
    """Strip quoted dialogue, then neutralise flagged vocabulary."""
    clean = text or ""
    for span in _QUOTED_SPANS:
        clean = span.sub("", clean)
    for rule, replacement in _FORBIDDEN_RULES:
        clean = rule.sub(replacement, clean)
    return clean


def toggle_no_music_tag(text, enable):
    """Remove every existing tag, then append one if enabled."""
    clean = (text or "").replace(NO_MUSIC_TAG.strip(), "").strip()
    if enable:
        return clean + NO_MUSIC_TAG
    return clean


def compile_prompt(content, referenced_ids, catalog, style_mode="anime"):
    """Full generation-time pipeline: enhance, then sanitize."""
    return sanitize_prompt(enhance_prompt(content, referenced_ids, catalog, style_mode))
