"""
Storyboard Studio — Story Engine
Uses Google Gemini for script drafting/rewriting and for rendering scene frames.

Every call goes through retry.generate_with_retry(), so throttling and
transient failures are retried with backoff before they reach the caller.
"""
import os
import json
import base64
from pathlib import Path

from dotenv import load_dotenv

# Google GenAI SDK
from google import genai
from google.genai import types

from retry import GenerationError, SafetyBlockError, generate_with_retry
from prompt_compiler import style_prefix

load_dotenv()

# Paths
BASE_DIR = Path(__file__).parent
CONFIG_PATH = BASE_DIR / "config" / "settings.json"

DEFAULT_CONFIG = {
    "models": {
        "image": "gemini-2.5-flash-image",
        "text": "gemini-2.5-flash",
    },
    "image_generation": {
        "aspect_ratio": "16:9",
        "max_reference_width": 1024,
        "reference_jpeg_quality": 85,
    },
    "batch": {
        "cooldown_seconds": 60,
        "success_delay_seconds": 2,
        "failure_delay_seconds": 1,
    },
    "retry": {
        "retries": 5,
        "initial_delay_seconds": 15,
        "backoff": 1.5,
    },
}

STYLE_INSTRUCTIONS = {
    "anime": "Style: High quality anime screencap, 4k, cinematic lighting, cel shaded, highly detailed, dramatic composition.",
    "aaa": "Style: PHOTOREALISTIC MOVIE FRAME. Highly detailed, cinematic, 8k, volumetric lighting. Do NOT use anime cel-shading. This is a high-budget live action film.",
    "pixar": "Style: 3D ANIMATED MOVIE FRAME (Pixar/Disney Style). High quality 3D render, expressive features, vibrant colors, soft volumetric lighting, subsurface scattering on skin, Octane render. Do NOT use 2D anime style. Do NOT use photorealism. Cute but detailed 3D CGI.",
}

CONSISTENCY_INSTRUCTION = """

IMPORTANT: Reference images are attached. You MUST COPY the character designs (FACE, HAIR, AND EXACT OUTFIT) from these images.
- Do NOT invent new clothes. If the text does not describe clothing, USE THE OUTFIT FROM THE IMAGE.
- If multiple characters are present, map them correctly based on their visual traits (e.g. Red skin = Ayo).

{style_instruction}
CRITICAL: NO SPEECH BUBBLES. NO TEXT OVERLAYS. NO COMIC PANELS."""

SAFETY_SETTINGS = [
    types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_ONLY_HIGH)
    for category in (
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]

DEFAULT_LORE = "Generic Anime World"

_client = None
_config = None


def _merge(base, override):
    merged = dict(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config():
    """Load settings.json over the built-in defaults (cached)."""
    global _config
    if _config is None:
        overrides = {}
        if CONFIG_PATH.exists():
            with open(CONFIG_PATH) as f:
                overrides = json.load(f)
        _config = _merge(DEFAULT_CONFIG, overrides)
    return _config


def init_client():
    """Initialize the Google GenAI client."""
    global _client
    if _client is None:
        api_key = os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError("GEMINI_API_KEY or GOOGLE_API_KEY must be set")
        _client = genai.Client(api_key=api_key)
    return _client


def _with_retry(operation, label):
    policy = load_config()["retry"]
    return generate_with_retry(
        operation,
        retries=policy["retries"],
        initial_delay=policy["initial_delay_seconds"],
        backoff=policy["backoff"],
        label=label,
    )


def generate_text(prompt, max_tokens=None, model=None):
    """Generate text content with Gemini."""
    client = init_client()
    model = model or load_config()["models"]["text"]
    config = types.GenerateContentConfig(max_output_tokens=max_tokens) if max_tokens else None

    response = _with_retry(
        lambda: client.models.generate_content(model=model, contents=prompt, config=config),
        label="generate_text",
    )
    return response.text or ""


def _extract_image(response):
    """Return the first inline image payload or raise a descriptive error."""
    candidates = getattr(response, "candidates", None)
    if not candidates:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        if block_reason:
            raise SafetyBlockError(f"Blocked by Safety Filter: {block_reason}")
        raise GenerationError("No image candidates returned by API.")

    candidate = candidates[0]
    finish_reason = str(getattr(candidate, "finish_reason", "") or "")
    if "SAFETY" in finish_reason or "PROHIBITED" in finish_reason:
        raise SafetyBlockError(f"Blocked by Safety Filter: {finish_reason}")

    content = getattr(candidate, "content", None)
    for part in (getattr(content, "parts", None) or []):
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            data = inline.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            return data

    raise GenerationError("Model returned no image data.")


def generate_frame(prompt, references=None, style_mode="anime"):
    """
    Render one storyboard frame.

    Args:
        prompt: Compiled + sanitized scene prompt
        references: [{"id", "data": base64 str, "mime_type"}] attached in order
        style_mode: 'anime' | 'aaa' | 'pixar'

    Returns:
        Raw image bytes
    """
    client = init_client()
    cfg = load_config()

    parts = []
    for ref in references or []:
        print(f"[generate_frame] Attaching reference image: {ref['id']}")
        parts.append(types.Part.from_bytes(
            data=base64.b64decode(ref["data"]),
            mime_type=ref.get("mime_type") or "image/png",
        ))

    style_instruction = STYLE_INSTRUCTIONS.get(style_mode, STYLE_INSTRUCTIONS["anime"])
    parts.append(types.Part.from_text(
        text=prompt + CONSISTENCY_INSTRUCTION.format(style_instruction=style_instruction)
    ))

    response = _with_retry(
        lambda: client.models.generate_content(
            model=cfg["models"]["image"],
            contents=parts,
            config=types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                image_config=types.ImageConfig(
                    aspect_ratio=cfg["image_generation"]["aspect_ratio"],
                ),
                safety_settings=SAFETY_SETTINGS,
            ),
        ),
        label="generate_frame",
    )
    return _extract_image(response)


# =============================================================================
# SCRIPT HELPERS
# =============================================================================

def _character_context(ref_map, use_voice=False, with_visual=True):
    lines = []
    for ref in ref_map.values():
        if ref.get("type") != "character":
            continue
        line = f"Handle: @{ref['id']} | Name: {ref['name']}"
        if with_visual:
            line += f" | Visual: {ref['description']}"
        if use_voice and ref.get("voice"):
            line += f" | Voice: {ref['voice']}"
        lines.append(line)
    return "\n".join(lines)


def _location_context(ref_map, with_visual=True):
    lines = []
    for ref in ref_map.values():
        if ref.get("type") != "location":
            continue
        line = f"Handle: @{ref['id']} | Name: {ref['name']}"
        if with_visual:
            line += f" | Visual: {ref['description']}"
        lines.append(line)
    return "\n".join(lines)


def refine_text_prompt(original_text, instruction):
    """Rewrite one scene following a user instruction."""
    prompt = (
        f'Script Scene: "{original_text}"\n'
        f'User Instruction: "{instruction}"\n'
        "Task: Rewrite script scene based on instruction. Keep it short."
    )
    return generate_text(prompt) or original_text


def generate_script_from_idea(idea, ref_map, use_voice=False, lore="", style_mode="anime"):
    """Draft a short script from a one-line idea."""
    voice_rule = (
        '3. **VOICE TAGS:** In the (Audio) sections, you MUST put the character\'s voice description '
        'in brackets before their line. Example: "(Audio) Ayo [Energetic Hero Voice]: Let\'s go!"'
        if use_voice else ""
    )
    prompt = f"""
CONTEXT / WORLD LORE:
{lore or DEFAULT_LORE}

Write an anime script for: "{idea}"

AVAILABLE CHARACTERS:
{_character_context(ref_map, use_voice)}

CRITICAL RULES FOR HANDLES VS NAMES:
1. **IN VISUAL PROMPTS & ACTIONS:** ALWAYS use the Handle (e.g. "@auraayo walks in").
2. **IN DIALOGUE:** NEVER use the Handle. Use their Name (e.g. "Ayo: Rayne, stop!").
{voice_rule}
OTHER RULES:
1. Break into 15s scenes.
2. STRICT FORMATTING: Start each sequence exactly with "Sequence X:" (no quotes).
3. ENVIRONMENT CONSISTENCY: Re-state the location/background in the 'Prompt' field for EVERY sequence.
4. NO CLOTHING DESCRIPTIONS: Do NOT describe specific clothes in the Prompt. Rely on the character identity.
5. NO TEXT/COMIC BUBBLES.

Format: Sequence X: [Title]
Prompt: {style_prefix(style_mode)}[Explicit Location Description], [Visual Action Description using @handles]
Chronological Flow: ...
"""
    return generate_text(prompt)


def break_script_down(script_text, ref_map, use_voice=False, lore="", style_mode="anime"):
    """Convert a raw script into piece-by-piece 15-second sequences."""
    voice_rule = (
        '4. **VOICE TAGS:** In the Chronological Flow, prefix spoken lines with [Voice Desc]. '
        'e.g. "Ayo [Deep Voice]: Text"'
        if use_voice else ""
    )
    prompt = f"""
TASK: Convert this raw script into a 'Piece-by-Piece' 15-second storyboard sequence.

CONTEXT / WORLD LORE:
{lore or DEFAULT_LORE}

INPUT SCRIPT:
"{script_text[:20000]}"

PIECE-BY-PIECE PRINCIPLES:
1. **Break into 15s Segments:** Divide the narrative into 15-second visual chunks.
2. **Visual Stitching:** For every Sequence after #1, you MUST look at the *end* of the previous sequence. The *Prompt* of the current sequence must describe the character/camera starting in a state that matches the previous ending.
3. **Consistency:** Re-state the background location in EVERY Prompt field.

FORMATTING RULES:
- Start blocks with "Sequence X: [Title]"
- Use "Prompt: {style_prefix(style_mode)}..." for the visual description.
- Use @handle for visuals (e.g. @auraayo), use Names for dialogue.
- NO clothing descriptions.
- NO text/speech bubbles in prompt.
{voice_rule}

AVAILABLE CHARACTERS (Use their handles!):
{_character_context(ref_map, use_voice, with_visual=False)}
"""
    return generate_text(prompt) or script_text


def generate_full_episode(idea, scene_count, ref_map, use_voice=False, lore="", style_mode="anime"):
    """Write a complete episode of exactly `scene_count` sequences."""
    voice_rule = (
        '5. **VOICE CONSISTENCY:** In the (Audio) lines, you MUST include the voice description in brackets. '
        'Example: "(Audio) Ayo [Gravelly Hero Voice]: Stop!"'
        if use_voice else ""
    )
    prompt = f"""
TASK: Write a full anime episode script based on this idea: "{idea}"

CONTEXT / WORLD LORE:
{lore or DEFAULT_LORE}

AVAILABLE ASSETS:
{_character_context(ref_map, use_voice)}
{_location_context(ref_map)}
CONSTRAINTS:
1. You MUST generate EXACTLY {scene_count} sequences. Number them Sequence 1 to Sequence {scene_count}.
2. Each sequence represents 15 seconds of screen time.
3. Every single sequence must have MEANINGFUL action or dialogue.
4. FORMATTING: Start every block with "Sequence X:" (no quotes).
{voice_rule}

HANDLE VS NAME RULES (CRITICAL):
- **VISUAL PROMPTS & ACTIONS:** You MUST use the @handle.
- **DIALOGUE (AUDIO):** You MUST use the Name.
VISUAL RULES:
- VISUAL CONSISTENCY: Describe the environment/background in EVERY Prompt field.
- NO TEXT IN IMAGES.
- NO CLOTHING DESCRIPTIONS.

OUTPUT FORMAT PER SEQUENCE:
Sequence X: [Title]
Prompt: {style_prefix(style_mode)}[Explicit Location Description], [Visual Action Description using @handles]
Chronological Flow:
(Action) [Details using @handles]
(Audio) [Name] [Voice Desc if enabled]: [Dialogue]
"""
    return generate_text(prompt, max_tokens=8192)


def generate_next_beat(last_sequence_id, last_content, ref_map, use_voice=False, lore="", style_mode="anime"):
    """
    Write the sequence that follows `last_content`, or a cold open when the
    board is empty.
    """
    next_id = last_sequence_id + 1
    voice_rule = "- Include [Voice Description] in brackets before spoken dialogue." if use_voice else ""
    characters = _character_context(ref_map, use_voice, with_visual=False)
    locations = _location_context(ref_map, with_visual=False)
    rules = f"""RULES:
- Use "Prompt: {style_prefix(style_mode)}..." for visuals.
- Use @handles for Visuals/Action.
- Use Names for Dialogue.
- NO clothing descriptions.
- NO text/speech bubbles instructions.
{voice_rule}"""

    if last_content:
        prompt = f"""
TASK: Read the previous anime scene and write the IMMEDIATE NEXT 15-second sequence (Sequence {next_id}).

CONTEXT / WORLD LORE:
{lore or DEFAULT_LORE}

PREVIOUS SCENE:
"{last_content}"

INSTRUCTIONS:
1. Infer the ending visual state of the previous scene.
2. Write "Sequence {next_id}: [Title]"
3. Write a "Prompt:" that continues the visual action smoothly (same environment, logical next movement).
4. Write "Chronological Flow:" with dialogue/action.

{rules}
- Re-state the environment in the Prompt.

AVAILABLE ASSETS:
{characters}
{locations}
"""
    else:
        prompt = f"""
TASK: Write an exciting OPENING SCENE (Sequence 1) for a new anime episode.

CONTEXT / WORLD LORE:
{lore or DEFAULT_LORE}

INSTRUCTIONS:
1. Create a high-energy or dramatic start based on the Lore.
2. Write "Sequence 1: [Title]"
3. Write a "Prompt:" for the image generator.
4. Write "Chronological Flow:"

{rules}
- Describe the environment clearly.

AVAILABLE CHARACTERS:
{characters}
AVAILABLE LOCATIONS:
{locations}
"""
    return generate_text(prompt)
