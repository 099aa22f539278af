"""
Storyboard Studio — Seed Data
Default lore, reference catalog, alias table and opening storyboard.
"""

# Map informal names/keywords to reference handles automatically
SMART_ALIASES = {
    "ayo": "auraayo",
    "rayne": "rayneaura",
    "hana": "aurahana",
    "hanna": "aurahana",
    "zorbie": "zorbie",
    "jax": "jaxiron",
    "iron": "jaxiron",
    "gnatman": "auragnat",
    "gnat": "auragnat",
    "kinetic": "aurakinetic",
    "sparky": "aurakinetic",
}

INITIAL_LORE = """WORLD SETTING: "The World of Aura"
GENRE: Shonen Battle / Sci-Fi / Urban Fantasy
TONE: High-energy, gritty, slightly comedic but serious combat.

POWER SYSTEM ("AURA"):
- Everyone has "Aura" which manifests as colored energy.
- Colors denote personality/fighting style (Red=Aggressive, Blue=Calm/Tech, Pink=Precision, Green=Alien).
- "Destiny Cup" is the main fighting tournament.

LOCATIONS:
- South City: A cyberpunk metropolis where the poor live in the "Lower Wards" and the rich in the "Sky Spire".
- Cheetahlicious Club: A notorious hangout spot for fighters.

HISTORY:
- The "Negus" were ancient warriors who originally harnessed Aura.
- Modern fighters use a mix of martial arts and Aura projection.
- Being "Broke" is a major character motivation for Ayo."""


def _ref(ref_id, name, ref_type, color, description, voice=None):
    return {
        "id": ref_id,
        "name": name,
        "type": ref_type,
        "color": color,
        "description": description,
        "voice": voice,
        "image_base64": None,
        "mime_type": None,
    }


INITIAL_CHARACTERS = {
    "auragnat": _ref(
        "auragnat", "Gnatman", "character", "#374151",
        "Tactical superhero wearing a full black insect-themed armored suit, helmet with large amber bug-eye lenses, translucent wing attachments.",
        "Raspy, filtered tactical voice, serious tone",
    ),
    "aurakinetic": _ref(
        "aurakinetic", "Kinetic", "character", "#3b82f6",
        "Young black male with short dreadlocks/twists, expressive brown eyes, athletic build, often surrounded by blue electric aura.",
        "High energy, youthful, fast-talking",
    ),
    "auraayo": _ref(
        "auraayo", "Ayo", "character", "#f472b6",
        "Young man with red skin, spiky white hair, orange eyes.",
        "Energetic, gritty Shonen Hero voice, medium pitch",
    ),
    "aurahana": _ref(
        "aurahana", "Hana", "character", "#60a5fa",
        "Female lead, long flowing pink hair, green eyes, fair skin.",
        "Sharp, commanding female voice, slightly raspy",
    ),
    "rayneaura": _ref(
        "rayneaura", "Rayne", "character", "#3b82f6",
        "Young white male with spiky dark blue hair, confident smirk.",
        "Smooth, arrogant, deep calm voice",
    ),
    "zorbie": _ref(
        "zorbie", "Zorbie", "character", "#84cc16",
        "Green-skinned alien humanoid with antennae, yellow eyes.",
        "High-pitched, quirky alien voice",
    ),
    "jaxiron": _ref(
        "jaxiron", "Jax Iron", "character", "#94a3b8",
        "Tall muscular man, short slicked-back dark hair, vertical scar over left eye.",
        "Deep, gravelly, serious soldier voice",
    ),
}

INITIAL_LOCATIONS = {
    "locforest": _ref(
        "locforest", "Anime Forest", "location", "#22c55e",
        "Lush green ancient forest with massive twisting trees, bioluminescent plants, filtered sunlight beams, mystical atmosphere, highly detailed anime background",
    ),
    "loccity": _ref(
        "loccity", "South City", "location", "#a855f7",
        "Futuristic cyberpunk city street at night, neon signs, wet pavement reflections, towering skyscrapers, crowded atmosphere, anime style background",
    ),
    "locarena": _ref(
        "locarena", "Destiny Arena", "location", "#fbbf24",
        "Massive high-tech stadium interior, bright stadium lights, cheering crowds in shadows, holographic displays, grand tournament vibe",
    ),
}

# Opening storyboard shown on a fresh workspace
INITIAL_SCRIPT = """Sequence 1: THE ANOMALY
Prompt: Cinematic extreme wide shot of Aether City skyline at midnight, heavy rainstorm. In the foreground, @auragnat stands perched on a gothic stone gargoyle. Lighting is moody neon noir, deep shadows, cyan city glow. Rain pours in sheets, bouncing off his form. Camera slowly pushes in on his back.
Chronological Flow:
(Audio) Heavy rain hitting concrete. Distant sirens.
(Audio) Gnatman [Raspy, filtered tactical voice]: "This city screams in neon... trying to drown out the darkness."

Sequence 2: The Static Surfer
Prompt: On the wet Aether City rooftops, @aurakinetic surfs past the camera on a disc of crackling blue static electricity, moving right to left at high speed. Rain evaporates into steam around him.
Chronological Flow:
(Audio) Loud electrical crackle. Hip-hop beat fading in.
(Audio) Kinetic [High energy, youthful]: "Woooo! Yo, is it always this wet in this dimension?"

Sequence 3: The Confrontation
Prompt: On the wet Aether City rooftop, @auragnat stands motionless and heavy on the left. @aurakinetic hovers on the right, bobbing gently, surrounded by a nervous blue electric aura.
Chronological Flow:
(Audio) Kinetic [High energy, youthful]: "Okay, don't freak out. My compass says the world ends right about... here."
(Audio) Gnatman [Raspy, filtered tactical voice]: "Get off my roof."

Sequence 4: The Vortex
Prompt: From @auragnat and @aurakinetic on the Aether City rooftop, the camera tilts up to the night sky. The sky tears open and a massive purple vortex swirls in the clouds. A gigantic burning meteor punches through, illuminating the city in apocalyptic red light.
Chronological Flow:
(Audio) A sound like tearing metal.
(Audio) Gnatman [Raspy, filtered tactical voice]: "Mentor. Analysis. Now."
"""
