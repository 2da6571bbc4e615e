"""
Application Constants for the Caption Personalizer engine.

Centralizes fixed vocabularies, labels, and magic numbers.

Note: Tunable thresholds (recommendation threshold, audience shares, history
limits) live in config.py so they can be overridden per environment.
This file only contains true constants that don't change between environments.
"""

# =============================================================================
# Voice Dimensions
# =============================================================================

# Fixed ordering - recommendations and prompts always follow this order
VOICE_DIMENSIONS = (
    "formality",
    "humor",
    "enthusiasm",
    "professionalism",
    "creativity",
    "emotional_tone",
    "confidence",
    "warmth",
)

NEUTRAL_DIMENSION_VALUE = 0.5

# dimension -> (profile label, adjective used in suggestions)
DIMENSION_LABELS = {
    "formality": ("Formality", "formal"),
    "humor": ("Humor", "humorous"),
    "enthusiasm": ("Enthusiasm", "enthusiastic"),
    "professionalism": ("Professionalism", "professional"),
    "creativity": ("Creativity", "creative"),
    "emotional_tone": ("Emotional Tone", "emotional"),
    "confidence": ("Confidence", "confident"),
    "warmth": ("Warmth", "warm"),
}

DEFAULT_PROFILE_NAME = "Default Profile"

# =============================================================================
# Training
# =============================================================================

TRAINING_TYPE_FEEDBACK = "feedback_based"

# =============================================================================
# Preference Memory
# =============================================================================

TONE_ENERGETIC = "energetic"
TONE_DETAILED = "detailed"
TONE_CASUAL = "casual"

LENGTH_SHORT = "short"
LENGTH_MEDIUM = "medium"
LENGTH_LONG = "long"

SHORT_CAPTION_MAX_CHARS = 150  # exclusive
MEDIUM_CAPTION_MAX_CHARS = 250  # exclusive
DETAILED_TONE_MIN_CHARS = 200  # exclusive

MIN_PHRASE_LENGTH = 6
MAX_EMOJI_LEVEL = 5
DEFAULT_EMOJI_LEVEL = 2

# =============================================================================
# Languages
# =============================================================================

DEFAULT_LANGUAGE = "en"
MIN_DETECTION_CHARS = 3

# Whitelist for the n-gram identifier (ISO 639-1 codes)
LANGUAGE_LABELS = {
    "en": "English",
    "hi": "Hindi",
    "te": "Telugu",
    "ta": "Tamil",
    "kn": "Kannada",
    "ml": "Malayalam",
    "bn": "Bengali",
    "mr": "Marathi",
    "pa": "Punjabi",
    "gu": "Gujarati",
    "ur": "Urdu",
    "es": "Spanish",
    "de": "German",
    "fr": "French",
}

SUPPORTED_LANGUAGES = tuple(LANGUAGE_LABELS.keys())

LANGUAGE_MODE_SINGLE = "single"
LANGUAGE_MODE_BILINGUAL = "bilingual"

# =============================================================================
# Hashtag Screening
# =============================================================================

HASHTAG_BANNED = "banned"
HASHTAG_OVERUSED = "overused"
HASHTAG_OK = "ok"
