"""
Preference memory: stylistic habits learned from finalized captions.

The detectors are plain functions so they can be reused and tested on their
own. PreferenceMemory merges their output into the per-user snapshot.
"""

import logging
import re
import unicodedata
from collections import Counter
from typing import Iterable, List, Mapping, Optional

from .config import EngineConfig
from .constants import (
    DETAILED_TONE_MIN_CHARS,
    LENGTH_LONG,
    LENGTH_MEDIUM,
    LENGTH_SHORT,
    MAX_EMOJI_LEVEL,
    MEDIUM_CAPTION_MAX_CHARS,
    MIN_PHRASE_LENGTH,
    SHORT_CAPTION_MAX_CHARS,
    TONE_CASUAL,
    TONE_DETAILED,
    TONE_ENERGETIC,
)
from .models import CaptionStructure, UserPreferenceProfile
from .store_interface import PersonalizationStore
from .utils import round_half_up

logger = logging.getLogger(__name__)

_EMOJI_RANGES = (
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F680-\U0001F6FF"  # transport & map
    "\U0001F1E0-\U0001F1FF"  # flags
    "\U00002600-\U000026FF"  # misc symbols
    "\U00002700-\U000027BF"  # dingbats
    "\U0001F900-\U0001F9FF"  # supplemental symbols
    "\U0001FA70-\U0001FAFF"  # symbols and pictographs extended-a
    "\U0000231A-\U0000231B"  # watch, hourglass
    "\U000023E9-\U000023F3"  # media controls, alarm clock, timers
    "\U000023F8-\U000023FA"
    "\U000025FD-\U000025FE"  # small squares
    "\U00002B1B-\U00002B1C"  # large squares
    "\U00002B50\U00002B55"  # star, circle
    "\U0001F004\U0001F0CF"  # mahjong tile, joker
    "\U0001F18E\U0001F191-\U0001F19A"  # squared letters
    "\U0001F201-\U0001F251"  # enclosed ideographic supplement
)

EMOJI_PATTERN = re.compile(f"[{_EMOJI_RANGES}]")
# Variation selectors and zero-width joiners may trail an emoji
TRAILING_EMOJI_PATTERN = re.compile(f"(?:[{_EMOJI_RANGES}][\uFE0F\u200D]*)+$")

FIRST_SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]?")
LEADING_QUOTE_PATTERN = re.compile("^[\"'\u201C\u201D]")


# =============================================================================
# Detectors
# =============================================================================

def _is_letter(ch: str) -> bool:
    return unicodedata.category(ch)[0] in ("L", "M")


def _word_tokens(text: str) -> Iterable[str]:
    """Yield maximal runs of word characters (letters, marks, digits, underscore)."""
    token = []
    for ch in text:
        if _is_letter(ch) or ch == "_" or unicodedata.category(ch)[0] == "N":
            token.append(ch)
        elif token:
            yield "".join(token)
            token = []
    if token:
        yield "".join(token)


def _letter_tokens(text: str) -> Iterable[str]:
    """Words made only of letters (any script); "summer2024" and "my_trip" are skipped."""
    return (token for token in _word_tokens(text) if all(_is_letter(ch) for ch in token))


def extract_phrases(text: str, limit: int = 10) -> List[str]:
    """
    Most frequent long words of a text.

    Lower-cases the text, keeps letter-only words of at least 6 characters and
    returns up to `limit` distinct tokens by descending frequency. Ties keep
    the order of first occurrence.
    """
    if not text:
        return []
    words = [word for word in _letter_tokens(text.lower()) if len(word) >= MIN_PHRASE_LENGTH]
    # Counter preserves insertion order and most_common sorts stably
    return [word for word, _ in Counter(words).most_common(limit)]


def detect_structure(text: str) -> CaptionStructure:
    """Structural flags of a caption."""
    trimmed = (text or "").strip()
    match = FIRST_SENTENCE_PATTERN.search(trimmed)

    return CaptionStructure(
        ends_with_emoji=bool(TRAILING_EMOJI_PATTERN.search(trimmed)),
        starts_with_quote=bool(LEADING_QUOTE_PATTERN.match(trimmed)),
        contains_line_breaks="\n" in (text or ""),
        first_sentence_length=len(match.group(0)) if match else len(trimmed),
    )


def detect_tone(text: str) -> str:
    if not text:
        return TONE_CASUAL
    if "!" in text:
        return TONE_ENERGETIC
    if len(text) > DETAILED_TONE_MIN_CHARS:
        return TONE_DETAILED
    return TONE_CASUAL


def detect_length_bucket(text: str) -> str:
    length = len(text or "")
    if length < SHORT_CAPTION_MAX_CHARS:
        return LENGTH_SHORT
    if length < MEDIUM_CAPTION_MAX_CHARS:
        return LENGTH_MEDIUM
    return LENGTH_LONG


def detect_emoji_level(text: str) -> int:
    """Number of emoji characters, clamped to [0, 5]."""
    return min(len(EMOJI_PATTERN.findall(text or "")), MAX_EMOJI_LEVEL)


def merge_unique_lists(first: Optional[Iterable[str]], second: Optional[Iterable[str]], limit: int = 10) -> List[str]:
    """Trimmed, non-empty, de-duplicated union (first's order before second's), capped at limit."""
    merged = []
    seen = set()
    for item in list(first or []) + list(second or []):
        if not isinstance(item, str):
            continue
        item = item.strip()
        if item and item not in seen:
            seen.add(item)
            merged.append(item)
    return merged[:limit]


# =============================================================================
# Preference Memory
# =============================================================================

class PreferenceMemory:
    """Learns and stores the per-user preference snapshot."""

    def __init__(self, store: PersonalizationStore, config: EngineConfig):
        self.store = store
        self.config = config

    async def get_preferences(self, user_id: str) -> UserPreferenceProfile:
        """Stored snapshot, or the defaults when nothing was learned yet."""
        return await self.store.get_user_preferences(user_id) or UserPreferenceProfile()

    async def learn_from_caption(
        self,
        user_id: str,
        final_text: str,
        context: Optional[Mapping] = None
    ) -> Optional[UserPreferenceProfile]:
        """
        Merge the habits detected in a finalized caption into the snapshot.

        Reads the store but never writes; call remember() to persist.

        Args:
            user_id: User ID
            final_text: The caption the user finalized
            context: Optional hints; "language" is used when no language
                     preference is known yet

        Returns:
            The merged snapshot, or None for a missing user or empty text
        """
        if not user_id or not final_text:
            return None

        context = context or {}
        existing = await self.get_preferences(user_id)

        detected_emoji = detect_emoji_level(final_text)
        emoji_level = round_half_up((existing.emoji_level + detected_emoji) / 2, 2)

        merged = UserPreferenceProfile(
            preferred_tone=detect_tone(final_text),
            emoji_level=emoji_level,
            common_phrases=merge_unique_lists(
                existing.common_phrases,
                extract_phrases(final_text, self.config.phrase_limit),
                self.config.phrase_limit,
            ),
            disliked_phrases=merge_unique_lists(existing.disliked_phrases, [], self.config.phrase_limit),
            caption_length_preference=detect_length_bucket(final_text),
            language_preference=existing.language_preference or context.get("language"),
            caption_structure=detect_structure(final_text),
            last_updated=existing.last_updated,
        )
        logger.debug(
            f"Learned preferences for user {user_id}: tone={merged.preferred_tone}, "
            f"emoji={merged.emoji_level}, length={merged.caption_length_preference}"
        )
        return merged

    async def remember(self, user_id: str, snapshot: UserPreferenceProfile) -> UserPreferenceProfile:
        """Persist a snapshot (store errors propagate)."""
        stored = await self.store.upsert_user_preferences(user_id, snapshot)
        logger.info(f"Stored preferences for user {user_id}")
        return stored

    async def add_disliked_phrases(self, user_id: str, phrases: Iterable[str]) -> UserPreferenceProfile:
        """Merge phrases the user rejected into the snapshot and persist it."""
        existing = await self.get_preferences(user_id)
        updated = existing.model_copy(update={
            "disliked_phrases": merge_unique_lists(existing.disliked_phrases, phrases, self.config.phrase_limit),
        })
        return await self.remember(user_id, updated)
