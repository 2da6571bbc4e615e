"""
Language advisor: which language(s) a caption should be written in.

Recommendation is a strict priority chain, first match wins:

    1. explicit user preference
    2. language detected from the caption draft
    3. language hint from the image
    4. audience distribution over the user's recent posts
       (majority -> single, mixed -> bilingual, otherwise the top language)
    5. fallback language

Detection runs the langdetect n-gram identifier over all of its languages
and keeps the most probable candidate that is also supported, so text in an
unsupported language (Chinese, Russian, ...) detects as nothing.
"""

import logging
import re
from typing import Dict, List, Optional

from langdetect.detector_factory import PROFILES_DIRECTORY, DetectorFactory
from langdetect.lang_detect_exception import LangDetectException

from .config import EngineConfig
from .constants import (
    LANGUAGE_LABELS,
    LANGUAGE_MODE_BILINGUAL,
    LANGUAGE_MODE_SINGLE,
    MIN_DETECTION_CHARS,
    SUPPORTED_LANGUAGES,
)
from .models import LanguageDirective, LanguageRecommendation
from .store_interface import PersonalizationStore

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"[#@][\w-]+")
URL_PATTERN = re.compile(r"https?://\S+")
WHITESPACE_PATTERN = re.compile(r"\s+")


def sanitize_text(text: str) -> str:
    """Strip hashtags, mentions and URLs and collapse whitespace."""
    text = TAG_PATTERN.sub(" ", text)
    text = URL_PATTERN.sub(" ", text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def describe_language(code: Optional[str]) -> Optional[str]:
    """Display label for a language code; unmapped codes are returned as is."""
    if not code:
        return None
    return LANGUAGE_LABELS.get(code, code)


class LanguageDetector:
    """
    Whitelisted n-gram language identifier.

    Owns its own langdetect factory (seeded, so results are reproducible)
    and loads the language profiles on first use. Detection is unrestricted;
    the whitelist only filters the ranked candidates.
    """

    def __init__(self, languages=SUPPORTED_LANGUAGES, seed: int = 0):
        self.languages = tuple(languages)
        self.seed = seed
        self._factory = None

    def _get_factory(self) -> DetectorFactory:
        if self._factory is None:
            factory = DetectorFactory()
            factory.load_profile(PROFILES_DIRECTORY)
            factory.set_seed(self.seed)
            self._factory = factory
            logger.debug(f"Loaded langdetect profiles for {len(factory.get_lang_list())} languages")
        return self._factory

    def detect(self, text: str) -> Optional[str]:
        """Return a whitelisted ISO code, or None when nothing matches."""
        if not text or not isinstance(text, str):
            return None

        cleaned = sanitize_text(text)
        if len(cleaned) < MIN_DETECTION_CHARS:
            return None

        try:
            detector = self._get_factory().create()
            detector.append(cleaned)
            candidates = detector.get_probabilities()
        except LangDetectException as e:
            logger.debug(f"Language detection failed: {e}")
            return None

        # Ranked by probability; langdetect drops candidates below 0.1
        for candidate in candidates:
            if candidate.lang in self.languages:
                return candidate.lang
        logger.debug(f"No supported language among {[c.lang for c in candidates]}")
        return None


class LanguageAdvisor:
    """Picks single or bilingual output for a user."""

    def __init__(
        self,
        store: PersonalizationStore,
        config: EngineConfig,
        detector: Optional[LanguageDetector] = None
    ):
        self.store = store
        self.config = config
        self.detector = detector or LanguageDetector(config.supported_languages)

    def detect_language_from_caption(self, text: Optional[str]) -> Optional[str]:
        return self.detector.detect(text)

    async def detect_language_distribution_for_user(
        self,
        user_id: Optional[str],
        limit: Optional[int] = None
    ) -> Optional[Dict[str, float]]:
        """
        Share of each language over the user's most recent posts.

        Each post resolves to its detected caption language, falling back to
        its stored language tag. Keys keep first-seen order.

        Returns:
            {code: share} summing to 1, or None when no post resolves
        """
        if not user_id:
            return None

        posts = await self.store.get_recent_posts(user_id, limit or self.config.post_history_limit)
        tally: Dict[str, int] = {}
        for post in posts:
            language = self.detect_language_from_caption(post.caption or "") or post.language
            if language:
                tally[language] = tally.get(language, 0) + 1

        total = sum(tally.values())
        if total == 0:
            return None
        return {language: count / total for language, count in tally.items()}

    async def recommend_language(
        self,
        user_id: Optional[str] = None,
        caption_text: Optional[str] = None,
        preferred_language: Optional[str] = None,
        image_language_hint: Optional[str] = None,
        fallback_language: Optional[str] = None
    ) -> LanguageRecommendation:
        """Run the priority chain. Store read failures propagate."""
        fallback_language = fallback_language or self.config.default_language

        if preferred_language:
            return LanguageRecommendation(
                primary=preferred_language,
                reason="user-preference",
                sources=["preference"],
            )

        detected = self.detect_language_from_caption(caption_text) if caption_text else None
        if detected:
            return LanguageRecommendation(primary=detected, reason="caption-detected", sources=["caption"])

        if image_language_hint:
            return LanguageRecommendation(primary=image_language_hint, reason="image-detected", sources=["image"])

        distribution = await self.detect_language_distribution_for_user(user_id)
        if distribution:
            return self._recommend_from_distribution(distribution)

        logger.debug(f"No language signal for user {user_id}, falling back to {fallback_language}")
        return LanguageRecommendation(primary=fallback_language, reason="fallback", sources=[])

    def _recommend_from_distribution(self, distribution: Dict[str, float]) -> LanguageRecommendation:
        # sorted() is stable, so equal shares keep first-seen order
        ranked = sorted(distribution.items(), key=lambda item: item[1], reverse=True)
        top_language, top_share = ranked[0]
        second_language, second_share = ranked[1] if len(ranked) > 1 else (None, 0.0)

        if top_share >= self.config.audience_majority_share:
            return LanguageRecommendation(primary=top_language, reason="audience-majority", sources=["history"])

        if (
            top_share >= self.config.audience_mixed_primary_share
            and second_share >= self.config.audience_mixed_secondary_share
        ):
            return LanguageRecommendation(
                mode=LANGUAGE_MODE_BILINGUAL,
                primary=top_language,
                secondary=second_language,
                reason="audience-mixed",
                sources=["history"],
            )

        return LanguageRecommendation(
            mode=LANGUAGE_MODE_SINGLE,
            primary=top_language,
            reason="audience-default",
            sources=["history"],
        )


def build_language_directive(
    recommendation: LanguageRecommendation,
    language: Optional[str] = None
) -> LanguageDirective:
    """
    Prompt text telling the generation step which language(s) to write in.

    Args:
        recommendation: Output of LanguageAdvisor.recommend_language
        language: Label to use when the primary code has no label
    """
    primary_label = describe_language(recommendation.primary) or language or "English"
    secondary_label = describe_language(recommendation.secondary)

    text = f"Write the primary caption and local hashtags in {primary_label}."
    if recommendation.mode == LANGUAGE_MODE_BILINGUAL and secondary_label:
        text += (
            f" Also generate one alternate caption in {secondary_label}"
            " and ensure combined hashtags remain cross-language friendly."
        )
    else:
        text += " Provide at least one alternate caption in global English if different from the primary language."

    return LanguageDirective(
        recommendation=recommendation,
        primary_label=primary_label,
        secondary_label=secondary_label,
        text=text,
    )


__all__ = [
    "LanguageAdvisor",
    "LanguageDetector",
    "build_language_directive",
    "describe_language",
    "sanitize_text",
]
