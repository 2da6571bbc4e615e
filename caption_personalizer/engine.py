"""
Personalization engine facade.

The single entry point the caption generation step talks to. Wires the
voice model, preference memory and language advisor to one store and one
oracle, and turns their output into prompt-ready directives.

Failure policy:
- StoreError always propagates.
- OracleError is swallowed only on background paths (refinement and the
  bookkeeping analysis of a finalized caption). Operations that exist to
  return an analysis let it propagate.
"""

import json
import logging
from typing import Iterable, List, Mapping, Optional, Union

from .config import EngineConfig, Settings, settings as default_settings
from .constants import HASHTAG_BANNED, HASHTAG_OK, HASHTAG_OVERUSED
from .exceptions import OracleError, VoiceProfileNotFoundError
from .language_advisor import LanguageAdvisor, LanguageDetector, build_language_directive, describe_language
from .models import (
    ConsistencyReport,
    ContentAnalysisRecord,
    ContentInsights,
    ContentType,
    FeedbackRecord,
    HashtagScreening,
    LanguageDirective,
    LanguageRequest,
    StyleDirective,
    UserPreferenceProfile,
    VoiceProfile,
    VoiceVector,
)
from .oracle import VoiceOracle, get_voice_oracle
from .preference_memory import PreferenceMemory
from .store_interface import PersonalizationStore
from .voice_model import VoiceModel

logger = logging.getLogger(__name__)


def build_memory_context(preferences: Optional[UserPreferenceProfile]) -> str:
    """Prompt section listing the learned writing preferences."""
    if preferences is None:
        return "No explicit user preferences provided."

    phrases = ", ".join(preferences.common_phrases) or "None"
    avoid = ", ".join(preferences.disliked_phrases) or "None"
    structure = json.dumps(preferences.caption_structure.model_dump())

    return "\n".join([
        "User's writing preferences you MUST follow:",
        f"- Tone: {preferences.preferred_tone}",
        f"- Emoji level target: {preferences.emoji_level:g} (0 to 5 scale)",
        f"- Use these phrases when appropriate: {phrases}",
        f"- Avoid these: {avoid}",
        f"- Preferred caption length: {preferences.caption_length_preference}",
        f"- Structure rules: {structure}",
        f"- Preferred language: {preferences.language_preference or 'en'}",
    ])


def _as_vector(value: Union[VoiceVector, Mapping[str, float]]) -> VoiceVector:
    if isinstance(value, VoiceVector):
        return value
    return VoiceVector(**{key: val for key, val in value.items() if val is not None})


class PersonalizationEngine:
    """Facade over the voice model, preference memory and language advisor."""

    def __init__(
        self,
        store: PersonalizationStore,
        oracle: VoiceOracle,
        config: Optional[EngineConfig] = None,
        detector: Optional[LanguageDetector] = None
    ):
        self.store = store
        self.oracle = oracle
        self.config = config or EngineConfig()

        self.voice = VoiceModel(store, oracle, self.config)
        self.memory = PreferenceMemory(store, self.config)
        self.languages = LanguageAdvisor(store, self.config, detector)

    # =============================================================================
    # Directives for the generation step
    # =============================================================================

    async def get_style_directive(
        self,
        user_id: str,
        analyzed_vector: Optional[Union[VoiceVector, Mapping[str, float]]] = None
    ) -> StyleDirective:
        """
        Everything the generation step needs to write in the user's voice.

        Users without a profile get a neutral default profile (not stored).
        When an analyzed vector is supplied, the directive also carries its
        consistency score and recommendations against the profile.
        """
        profile = await self.store.get_voice_profile(user_id)
        profile_is_default = profile is None
        if profile_is_default:
            profile = VoiceProfile(user_id=user_id)

        preferences = await self.memory.get_preferences(user_id)

        consistency_score = None
        recommendations = None
        if analyzed_vector is not None:
            analyzed = _as_vector(analyzed_vector)
            consistency_score = self.voice.compute_consistency(profile, analyzed)
            recommendations = self.voice.recommend(profile, analyzed)

        sections = [self.voice.describe_profile(profile)]
        requirements = self.voice.voice_requirements(profile)
        if requirements:
            sections.append(f"Ensure you {', '.join(requirements)}.")
        sections.append(build_memory_context(preferences))

        return StyleDirective(
            profile=profile,
            preferences=preferences,
            profile_is_default=profile_is_default,
            consistency_score=consistency_score,
            recommendations=recommendations,
            prompt_text="\n".join(sections),
        )

    async def get_language_directive(self, request: LanguageRequest) -> LanguageDirective:
        """Recommend the output language(s) and phrase them for the prompt."""
        recommendation = await self.languages.recommend_language(
            user_id=request.user_id,
            caption_text=request.caption_text,
            preferred_language=request.preferred_language,
            image_language_hint=request.image_language_hint,
            fallback_language=request.fallback_language,
        )
        logger.info(
            f"Language for user {request.user_id}: {recommendation.mode} "
            f"{recommendation.primary}/{recommendation.secondary} ({recommendation.reason})"
        )
        return build_language_directive(recommendation)

    # =============================================================================
    # Learning
    # =============================================================================

    async def record_finalized_caption(
        self,
        user_id: str,
        text: str,
        context: Optional[Mapping] = None,
        generated_caption: Optional[str] = None,
        feedback_score: Optional[int] = None
    ) -> Optional[UserPreferenceProfile]:
        """
        Learn from a caption the user finalized.

        Persists the merged preferences and a caption history entry, then
        analyzes the caption's voice and stores the analysis. The analysis is
        best effort: oracle failures are logged and skipped.

        Args:
            user_id: User ID
            text: Final caption text
            context: Optional hints ("language")
            generated_caption: What the generator proposed, if different
            feedback_score: Optional 0-5 rating of the generated caption

        Returns:
            The stored preference snapshot, or None for empty input
        """
        context = context or {}
        snapshot = await self.memory.learn_from_caption(user_id, text, context)
        if snapshot is None:
            return None

        stored = await self.memory.remember(user_id, snapshot)
        await self.store.append_caption_history(user_id, generated_caption, text, feedback_score)

        language = context.get("language") or stored.language_preference or self.config.default_language
        try:
            analysis = await self.oracle.analyze_voice(text, ContentType.CAPTION.value, describe_language(language))
        except OracleError as e:
            logger.warning(f"Skipping voice analysis of finalized caption for user {user_id}: {e}")
            return stored

        await self.store.append_content_analysis(user_id, ContentAnalysisRecord(
            user_id=user_id,
            content_type=ContentType.CAPTION,
            content_text=text,
            analysis_confidence=analysis.confidence_score,
            **analysis.dimensions()
        ))
        return stored

    async def analyze_content(
        self,
        user_id: str,
        text: str,
        content_type: ContentType = ContentType.CAPTION,
        language: Optional[str] = None
    ) -> ContentAnalysisRecord:
        """Analyze a piece of content and keep it as training input. OracleError propagates."""
        content_type = ContentType(content_type)
        analysis = await self.oracle.analyze_voice(
            text,
            content_type.value,
            describe_language(language or self.config.default_language),
        )
        return await self.store.append_content_analysis(user_id, ContentAnalysisRecord(
            user_id=user_id,
            content_type=content_type,
            content_text=text,
            analysis_confidence=analysis.confidence_score,
            **analysis.dimensions()
        ))

    async def record_feedback(self, user_id: str, feedback: FeedbackRecord) -> FeedbackRecord:
        """Store feedback, then try to refine the voice profile."""
        stored = await self.store.append_feedback(user_id, feedback)
        await self.voice.refine(user_id)
        return stored

    async def update_voice_profile(
        self,
        user_id: str,
        partial_vector: Mapping[str, float],
        profile_name: Optional[str] = None
    ) -> VoiceProfile:
        return await self.voice.upsert_profile(user_id, partial_vector, profile_name)

    async def record_disliked_phrases(self, user_id: str, phrases: Iterable[str]) -> UserPreferenceProfile:
        return await self.memory.add_disliked_phrases(user_id, phrases)

    # =============================================================================
    # Insights
    # =============================================================================

    async def validate_consistency(
        self,
        user_id: str,
        text: str,
        content_type: ContentType = ContentType.CAPTION,
        language: Optional[str] = None
    ) -> ConsistencyReport:
        """
        Score a text against the stored voice profile.

        Raises:
            VoiceProfileNotFoundError: The user has no profile yet
            OracleError: The analysis failed
        """
        profile = await self.store.get_voice_profile(user_id)
        if profile is None:
            raise VoiceProfileNotFoundError(user_id)

        analysis = await self.oracle.analyze_voice(
            text,
            ContentType(content_type).value,
            describe_language(language or self.config.default_language),
        )
        return ConsistencyReport(
            score=self.voice.compute_consistency(profile, analysis),
            profile=profile,
            analysis=analysis,
            recommendations=self.voice.recommend(profile, analysis),
        )

    async def get_content_insights(self, user_id: str, limit: int = 50) -> ContentInsights:
        analysis_history = await self.store.get_content_analysis_history(user_id, limit)
        feedback_history = await self.store.get_feedback_history(user_id, limit)
        return ContentInsights(
            analysis_history=analysis_history,
            feedback_history=feedback_history,
            voice_summary=self.voice.summarize_history(analysis_history),
        )

    def screen_hashtags(self, hashtags: Iterable[str]) -> List[HashtagScreening]:
        """Classify hashtags against the banned and overused reference lists."""
        reference = self.config.reference_data
        results = []
        seen = set()

        for raw in hashtags:
            tag = (raw or "").strip().lstrip("#").lower()
            if not tag or tag in seen:
                continue
            seen.add(tag)

            if tag in reference.banned_hashtags:
                results.append(HashtagScreening(
                    hashtag=tag, category=HASHTAG_BANNED, reason="Explicitly banned by platform."
                ))
            elif tag in reference.overused_hashtags:
                results.append(HashtagScreening(
                    hashtag=tag, category=HASHTAG_OVERUSED, reason="Extremely popular, content may get lost quickly."
                ))
            else:
                results.append(HashtagScreening(
                    hashtag=tag, category=HASHTAG_OK, reason="Not on any reference list."
                ))
        return results


def build_engine(
    settings: Optional[Settings] = None,
    session_factory=None,
    oracle: Optional[VoiceOracle] = None
) -> PersonalizationEngine:
    """
    Build an engine backed by the SQL store and the configured oracle.

    Args:
        settings: Settings to build from (defaults to global settings)
        session_factory: Optional sessionmaker for the SQL store (defaults to
                         one bound to settings.database_url)
        oracle: Optional oracle override (defaults to get_voice_oracle())
    """
    from .database import create_session_factory
    from .sql_store import SQLAlchemyPersonalizationStore

    cfg = settings or default_settings
    config = EngineConfig.from_settings(cfg)
    if session_factory is None:
        session_factory = create_session_factory(cfg.database_url)
    engine = PersonalizationEngine(
        store=SQLAlchemyPersonalizationStore(session_factory),
        oracle=oracle or get_voice_oracle(settings=cfg),
        config=config,
    )
    logger.info(f"Personalization engine ready (oracle={type(engine.oracle).__name__})")
    return engine
