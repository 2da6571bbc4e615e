"""
Voice model: the 8-dimensional voice vector of a user.

Scores how consistent a piece of content is with the stored profile, turns
large per-dimension deviations into suggestions, and periodically refines the
profile from accumulated analysis history and feedback via the voice oracle.
"""

import logging
import time
from typing import Dict, List, Mapping, Optional

from .config import EngineConfig
from .constants import (
    DIMENSION_LABELS,
    NEUTRAL_DIMENSION_VALUE,
    TRAINING_TYPE_FEEDBACK,
    VOICE_DIMENSIONS,
)
from .exceptions import OracleError
from .models import (
    ContentAnalysisRecord,
    TrainingSessionRecord,
    VoiceProfile,
    VoiceRecommendation,
    VoiceVector,
)
from .oracle import VoiceOracle
from .store_interface import PersonalizationStore
from .utils import clamp, round_half_up

logger = logging.getLogger(__name__)

# Deltas are compared at this precision so 0.8 - 0.5 equals 0.3 exactly
_DELTA_PRECISION = 6

# dimension -> (above 0.7, above 0.6, below 0.3, otherwise, suffix)
_DESCRIPTIONS = {
    "formality": ("highly formal", "formal", "very casual", "casual", " language"),
    "humor": ("very humorous and playful", "humorous", "serious and straightforward", "slightly humorous", " tone"),
    "enthusiasm": ("very enthusiastic and energetic", "enthusiastic", "calm and measured", "moderately enthusiastic", ""),
    "professionalism": ("highly professional", "professional", "personal and relatable", "balanced professional", " approach"),
    "creativity": ("very creative and imaginative", "creative", "straightforward and practical", "slightly creative", " expression"),
    "emotional_tone": ("very emotional and expressive", "emotional", "rational and logical", "balanced emotional", " delivery"),
    "confidence": ("very confident and assertive", "confident", "tentative and exploratory", "moderately confident", " voice"),
    "warmth": ("very warm and friendly", "warm", "neutral and objective", "slightly warm", " demeanor"),
}

# dimension -> (above 0.6, below 0.4)
_REQUIREMENTS = {
    "formality": ("use proper grammar and avoid slang", "use casual language and conversational tone"),
    "humor": ("include witty remarks or playful elements", "maintain a serious and straightforward approach"),
    "enthusiasm": ("show excitement and use energetic language", "keep tone calm and measured"),
    "creativity": ("be imaginative and use creative expressions", "focus on clear, practical communication"),
}


class VoiceModel:
    """Owns the per-user voice vector."""

    def __init__(self, store: PersonalizationStore, oracle: VoiceOracle, config: EngineConfig):
        self.store = store
        self.oracle = oracle
        self.config = config

    # =============================================================================
    # Profile
    # =============================================================================

    async def upsert_profile(
        self,
        user_id: str,
        partial_vector: Mapping[str, float],
        profile_name: Optional[str] = None
    ) -> VoiceProfile:
        """
        Create or update the voice profile of a user.

        Supplied dimensions are clamped to [0, 1]. Missing dimensions are 0.5
        on first creation and keep their stored value on update. Keys that are
        not voice dimensions are ignored.

        Args:
            user_id: User ID
            partial_vector: Any subset of the 8 dimensions
            profile_name: Optional display name

        Returns:
            The stored profile
        """
        existing = await self.store.get_voice_profile(user_id)
        base = existing.dimensions() if existing else VoiceVector().dimensions()

        vector = {
            dim: clamp(partial_vector[dim]) if partial_vector.get(dim) is not None else base[dim]
            for dim in VOICE_DIMENSIONS
        }

        profile = await self.store.upsert_voice_profile(user_id, vector, profile_name)
        logger.info(f"Voice profile {'updated' if existing else 'created'} for user {user_id}")
        return profile

    # =============================================================================
    # Scoring
    # =============================================================================

    @staticmethod
    def compute_consistency(profile: VoiceVector, analyzed: VoiceVector) -> float:
        """
        Score how well analyzed content matches a profile.

        Mean of max(0, 1 - |p - a|) over the 8 dimensions, rounded to 2 places.
        """
        total = sum(
            max(0.0, 1.0 - abs(getattr(profile, dim) - getattr(analyzed, dim)))
            for dim in VOICE_DIMENSIONS
        )
        return round_half_up(total / len(VOICE_DIMENSIONS), 2)

    def recommend(
        self,
        profile: VoiceVector,
        analyzed: VoiceVector,
        threshold: Optional[float] = None
    ) -> List[VoiceRecommendation]:
        """
        Suggest changes for every dimension whose deviation exceeds the threshold.

        The threshold is exclusive. Entries follow the fixed dimension order.
        """
        if threshold is None:
            threshold = self.config.recommendation_threshold

        recommendations = []
        for dim in VOICE_DIMENSIONS:
            profile_value = getattr(profile, dim)
            analyzed_value = getattr(analyzed, dim)
            difference = round(abs(profile_value - analyzed_value), _DELTA_PRECISION)
            if difference <= threshold:
                continue

            label, adjective = DIMENSION_LABELS[dim]
            direction = "more" if analyzed_value > profile_value else "less"
            recommendations.append(VoiceRecommendation(
                dimension=dim,
                label=label,
                delta_percent=int(round_half_up(difference * 100, 0)),
                direction=direction,
                message=f"Consider making the content {direction} {adjective} to better match your brand voice",
            ))
        return recommendations

    # =============================================================================
    # Refinement
    # =============================================================================

    async def refine(self, user_id: str) -> Optional[VoiceProfile]:
        """
        Refine the profile from recent analysis history and feedback.

        No-op (no oracle call, no write) when there are fewer than
        config.refine_min_samples analysis records or no profile yet.
        Oracle failures are logged and leave the profile unchanged.
        Store failures propagate.

        Returns:
            The refined profile, or None when nothing changed
        """
        history = await self.store.get_content_analysis_history(user_id, self.config.refine_history_limit)
        feedback = await self.store.get_feedback_history(user_id, self.config.refine_feedback_limit)

        if len(history) < self.config.refine_min_samples:
            logger.info(
                f"Not enough data to refine voice for user {user_id} "
                f"({len(history)}/{self.config.refine_min_samples} samples)"
            )
            return None

        current = await self.store.get_voice_profile(user_id)
        if current is None:
            logger.info(f"No voice profile to refine for user {user_id}")
            return None

        logger.info(f"Refining voice profile for user {user_id} with {len(history)} samples")
        started = time.monotonic()

        try:
            refined = await self.oracle.refine_voice(history, feedback, current)
        except OracleError as e:
            logger.error(f"Voice refinement failed for user {user_id}: {e}")
            return None

        vector = {dim: clamp(getattr(refined, dim)) for dim in VOICE_DIMENSIONS}
        profile = await self.store.upsert_voice_profile(user_id, vector)

        await self.store.append_training_session(user_id, TrainingSessionRecord(
            user_id=user_id,
            training_type=TRAINING_TYPE_FEEDBACK,
            samples_used=len(history),
            accuracy_score=self.refinement_accuracy(current, profile),
            duration_seconds=round(time.monotonic() - started, 3),
        ))

        logger.info(f"Voice profile refined for user {user_id}: {refined.reasoning}")
        return profile

    @staticmethod
    def refinement_accuracy(old: VoiceVector, new: VoiceVector) -> float:
        """Heuristic proxy: max(0.7, 1 - summed formality/humor/enthusiasm change)."""
        changes = (
            abs(new.formality - old.formality)
            + abs(new.humor - old.humor)
            + abs(new.enthusiasm - old.enthusiasm)
        )
        return max(0.7, 1.0 - changes)

    # =============================================================================
    # Summaries & Prompt Text
    # =============================================================================

    @staticmethod
    def summarize_history(records: List[ContentAnalysisRecord]) -> Optional[Dict[str, float]]:
        """Per-dimension mean over analysis records (None for empty history)."""
        if not records:
            return None
        return {
            dim: sum(getattr(record, dim) for record in records) / len(records)
            for dim in VOICE_DIMENSIONS
        }

    @staticmethod
    def describe_profile(profile: VoiceVector) -> str:
        """Natural-language voice instructions for the generation step."""
        instructions = []
        for dim in VOICE_DIMENSIONS:
            value = getattr(profile, dim)
            if value == NEUTRAL_DIMENSION_VALUE:
                continue
            very, high, low, middle, suffix = _DESCRIPTIONS[dim]
            if value > 0.7:
                level = very
            elif value > 0.6:
                level = high
            elif value < 0.3:
                level = low
            else:
                level = middle
            instructions.append(level + suffix)

        if instructions:
            return f"Adopt a brand voice that is: {', '.join(instructions)}."
        return "Adopt a balanced and authentic brand voice."

    @staticmethod
    def voice_requirements(profile: VoiceVector) -> List[str]:
        """Short imperative writing requirements derived from the strongest dimensions."""
        requirements = []
        for dim, (high, low) in _REQUIREMENTS.items():
            value = getattr(profile, dim)
            if value > 0.6:
                requirements.append(high)
            elif value < 0.4:
                requirements.append(low)
        return requirements
