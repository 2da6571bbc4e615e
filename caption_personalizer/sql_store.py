"""
SQLAlchemy implementation of the personalization store.

Wraps synchronous ORM sessions behind the async store interface. Rows are
converted to pydantic models before the session closes so nothing detached
leaks out. Every SQLAlchemy failure is re-raised as StoreError.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .constants import DEFAULT_PROFILE_NAME, VOICE_DIMENSIONS
from .database import get_db_context
from .db_models import (
    DBCaptionHistory,
    DBContentAnalysis,
    DBSavedPost,
    DBTrainingSession,
    DBUserPreferences,
    DBVoiceFeedback,
    DBVoiceProfile,
)
from .exceptions import StoreError
from .models import (
    CaptionHistoryEntry,
    CaptionStructure,
    ContentAnalysisRecord,
    FeedbackRecord,
    RecentPost,
    TrainingSessionRecord,
    UserPreferenceProfile,
    VoiceProfile,
)
from .store_interface import PersonalizationStore

logger = logging.getLogger(__name__)


def _analysis_to_model(row: DBContentAnalysis) -> ContentAnalysisRecord:
    values = {dim: getattr(row, f"analyzed_{dim}") for dim in VOICE_DIMENSIONS}
    return ContentAnalysisRecord(
        user_id=row.user_id,
        content_type=row.content_type,
        content_text=row.content_text,
        analysis_confidence=row.analysis_confidence,
        created_at=row.created_at,
        **values
    )


def _preferences_to_model(row: DBUserPreferences) -> UserPreferenceProfile:
    defaults = UserPreferenceProfile()
    return UserPreferenceProfile(
        preferred_tone=row.preferred_tone or defaults.preferred_tone,
        emoji_level=row.emoji_level if row.emoji_level is not None else defaults.emoji_level,
        common_phrases=list(row.common_phrases or []),
        disliked_phrases=list(row.disliked_phrases or []),
        caption_length_preference=row.caption_length_preference or defaults.caption_length_preference,
        language_preference=row.language_preference,
        caption_structure=CaptionStructure(**(row.caption_structure or {})),
        last_updated=row.last_updated,
    )


class SQLAlchemyPersonalizationStore(PersonalizationStore):
    """Relational store backed by the tables in db_models."""

    def __init__(self, session_factory):
        """
        Args:
            session_factory: sessionmaker bound to the personalization database
                             (see database.create_session_factory)
        """
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str):
        try:
            with get_db_context(self._session_factory) as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Store operation {operation} failed: {e}")
            raise StoreError(operation, str(e)) from e

    # =============================================================================
    # Voice Profiles
    # =============================================================================

    async def get_voice_profile(self, user_id: str) -> Optional[VoiceProfile]:
        with self._session("get_voice_profile") as db:
            row = db.query(DBVoiceProfile).filter_by(
                user_id=user_id, is_active=True
            ).order_by(DBVoiceProfile.updated_at.desc()).first()
            return VoiceProfile.model_validate(row) if row else None

    async def upsert_voice_profile(
        self,
        user_id: str,
        vector: Dict[str, float],
        profile_name: Optional[str] = None
    ) -> VoiceProfile:
        with self._session("upsert_voice_profile") as db:
            row = db.query(DBVoiceProfile).filter_by(user_id=user_id).first()
            if row is None:
                row = DBVoiceProfile(user_id=user_id, profile_name=profile_name or DEFAULT_PROFILE_NAME)
                db.add(row)
            elif profile_name:
                row.profile_name = profile_name

            for dim in VOICE_DIMENSIONS:
                setattr(row, dim, vector[dim])
            row.is_active = True
            row.updated_at = datetime.utcnow()

            db.flush()
            logger.debug(f"Upserted voice profile for user={user_id}")
            return VoiceProfile.model_validate(row)

    # =============================================================================
    # Append-only History
    # =============================================================================

    async def append_content_analysis(
        self,
        user_id: str,
        record: ContentAnalysisRecord
    ) -> ContentAnalysisRecord:
        with self._session("append_content_analysis") as db:
            row = DBContentAnalysis(
                user_id=user_id,
                content_type=record.content_type.value,
                content_text=record.content_text,
                analysis_confidence=record.analysis_confidence,
                **{f"analyzed_{dim}": getattr(record, dim) for dim in VOICE_DIMENSIONS}
            )
            db.add(row)
            db.flush()
            return _analysis_to_model(row)

    async def append_feedback(self, user_id: str, record: FeedbackRecord) -> FeedbackRecord:
        with self._session("append_feedback") as db:
            payload = record.model_dump(exclude={"user_id", "created_at"})
            payload["content_type"] = record.content_type.value
            payload["feedback_type"] = record.feedback_type.value
            row = DBVoiceFeedback(user_id=user_id, **payload)
            db.add(row)
            db.flush()
            return FeedbackRecord.model_validate(row)

    async def append_training_session(
        self,
        user_id: str,
        record: TrainingSessionRecord
    ) -> TrainingSessionRecord:
        with self._session("append_training_session") as db:
            row = DBTrainingSession(
                user_id=user_id,
                training_type=record.training_type,
                samples_used=record.samples_used,
                accuracy_score=record.accuracy_score,
                duration_seconds=record.duration_seconds,
            )
            db.add(row)
            db.flush()
            return TrainingSessionRecord.model_validate(row)

    async def get_content_analysis_history(
        self,
        user_id: str,
        limit: int
    ) -> List[ContentAnalysisRecord]:
        with self._session("get_content_analysis_history") as db:
            rows = db.query(DBContentAnalysis).filter_by(user_id=user_id).order_by(
                DBContentAnalysis.created_at.desc(), DBContentAnalysis.id.desc()
            ).limit(limit).all()
            return [_analysis_to_model(row) for row in rows]

    async def get_feedback_history(self, user_id: str, limit: int) -> List[FeedbackRecord]:
        with self._session("get_feedback_history") as db:
            rows = db.query(DBVoiceFeedback).filter_by(user_id=user_id).order_by(
                DBVoiceFeedback.created_at.desc(), DBVoiceFeedback.id.desc()
            ).limit(limit).all()
            return [FeedbackRecord.model_validate(row) for row in rows]

    # =============================================================================
    # Preferences
    # =============================================================================

    async def get_user_preferences(self, user_id: str) -> Optional[UserPreferenceProfile]:
        with self._session("get_user_preferences") as db:
            row = db.get(DBUserPreferences, user_id)
            return _preferences_to_model(row) if row else None

    async def upsert_user_preferences(
        self,
        user_id: str,
        snapshot: UserPreferenceProfile
    ) -> UserPreferenceProfile:
        with self._session("upsert_user_preferences") as db:
            row = db.get(DBUserPreferences, user_id)
            if row is None:
                row = DBUserPreferences(user_id=user_id)
                db.add(row)

            row.preferred_tone = snapshot.preferred_tone
            row.emoji_level = snapshot.emoji_level
            row.common_phrases = list(snapshot.common_phrases)
            row.disliked_phrases = list(snapshot.disliked_phrases)
            row.caption_length_preference = snapshot.caption_length_preference
            row.language_preference = snapshot.language_preference
            row.caption_structure = snapshot.caption_structure.model_dump()
            row.last_updated = datetime.utcnow()

            db.flush()
            return _preferences_to_model(row)

    # =============================================================================
    # Posts & Caption History
    # =============================================================================

    async def get_recent_posts(self, user_id: str, limit: int) -> List[RecentPost]:
        with self._session("get_recent_posts") as db:
            rows = db.query(DBSavedPost).filter_by(user_id=user_id).order_by(
                DBSavedPost.created_at.desc(), DBSavedPost.id.desc()
            ).limit(limit).all()
            return [RecentPost.model_validate(row) for row in rows]

    async def save_post(
        self,
        user_id: str,
        caption: str,
        language: Optional[str] = None
    ) -> RecentPost:
        with self._session("save_post") as db:
            row = DBSavedPost(user_id=user_id, caption=caption, language=language)
            db.add(row)
            db.flush()
            return RecentPost.model_validate(row)

    async def append_caption_history(
        self,
        user_id: str,
        generated_caption: Optional[str],
        final_caption: Optional[str],
        feedback_score: Optional[int] = None
    ) -> CaptionHistoryEntry:
        with self._session("append_caption_history") as db:
            row = DBCaptionHistory(
                user_id=user_id,
                generated_caption=generated_caption,
                final_caption=final_caption,
                feedback_score=feedback_score,
            )
            db.add(row)
            db.flush()
            return CaptionHistoryEntry.model_validate(row)

    async def get_caption_history(self, user_id: str, limit: int = 50) -> List[CaptionHistoryEntry]:
        with self._session("get_caption_history") as db:
            rows = db.query(DBCaptionHistory).filter_by(user_id=user_id).order_by(
                DBCaptionHistory.generated_at.desc(), DBCaptionHistory.id.desc()
            ).limit(limit).all()
            return [CaptionHistoryEntry.model_validate(row) for row in rows]


__all__ = ["SQLAlchemyPersonalizationStore"]
