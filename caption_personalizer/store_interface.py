"""
Abstract Store Interface for the Caption Personalizer engine.

Defines the contract that all persistence implementations must follow.
The engine only ever talks to this narrow interface, so the storage engine
(PostgreSQL, SQLite, a remote service) stays an external collaborator.

Ordering contract: every history getter returns the most recent rows first.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models import (
    CaptionHistoryEntry,
    ContentAnalysisRecord,
    FeedbackRecord,
    RecentPost,
    TrainingSessionRecord,
    UserPreferenceProfile,
    VoiceProfile,
)


class PersonalizationStore(ABC):
    """
    Abstract base class for personalization data access.

    Implementations raise `StoreError` for every persistence failure;
    the engine never catches it.
    """

    # =============================================================================
    # VOICE PROFILE OPERATIONS
    # =============================================================================

    @abstractmethod
    async def get_voice_profile(self, user_id: str) -> Optional[VoiceProfile]:
        """
        Get the active voice profile of a user.

        Args:
            user_id: User ID

        Returns:
            VoiceProfile or None if the user has none yet
        """
        pass

    @abstractmethod
    async def upsert_voice_profile(
        self,
        user_id: str,
        vector: Dict[str, float],
        profile_name: Optional[str] = None
    ) -> VoiceProfile:
        """
        Create or replace the active voice profile of a user.

        Args:
            user_id: User ID
            vector: All 8 dimensions, already clamped to [0, 1]
            profile_name: Optional display name

        Returns:
            The stored profile
        """
        pass

    # =============================================================================
    # HISTORY OPERATIONS (append-only)
    # =============================================================================

    @abstractmethod
    async def append_content_analysis(
        self,
        user_id: str,
        record: ContentAnalysisRecord
    ) -> ContentAnalysisRecord:
        """Append one content analysis observation."""
        pass

    @abstractmethod
    async def append_feedback(self, user_id: str, record: FeedbackRecord) -> FeedbackRecord:
        """Append one feedback record."""
        pass

    @abstractmethod
    async def append_training_session(
        self,
        user_id: str,
        record: TrainingSessionRecord
    ) -> TrainingSessionRecord:
        """Append one refinement audit record."""
        pass

    @abstractmethod
    async def get_content_analysis_history(
        self,
        user_id: str,
        limit: int
    ) -> List[ContentAnalysisRecord]:
        """
        Get the most recent content analysis records.

        Args:
            user_id: User ID
            limit: Maximum number of records

        Returns:
            Records, newest first
        """
        pass

    @abstractmethod
    async def get_feedback_history(self, user_id: str, limit: int) -> List[FeedbackRecord]:
        """Get the most recent feedback records, newest first."""
        pass

    # =============================================================================
    # PREFERENCE OPERATIONS
    # =============================================================================

    @abstractmethod
    async def get_user_preferences(self, user_id: str) -> Optional[UserPreferenceProfile]:
        """
        Get the stored preference snapshot.

        Returns:
            UserPreferenceProfile or None if nothing was learned yet
        """
        pass

    @abstractmethod
    async def upsert_user_preferences(
        self,
        user_id: str,
        snapshot: UserPreferenceProfile
    ) -> UserPreferenceProfile:
        """Create or replace the preference snapshot of a user."""
        pass

    # =============================================================================
    # POST & CAPTION HISTORY OPERATIONS
    # =============================================================================

    @abstractmethod
    async def get_recent_posts(self, user_id: str, limit: int) -> List[RecentPost]:
        """Get the user's most recent saved posts, newest first."""
        pass

    @abstractmethod
    async def save_post(
        self,
        user_id: str,
        caption: str,
        language: Optional[str] = None
    ) -> RecentPost:
        """Save a post (caption plus optional language tag)."""
        pass

    @abstractmethod
    async def append_caption_history(
        self,
        user_id: str,
        generated_caption: Optional[str],
        final_caption: Optional[str],
        feedback_score: Optional[int] = None
    ) -> CaptionHistoryEntry:
        """Record a generated caption next to the text the user finalized."""
        pass

    @abstractmethod
    async def get_caption_history(self, user_id: str, limit: int = 50) -> List[CaptionHistoryEntry]:
        """Get the most recent caption history entries, newest first."""
        pass


__all__ = ["PersonalizationStore"]
