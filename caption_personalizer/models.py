"""Data models and schemas for the Caption Personalizer engine."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import (
    DEFAULT_EMOJI_LEVEL,
    DEFAULT_PROFILE_NAME,
    LANGUAGE_MODE_SINGLE,
    LENGTH_MEDIUM,
    MAX_EMOJI_LEVEL,
    NEUTRAL_DIMENSION_VALUE,
    TONE_CASUAL,
    VOICE_DIMENSIONS,
)


# =============================================================================
# Enums for validated parameters
# =============================================================================

class ContentType(str, Enum):
    """Kinds of content a voice analysis can be taken from."""
    CAPTION = "caption"
    HASHTAG = "hashtag"
    REWRITTEN_CAPTION = "rewritten_caption"


class FeedbackType(str, Enum):
    """User verdict on a generated piece of content."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


# =============================================================================
# Voice Models
# =============================================================================

class VoiceVector(BaseModel):
    """The 8 stylistic dimensions, each in [0, 1] (0.5 is neutral)."""
    formality: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)
    humor: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)
    enthusiasm: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)
    professionalism: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)
    creativity: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)
    emotional_tone: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)
    confidence: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)
    warmth: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)

    def dimensions(self) -> Dict[str, float]:
        """Return the 8 dimensions in their fixed order."""
        return {name: getattr(self, name) for name in VOICE_DIMENSIONS}


class VoiceProfile(VoiceVector):
    """The active voice profile of a user (one per user)."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    profile_name: str = DEFAULT_PROFILE_NAME
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OracleVoiceAnalysis(VoiceVector):
    """Voice vector scored by the oracle for one piece of text."""
    confidence_score: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)


class OracleVoiceRefinement(VoiceVector):
    """Refined voice vector proposed by the oracle."""
    reasoning: str = "Profile refined based on analysis and feedback."


class ContentAnalysisRecord(VoiceVector):
    """Append-only observation of a user's content, used as training input."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    content_type: ContentType = ContentType.CAPTION
    content_text: str
    analysis_confidence: float = Field(default=NEUTRAL_DIMENSION_VALUE, ge=0.0, le=1.0)
    created_at: Optional[datetime] = None


class FeedbackRecord(BaseModel):
    """Append-only user feedback on generated content."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    content_type: ContentType
    feedback_type: FeedbackType
    generated_content_id: Optional[str] = None
    feedback_comment: Optional[str] = None
    expected_formality: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    expected_humor: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    expected_enthusiasm: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    expected_professionalism: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    expected_creativity: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    expected_emotional_tone: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    expected_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    expected_warmth: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    created_at: Optional[datetime] = None


class TrainingSessionRecord(BaseModel):
    """Audit record of one refinement run."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    training_type: str
    samples_used: int
    accuracy_score: float = Field(ge=0.0, le=1.0)
    duration_seconds: float = 0.0
    created_at: Optional[datetime] = None


class VoiceRecommendation(BaseModel):
    """Suggestion for one dimension that drifted away from the profile."""
    dimension: str
    label: str
    delta_percent: int
    direction: str  # "more" | "less"
    message: str


# =============================================================================
# Preference Models
# =============================================================================

class CaptionStructure(BaseModel):
    """Structural habits detected in a finalized caption."""
    ends_with_emoji: bool = False
    starts_with_quote: bool = False
    contains_line_breaks: bool = False
    first_sentence_length: int = 0


class UserPreferenceProfile(BaseModel):
    """Running per-user preference snapshot (one per user)."""
    model_config = ConfigDict(from_attributes=True)

    preferred_tone: str = TONE_CASUAL
    emoji_level: float = Field(default=DEFAULT_EMOJI_LEVEL, ge=0, le=MAX_EMOJI_LEVEL)
    common_phrases: List[str] = Field(default_factory=list)
    disliked_phrases: List[str] = Field(default_factory=list)
    caption_length_preference: str = LENGTH_MEDIUM
    language_preference: Optional[str] = None
    caption_structure: CaptionStructure = Field(default_factory=CaptionStructure)
    last_updated: Optional[datetime] = None


# =============================================================================
# Language Models
# =============================================================================

class LanguageRequest(BaseModel):
    """Inputs for a language recommendation."""
    user_id: Optional[str] = None
    caption_text: Optional[str] = None
    preferred_language: Optional[str] = None
    image_language_hint: Optional[str] = None
    fallback_language: Optional[str] = None


class LanguageRecommendation(BaseModel):
    """Which language(s) the generation step should target. Never persisted."""
    mode: str = LANGUAGE_MODE_SINGLE
    primary: str
    secondary: Optional[str] = None
    reason: str
    sources: List[str] = Field(default_factory=list)


class LanguageDirective(BaseModel):
    """Language recommendation plus the prompt text derived from it."""
    recommendation: LanguageRecommendation
    primary_label: str
    secondary_label: Optional[str] = None
    text: str


# =============================================================================
# Store Rows
# =============================================================================

class RecentPost(BaseModel):
    """A saved post as returned by the store's post history."""
    model_config = ConfigDict(from_attributes=True)

    caption: Optional[str] = None
    language: Optional[str] = None
    created_at: Optional[datetime] = None


class CaptionHistoryEntry(BaseModel):
    """Generated vs. finalized caption pair."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    user_id: str
    generated_caption: Optional[str] = None
    final_caption: Optional[str] = None
    feedback_score: Optional[int] = Field(default=None, ge=0, le=5)
    generated_at: Optional[datetime] = None


# =============================================================================
# Directives for the generation step
# =============================================================================

class StyleDirective(BaseModel):
    """Everything the generation step needs to write in the user's voice."""
    profile: VoiceProfile
    preferences: UserPreferenceProfile
    profile_is_default: bool = False
    consistency_score: Optional[float] = None
    recommendations: Optional[List[VoiceRecommendation]] = None
    prompt_text: str = ""


class ConsistencyReport(BaseModel):
    """Result of validating a text against the stored voice profile."""
    score: float
    profile: VoiceProfile
    analysis: OracleVoiceAnalysis
    recommendations: List[VoiceRecommendation] = Field(default_factory=list)


class ContentInsights(BaseModel):
    """History overview for a user."""
    analysis_history: List[ContentAnalysisRecord] = Field(default_factory=list)
    feedback_history: List[FeedbackRecord] = Field(default_factory=list)
    voice_summary: Optional[Dict[str, float]] = None


class HashtagScreening(BaseModel):
    """Classification of one hashtag against the reference lists."""
    hashtag: str
    category: str  # banned | overused | ok
    reason: str
