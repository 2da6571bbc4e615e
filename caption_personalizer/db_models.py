"""
SQLAlchemy database models.

Maps the personalization records to relational tables.
Separate from Pydantic models (models.py) which the engine works with.
"""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class DBVoiceProfile(Base):
    """Active voice profile per user (upsert target)."""
    __tablename__ = "voice_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    profile_name = Column(String(255), nullable=False, default="Default Profile")

    formality = Column(Float, nullable=False, default=0.5)
    humor = Column(Float, nullable=False, default=0.5)
    enthusiasm = Column(Float, nullable=False, default=0.5)
    professionalism = Column(Float, nullable=False, default=0.5)
    creativity = Column(Float, nullable=False, default=0.5)
    emotional_tone = Column(Float, nullable=False, default=0.5)
    confidence = Column(Float, nullable=False, default=0.5)
    warmth = Column(Float, nullable=False, default=0.5)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<DBVoiceProfile(user_id='{self.user_id}', name='{self.profile_name}')>"


class DBContentAnalysis(Base):
    """Append-only voice analysis of user content (training input)."""
    __tablename__ = "content_analysis"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    content_type = Column(String(50), nullable=False)  # caption, hashtag, rewritten_caption
    content_text = Column(Text, nullable=False)

    analyzed_formality = Column(Float, nullable=False, default=0.5)
    analyzed_humor = Column(Float, nullable=False, default=0.5)
    analyzed_enthusiasm = Column(Float, nullable=False, default=0.5)
    analyzed_professionalism = Column(Float, nullable=False, default=0.5)
    analyzed_creativity = Column(Float, nullable=False, default=0.5)
    analyzed_emotional_tone = Column(Float, nullable=False, default=0.5)
    analyzed_confidence = Column(Float, nullable=False, default=0.5)
    analyzed_warmth = Column(Float, nullable=False, default=0.5)
    analysis_confidence = Column(Float, nullable=False, default=0.5)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_analysis_user_created', 'user_id', 'created_at'),
    )


class DBVoiceFeedback(Base):
    """Append-only user feedback on generated content."""
    __tablename__ = "voice_feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    generated_content_id = Column(String(64), nullable=True)
    content_type = Column(String(50), nullable=False)
    feedback_type = Column(String(20), nullable=False)  # positive, negative, neutral
    feedback_comment = Column(Text, nullable=True)

    expected_formality = Column(Float, nullable=True)
    expected_humor = Column(Float, nullable=True)
    expected_enthusiasm = Column(Float, nullable=True)
    expected_professionalism = Column(Float, nullable=True)
    expected_creativity = Column(Float, nullable=True)
    expected_emotional_tone = Column(Float, nullable=True)
    expected_confidence = Column(Float, nullable=True)
    expected_warmth = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_feedback_user_created', 'user_id', 'created_at'),
    )


class DBTrainingSession(Base):
    """Audit trail of voice profile refinements."""
    __tablename__ = "training_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    training_type = Column(String(50), nullable=False)
    samples_used = Column(Integer, nullable=False, default=0)
    accuracy_score = Column(Float, nullable=False)
    duration_seconds = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class DBUserPreferences(Base):
    """Learned preference snapshot, one row per user."""
    __tablename__ = "user_preferences"

    user_id = Column(String(64), primary_key=True)
    preferred_tone = Column(String(50), nullable=True)
    emoji_level = Column(Float, nullable=False, default=2)
    common_phrases = Column(JSON, nullable=False, default=list)
    disliked_phrases = Column(JSON, nullable=False, default=list)
    caption_length_preference = Column(String(20), nullable=True)
    language_preference = Column(String(10), nullable=True)
    caption_structure = Column(JSON, nullable=True)
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class DBSavedPost(Base):
    """Posts the user saved; the language advisor reads their captions."""
    __tablename__ = "saved_posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    caption = Column(Text, nullable=True)
    language = Column(String(10), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_posts_user_created', 'user_id', 'created_at'),
    )


class DBCaptionHistory(Base):
    """Generated caption next to the caption the user finalized."""
    __tablename__ = "caption_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    generated_caption = Column(Text, nullable=True)
    final_caption = Column(Text, nullable=True)
    feedback_score = Column(Integer, nullable=True)  # 0-5
    generated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
