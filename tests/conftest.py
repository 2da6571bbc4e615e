"""
Shared test fixtures for all test modules.

Provides:
- Test environment setup (TESTING=true, mock oracle, in-memory database)
- session_factory: SQLite in-memory sessions with all tables created
- sql_store / mock_store: real and mocked personalization stores
- mock_oracle: deterministic voice oracle
"""

import os

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# =============================================================================
# Test Environment Configuration
# =============================================================================

os.environ['TESTING'] = 'true'
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['VOICE_ORACLE_PROVIDER'] = 'mock'
os.environ['OPENAI_API_KEY'] = os.environ.get('OPENAI_API_KEY', 'sk-test-key')


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def config():
    """Engine configuration with the bundled reference data."""
    from caption_personalizer.config import DEFAULT_REFERENCE_DATA_PATH, EngineConfig, ReferenceData

    return EngineConfig(reference_data=ReferenceData.load(DEFAULT_REFERENCE_DATA_PATH))


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def session_factory():
    """
    Session factory bound to a fresh in-memory SQLite database.

    StaticPool keeps a single connection so every session sees the same data.
    """
    from caption_personalizer.database import init_db

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    from caption_personalizer.sql_store import SQLAlchemyPersonalizationStore

    return SQLAlchemyPersonalizationStore(session_factory)


@pytest.fixture
def mock_store():
    """Store mock; every method is an AsyncMock. Defaults mimic an empty store."""
    from caption_personalizer.store_interface import PersonalizationStore

    store = AsyncMock(spec=PersonalizationStore)
    store.get_voice_profile.return_value = None
    store.get_user_preferences.return_value = None
    store.get_content_analysis_history.return_value = []
    store.get_feedback_history.return_value = []
    store.get_recent_posts.return_value = []
    return store


# =============================================================================
# Oracle & Detector Fixtures
# =============================================================================

@pytest.fixture
def mock_oracle():
    from caption_personalizer.oracle import MockVoiceOracle

    return MockVoiceOracle()


@pytest.fixture
def stub_detector():
    """Language detector that never recognizes anything (tests set return values)."""
    from caption_personalizer.language_advisor import LanguageDetector

    detector = MagicMock(spec=LanguageDetector)
    detector.detect.return_value = None
    return detector
