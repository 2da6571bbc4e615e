"""
Centralized Configuration for the Caption Personalizer engine.

All environment variables are managed here using Pydantic Settings.
This provides:
- Type validation
- Default values
- Clear documentation
- Single source of truth

The engine components never read `settings` directly. At startup the
application builds one immutable `EngineConfig` from the settings and passes
it into every component.

Usage:
    from caption_personalizer.config import settings, EngineConfig

    config = EngineConfig.from_settings(settings)
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Literal, Optional, Tuple

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

from .constants import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE_DATA_PATH = Path(__file__).parent / "data" / "reference_data.json"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with PERSONALIZER_ where applicable.
    """

    # =============================================================================
    # Application Environment
    # =============================================================================

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
        validation_alias="PERSONALIZER_ENVIRONMENT"
    )

    testing: bool = Field(
        default=False,
        description="Enable testing mode",
        validation_alias="TESTING"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        validation_alias="PERSONALIZER_LOG_LEVEL"
    )

    # =============================================================================
    # Database
    # =============================================================================

    database_url: str = Field(
        default="sqlite:///./caption_personalizer.db",
        description="Database connection URL (PostgreSQL or SQLite)",
        validation_alias="DATABASE_URL"
    )

    # =============================================================================
    # Voice Oracle
    # =============================================================================

    oracle_provider: Literal["openai", "ollama", "mock"] = Field(
        default="openai",
        description="Backend used to analyze and refine voice vectors",
        validation_alias="VOICE_ORACLE_PROVIDER"
    )

    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key",
        validation_alias="OPENAI_API_KEY"
    )

    openai_voice_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model for voice analysis and refinement",
        validation_alias="OPENAI_VOICE_MODEL"
    )

    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama API base URL",
        validation_alias="OLLAMA_BASE_URL"
    )

    ollama_voice_model: str = Field(
        default="llama3",
        description="Ollama model for voice analysis and refinement",
        validation_alias="OLLAMA_VOICE_MODEL"
    )

    oracle_timeout_seconds: int = Field(
        default=60,
        description="Request timeout for oracle calls in seconds",
        validation_alias="VOICE_ORACLE_TIMEOUT"
    )

    # =============================================================================
    # Voice Model
    # =============================================================================

    recommendation_threshold: float = Field(
        default=0.3,
        description="Per-dimension delta that must be exceeded to emit a recommendation",
        validation_alias="VOICE_RECOMMENDATION_THRESHOLD"
    )

    refine_min_samples: int = Field(
        default=5,
        description="Minimum analysis records required before refining a profile",
        validation_alias="VOICE_REFINE_MIN_SAMPLES"
    )

    refine_history_limit: int = Field(
        default=20,
        description="Most recent analysis records sent to the oracle on refinement",
        validation_alias="VOICE_REFINE_HISTORY_LIMIT"
    )

    refine_feedback_limit: int = Field(
        default=10,
        description="Most recent feedback records sent to the oracle on refinement",
        validation_alias="VOICE_REFINE_FEEDBACK_LIMIT"
    )

    # =============================================================================
    # Language Advisor
    # =============================================================================

    default_language: str = Field(
        default=DEFAULT_LANGUAGE,
        description="Language used when no other signal is available",
        validation_alias="PERSONALIZER_DEFAULT_LANGUAGE"
    )

    post_history_limit: int = Field(
        default=50,
        description="Recent posts used to compute the audience language distribution",
        validation_alias="LANGUAGE_POST_HISTORY_LIMIT"
    )

    audience_majority_share: float = Field(
        default=0.7,
        description="Top language share at or above which output is single-language",
        validation_alias="LANGUAGE_MAJORITY_SHARE"
    )

    audience_mixed_primary_share: float = Field(
        default=0.5,
        description="Minimum top language share for bilingual output",
        validation_alias="LANGUAGE_MIXED_PRIMARY_SHARE"
    )

    audience_mixed_secondary_share: float = Field(
        default=0.2,
        description="Minimum second language share for bilingual output",
        validation_alias="LANGUAGE_MIXED_SECONDARY_SHARE"
    )

    # =============================================================================
    # Preference Memory
    # =============================================================================

    phrase_limit: int = Field(
        default=10,
        description="Maximum entries kept in phrase lists",
        validation_alias="PREFERENCE_PHRASE_LIMIT"
    )

    reference_data_path: Optional[str] = Field(
        default=None,
        description="JSON file with banned/overused hashtag lists (defaults to bundled data)",
        validation_alias="PERSONALIZER_REFERENCE_DATA"
    )

    # =============================================================================
    # Computed Properties
    # =============================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.testing

    # =============================================================================
    # Pydantic Model Configuration
    # =============================================================================

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =============================================================================
    # Field Validators
    # =============================================================================

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Convert postgres:// to postgresql:// for SQLAlchemy compatibility."""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is uppercase and valid."""
        v = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Ensure environment is lowercase."""
        return v.lower()

    @field_validator(
        "recommendation_threshold",
        "audience_majority_share",
        "audience_mixed_primary_share",
        "audience_mixed_secondary_share",
    )
    @classmethod
    def validate_share(cls, v):
        """Thresholds and shares are fractions."""
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"Expected a value between 0 and 1, got {v}")
        return v


# =============================================================================
# Engine Configuration (immutable, built once at startup)
# =============================================================================

@dataclass(frozen=True)
class ReferenceData:
    """Hashtag reference lists loaded once from disk."""
    banned_hashtags: FrozenSet[str] = frozenset()
    overused_hashtags: FrozenSet[str] = frozenset()

    @classmethod
    def load(cls, path: Path) -> "ReferenceData":
        """
        Load reference lists from a JSON file.

        Expected keys: "bannedHashtags" / "overusedHashtags" (or snake_case).
        Entries are normalized to lowercase without a leading '#'.
        """
        try:
            with open(path, encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError("reference_data_path", f"cannot load {path}: {e}") from e

        def _normalize(key_camel: str, key_snake: str) -> FrozenSet[str]:
            items = raw.get(key_camel, raw.get(key_snake, [])) or []
            return frozenset(str(item).strip().lstrip("#").lower() for item in items if str(item).strip())

        data = cls(
            banned_hashtags=_normalize("bannedHashtags", "banned_hashtags"),
            overused_hashtags=_normalize("overusedHashtags", "overused_hashtags"),
        )
        logger.info(
            f"Loaded reference data from {path}: "
            f"{len(data.banned_hashtags)} banned, {len(data.overused_hashtags)} overused hashtags"
        )
        return data


@dataclass(frozen=True)
class EngineConfig:
    """
    Immutable configuration shared by all engine components.

    Defaults mirror the Settings defaults so components can be built
    without an environment (e.g. in tests).
    """
    recommendation_threshold: float = 0.3
    refine_min_samples: int = 5
    refine_history_limit: int = 20
    refine_feedback_limit: int = 10
    default_language: str = DEFAULT_LANGUAGE
    post_history_limit: int = 50
    audience_majority_share: float = 0.7
    audience_mixed_primary_share: float = 0.5
    audience_mixed_secondary_share: float = 0.2
    phrase_limit: int = 10
    supported_languages: Tuple[str, ...] = SUPPORTED_LANGUAGES
    reference_data: ReferenceData = field(default_factory=ReferenceData)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "EngineConfig":
        """Build the engine configuration and load reference data once."""
        path = Path(settings.reference_data_path) if settings.reference_data_path else DEFAULT_REFERENCE_DATA_PATH
        return cls(
            recommendation_threshold=settings.recommendation_threshold,
            refine_min_samples=settings.refine_min_samples,
            refine_history_limit=settings.refine_history_limit,
            refine_feedback_limit=settings.refine_feedback_limit,
            default_language=settings.default_language,
            post_history_limit=settings.post_history_limit,
            audience_majority_share=settings.audience_majority_share,
            audience_mixed_primary_share=settings.audience_mixed_primary_share,
            audience_mixed_secondary_share=settings.audience_mixed_secondary_share,
            phrase_limit=settings.phrase_limit,
            reference_data=ReferenceData.load(path),
        )


# =============================================================================
# Global Settings Instance
# =============================================================================

settings = Settings()


def get_settings() -> Settings:
    """Get settings instance (for dependency injection)."""
    return settings


def configure_logging(level: str = None) -> None:
    """Configure root logging from settings (call once from the entry point)."""
    log_level = level or settings.log_level
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO))


__all__ = [
    "settings",
    "get_settings",
    "configure_logging",
    "Settings",
    "EngineConfig",
    "ReferenceData",
]
