"""Adaptive personalization engine for caption generation.

Learns a user's voice, writing habits and audience languages and turns them
into directives for the caption generation step.
"""

from .engine import PersonalizationEngine, build_engine
from .exceptions import (
    OracleError,
    PersonalizationError,
    StoreError,
    VoiceProfileNotFoundError,
)

__all__ = [
    "PersonalizationEngine",
    "build_engine",
    "PersonalizationError",
    "OracleError",
    "StoreError",
    "VoiceProfileNotFoundError",
]
