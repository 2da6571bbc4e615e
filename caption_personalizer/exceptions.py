"""
Custom Exceptions for the Caption Personalizer engine.

Provides specific exception types for the failure modes of the engine's two
collaborators (the persistence store and the voice oracle), plus
configuration problems.
"""


class PersonalizationError(Exception):
    """Base exception for all personalization engine errors."""
    pass


# =============================================================================
# Oracle Exceptions
# =============================================================================

class OracleError(PersonalizationError):
    """Raised when the voice oracle fails (timeout, auth, quota, safety rejection)."""

    def __init__(self, operation: str, reason: str = None):
        self.operation = operation
        self.reason = reason
        msg = f"Voice oracle failed during {operation}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class OracleRateLimitError(OracleError):
    """Raised when the oracle backend rejects the call for quota reasons."""

    def __init__(self, operation: str, retry_after: int = None):
        self.retry_after = retry_after
        reason = "rate limit exceeded"
        if retry_after:
            reason += f", retry after {retry_after} seconds"
        super().__init__(operation, reason)


# =============================================================================
# Store Exceptions
# =============================================================================

class StoreError(PersonalizationError):
    """Raised when the persistence layer is unreachable or rejects a write."""

    def __init__(self, operation: str, reason: str = None):
        self.operation = operation
        self.reason = reason
        msg = f"Personalization store failed during {operation}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class VoiceProfileNotFoundError(PersonalizationError):
    """Raised when an operation needs a stored voice profile and none exists."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No voice profile found for user {user_id}")


# =============================================================================
# Configuration Exceptions
# =============================================================================

class ConfigurationError(PersonalizationError):
    """Raised when there's a configuration problem."""

    def __init__(self, setting: str, reason: str = None):
        self.setting = setting
        self.reason = reason
        msg = f"Configuration error: {setting}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class MissingAPIKeyError(ConfigurationError):
    """Raised when a required API key is missing."""

    def __init__(self, key_name: str):
        self.key_name = key_name
        super().__init__(key_name, "API key not configured")
