"""
Abstract voice oracle interface for decoupling from specific AI vendors.

The oracle scores text on the 8 voice dimensions and proposes refined voice
vectors. The engine only ever sees VoiceOracle; OpenAI, Ollama and the mock
are interchangeable behind it.

Responses use a plain line format (one `NAME: value` per line) that every
backend can follow without JSON mode.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx
from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, OpenAIError, RateLimitError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import Settings, settings as default_settings
from .constants import NEUTRAL_DIMENSION_VALUE, VOICE_DIMENSIONS
from .exceptions import MissingAPIKeyError, OracleError, OracleRateLimitError
from .models import (
    ContentAnalysisRecord,
    FeedbackRecord,
    OracleVoiceAnalysis,
    OracleVoiceRefinement,
    VoiceProfile,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a brand voice analyst. Answer only in the requested line format."
DEFAULT_REFINEMENT_REASONING = "Profile refined based on analysis and feedback."

_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?|^-?\.\d+")


# =============================================================================
# Prompt Builders
# =============================================================================

def build_analysis_prompt(text: str, content_type: str, language: str) -> str:
    """Prompt asking for the 8 dimension scores plus a confidence score."""
    return f"""Analyze the following {content_type} content and provide a detailed assessment of its voice characteristics:

Content: "{text}"
Language: {language}

Score these voice dimensions on a scale of 0 to 1 (where 0.5 is neutral):

1. Formality (0=casual, 1=formal)
2. Humor (0=serious, 1=humorous)
3. Enthusiasm (0=neutral, 1=enthusiastic)
4. Professionalism (0=personal, 1=professional)
5. Creativity (0=straightforward, 1=creative)
6. Emotional Tone (0=rational, 1=emotional)
7. Confidence (0=tentative, 1=confident)
8. Warmth (0=cold, 1=warm)

Format your response exactly as:
FORMALITY: [0.0-1.0]
HUMOR: [0.0-1.0]
ENTHUSIASM: [0.0-1.0]
PROFESSIONALISM: [0.0-1.0]
CREATIVITY: [0.0-1.0]
EMOTIONAL_TONE: [0.0-1.0]
CONFIDENCE: [0.0-1.0]
WARMTH: [0.0-1.0]
CONFIDENCE_SCORE: [0.0-1.0]

Provide only these 9 lines with the scores."""


def build_refinement_prompt(
    history: List[ContentAnalysisRecord],
    feedback: List[FeedbackRecord],
    current_profile: VoiceProfile
) -> str:
    """Prompt asking for a refined voice vector given recent evidence."""
    parts = ["Based on the following content analysis and user feedback, refine the brand voice profile:\n"]

    if history:
        parts.append(f"CONTENT ANALYSIS ({len(history)} samples):")
        for index, record in enumerate(history, start=1):
            parts.append(f"Sample {index}: {record.content_text[:100]}...")
        parts.append("")

    if feedback:
        parts.append(f"USER FEEDBACK ({len(feedback)} items):")
        for index, item in enumerate(feedback, start=1):
            parts.append(f"Feedback {index}: {item.feedback_type.value} - {item.feedback_comment or 'No comment'}")
        parts.append("")

    parts.append("CURRENT VOICE PROFILE:")
    for dim, value in current_profile.dimensions().items():
        parts.append(f"{dim.upper()}: {value}")
    parts.append("")

    parts.append("Provide refined voice profile scores that better match the user's preferred style based on the analysis above.\n")
    parts.append("Format your response exactly as:")
    parts.extend(f"{dim.upper()}: [refined 0.0-1.0]" for dim in VOICE_DIMENSIONS)
    parts.append("REASONING: [brief explanation of changes]")
    return "\n".join(parts)


# =============================================================================
# Response Parsing
# =============================================================================

def parse_voice_scores(response_text: str, extra_keys: tuple = ()) -> Dict[str, float]:
    """
    Parse `NAME: value` lines into clamped scores.

    Every voice dimension (and every key in extra_keys) missing from the
    response, or not starting with a number, falls back to 0.5.

    Args:
        response_text: Raw oracle response
        extra_keys: Additional lower-case keys to extract (e.g. "confidence_score")

    Returns:
        Dict with every requested key present
    """
    wanted = set(VOICE_DIMENSIONS) | set(extra_keys)
    scores: Dict[str, float] = {}

    for line in (response_text or "").splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        if key not in wanted:
            continue
        match = _NUMBER_RE.match(value.strip())
        if match:
            scores[key] = max(0.0, min(1.0, float(match.group(0))))

    missing = [key for key in wanted if key not in scores]
    if missing:
        logger.warning(f"Oracle response missing or unparseable keys {sorted(missing)}, using neutral defaults")
        for key in missing:
            scores[key] = NEUTRAL_DIMENSION_VALUE

    return scores


def parse_voice_analysis(response_text: str) -> OracleVoiceAnalysis:
    """Parse an analysis response (8 dimensions + confidence score)."""
    return OracleVoiceAnalysis(**parse_voice_scores(response_text, extra_keys=("confidence_score",)))


def parse_voice_refinement(response_text: str) -> OracleVoiceRefinement:
    """Parse a refinement response (8 dimensions + reasoning)."""
    reasoning = ""
    for line in (response_text or "").splitlines():
        stripped = line.strip()
        if stripped.upper().startswith("REASONING:"):
            reasoning = stripped[len("REASONING:"):].strip()
            break
    return OracleVoiceRefinement(
        reasoning=reasoning or DEFAULT_REFINEMENT_REASONING,
        **parse_voice_scores(response_text)
    )


# =============================================================================
# Oracle Interface
# =============================================================================

class VoiceOracle(ABC):
    """Abstract base class for voice oracles."""

    @abstractmethod
    async def analyze_voice(
        self,
        text: str,
        content_type: str,
        language: str
    ) -> OracleVoiceAnalysis:
        """
        Score a piece of text on the 8 voice dimensions.

        Args:
            text: Content to analyze
            content_type: caption, hashtag, or rewritten_caption
            language: Language the content is written in

        Returns:
            OracleVoiceAnalysis with a confidence score

        Raises:
            OracleError: Transport, auth, quota or safety failure
        """
        pass

    @abstractmethod
    async def refine_voice(
        self,
        history: List[ContentAnalysisRecord],
        feedback: List[FeedbackRecord],
        current_profile: VoiceProfile
    ) -> OracleVoiceRefinement:
        """
        Propose a refined voice vector.

        Args:
            history: Recent content analysis records, newest first
            feedback: Recent feedback records, newest first
            current_profile: The user's current profile

        Returns:
            OracleVoiceRefinement (values already clamped to [0, 1])

        Raises:
            OracleError: Transport, auth, quota or safety failure
        """
        pass


class OpenAIVoiceOracle(VoiceOracle):
    """OpenAI implementation of the voice oracle."""

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        timeout: float = None
    ):
        """
        Initialize OpenAI oracle.

        Args:
            api_key: OpenAI API key (defaults to settings.openai_api_key)
            model: Chat model (defaults to settings.openai_voice_model)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or default_settings.openai_api_key
        if not self.api_key:
            raise MissingAPIKeyError("OPENAI_API_KEY")

        self.client = AsyncOpenAI(
            api_key=self.api_key,
            max_retries=0,  # tenacity owns retries
            timeout=timeout or default_settings.oracle_timeout_seconds,
        )
        self.model = model or default_settings.openai_voice_model

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((APIConnectionError, APITimeoutError, RateLimitError)),
        reraise=True
    )
    async def _call_openai(self, prompt: str, temperature: float = 0.3) -> Optional[str]:
        """Call OpenAI API with retry logic. Returns None when no choice comes back."""
        logger.info(f"Calling OpenAI voice oracle with model: {self.model}")

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=300,
        )
        if not response.choices:
            logger.warning("OpenAI returned no choices")
            return None
        content = response.choices[0].message.content
        logger.debug(f"OpenAI finish_reason: {response.choices[0].finish_reason}, content length: {len(content) if content else 0}")
        return content or ""

    async def _complete(self, operation: str, prompt: str) -> str:
        try:
            content = await self._call_openai(prompt)
        except RateLimitError as e:
            logger.error(f"OpenAI rate limit during {operation}: {e}")
            retry_after = e.response.headers.get("retry-after") if e.response is not None else None
            raise OracleRateLimitError(operation, int(retry_after) if retry_after and retry_after.isdigit() else None) from e
        except OpenAIError as e:
            logger.error(f"OpenAI call failed during {operation}: {e}")
            raise OracleError(operation, str(e)) from e

        if content is None:
            raise OracleError(operation, "empty response")
        return content

    async def analyze_voice(self, text: str, content_type: str, language: str) -> OracleVoiceAnalysis:
        """Analyze voice using OpenAI."""
        response = await self._complete("analyze_voice", build_analysis_prompt(text, content_type, language))
        return parse_voice_analysis(response)

    async def refine_voice(
        self,
        history: List[ContentAnalysisRecord],
        feedback: List[FeedbackRecord],
        current_profile: VoiceProfile
    ) -> OracleVoiceRefinement:
        """Refine a voice profile using OpenAI."""
        prompt = build_refinement_prompt(history, feedback, current_profile)
        response = await self._complete("refine_voice", prompt)
        return parse_voice_refinement(response)


class OllamaVoiceOracle(VoiceOracle):
    """
    Ollama implementation of the voice oracle for self-hosted models.

    Setup:
        1. Install Ollama: https://ollama.ai/download
        2. Pull a model: ollama pull llama3
        3. Run Ollama server: ollama serve
        4. Set OLLAMA_BASE_URL (default: http://localhost:11434)
    """

    def __init__(
        self,
        base_url: str = None,
        model: str = None,
        timeout: float = None
    ):
        self.base_url = (base_url or default_settings.ollama_base_url).rstrip("/")
        self.model = model or default_settings.ollama_voice_model
        self.timeout = timeout or default_settings.oracle_timeout_seconds

        logger.info(f"Initialized OllamaVoiceOracle with base_url={self.base_url}, model={self.model}")

    async def _call_ollama(self, operation: str, prompt: str, temperature: float = 0.3) -> str:
        """Call Ollama API with chat format."""
        url = f"{self.base_url}/api/chat"
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "options": {"temperature": temperature},
        }

        logger.info(f"Calling Ollama voice oracle model: {self.model}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()

                content = response.json().get("message", {}).get("content", "")
                logger.debug(f"Ollama response length: {len(content)} chars")
                return content

        except httpx.TimeoutException as e:
            logger.error(f"Ollama request timed out after {self.timeout}s during {operation}")
            raise OracleError(operation, "timeout") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Ollama HTTP error during {operation}: {e.response.status_code}")
            if e.response.status_code == 429:
                raise OracleRateLimitError(operation) from e
            raise OracleError(operation, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Ollama call failed during {operation}: {e}")
            raise OracleError(operation, str(e)) from e

    async def analyze_voice(self, text: str, content_type: str, language: str) -> OracleVoiceAnalysis:
        """Analyze voice using Ollama."""
        response = await self._call_ollama("analyze_voice", build_analysis_prompt(text, content_type, language))
        return parse_voice_analysis(response)

    async def refine_voice(
        self,
        history: List[ContentAnalysisRecord],
        feedback: List[FeedbackRecord],
        current_profile: VoiceProfile
    ) -> OracleVoiceRefinement:
        """Refine a voice profile using Ollama."""
        prompt = build_refinement_prompt(history, feedback, current_profile)
        response = await self._call_ollama("refine_voice", prompt)
        return parse_voice_refinement(response)


class MockVoiceOracle(VoiceOracle):
    """
    Mock voice oracle for testing.

    Deterministic: the analysis is fixed (or taken from the constructor) and
    the refinement is the per-dimension mean of the supplied history.
    """

    def __init__(
        self,
        analysis: Optional[OracleVoiceAnalysis] = None,
        refinement: Optional[OracleVoiceRefinement] = None
    ):
        self.analysis = analysis
        self.refinement = refinement
        self.analyze_calls = 0
        self.refine_calls = 0

    async def analyze_voice(self, text: str, content_type: str, language: str) -> OracleVoiceAnalysis:
        """Return the configured analysis, or a mild reading of the text."""
        self.analyze_calls += 1
        if self.analysis is not None:
            return self.analysis
        return OracleVoiceAnalysis(
            enthusiasm=0.8 if "!" in text else NEUTRAL_DIMENSION_VALUE,
            confidence_score=0.9,
        )

    async def refine_voice(
        self,
        history: List[ContentAnalysisRecord],
        feedback: List[FeedbackRecord],
        current_profile: VoiceProfile
    ) -> OracleVoiceRefinement:
        """Return the configured refinement, or the mean of the history."""
        self.refine_calls += 1
        if self.refinement is not None:
            return self.refinement
        if not history:
            return OracleVoiceRefinement(**current_profile.dimensions())
        means = {
            dim: round(sum(getattr(record, dim) for record in history) / len(history), 4)
            for dim in VOICE_DIMENSIONS
        }
        return OracleVoiceRefinement(reasoning="Mean of recent analysis", **means)


# =============================================================================
# Oracle Factory
# =============================================================================

def get_voice_oracle(provider_type: str = None, settings: Settings = None) -> VoiceOracle:
    """
    Factory function to get the configured voice oracle.

    Args:
        provider_type: Override provider type ("openai", "ollama", "mock")
                       If not specified, uses settings.oracle_provider
        settings: Settings to read backend options from (defaults to global settings)

    Returns:
        Configured VoiceOracle instance

    Raises:
        ValueError: If provider type is unknown
        MissingAPIKeyError: If OpenAI is selected without an API key
    """
    cfg = settings or default_settings
    provider = provider_type or cfg.oracle_provider

    if provider == "openai":
        return OpenAIVoiceOracle(
            api_key=cfg.openai_api_key,
            model=cfg.openai_voice_model,
            timeout=cfg.oracle_timeout_seconds,
        )
    elif provider == "ollama":
        return OllamaVoiceOracle(
            base_url=cfg.ollama_base_url,
            model=cfg.ollama_voice_model,
            timeout=cfg.oracle_timeout_seconds,
        )
    elif provider == "mock":
        return MockVoiceOracle()
    else:
        raise ValueError(f"Unknown voice oracle provider: {provider}. Supported: openai, ollama, mock")
