"""
Tests for the voice model.

Covers consistency scoring, recommendations, profile upserts and the
refinement procedure (guards, oracle failures, store failures).
"""

from types import SimpleNamespace

import pytest
from unittest.mock import AsyncMock

from caption_personalizer.constants import VOICE_DIMENSIONS
from caption_personalizer.exceptions import OracleError, StoreError
from caption_personalizer.models import (
    ContentAnalysisRecord,
    OracleVoiceRefinement,
    TrainingSessionRecord,
    VoiceProfile,
    VoiceVector,
)
from caption_personalizer.oracle import MockVoiceOracle, VoiceOracle
from caption_personalizer.voice_model import VoiceModel, clamp


def make_history(count, user_id="u1", **values):
    return [
        ContentAnalysisRecord(user_id=user_id, content_text=f"caption number {i}", **values)
        for i in range(count)
    ]


# =============================================================================
# Consistency Scoring
# =============================================================================

class TestComputeConsistency:
    """Test consistency score between a profile and analyzed content."""

    def test_identical_vectors_score_one(self):
        profile = VoiceVector(formality=0.9, humor=0.1, warmth=0.7)
        assert VoiceModel.compute_consistency(profile, profile) == 1.0

    def test_single_dimension_deviation(self):
        profile = VoiceVector(formality=0.8)
        analyzed = VoiceVector()
        assert VoiceModel.compute_consistency(profile, analyzed) == 0.96

    def test_opposite_vectors_score_zero(self):
        ones = VoiceVector(**{dim: 1.0 for dim in VOICE_DIMENSIONS})
        zeros = VoiceVector(**{dim: 0.0 for dim in VOICE_DIMENSIONS})
        assert VoiceModel.compute_consistency(ones, zeros) == 0.0

    def test_score_is_bounded_and_rounded(self):
        profile = VoiceVector(formality=0.33, humor=0.91, creativity=0.12)
        analyzed = VoiceVector(formality=0.71, humor=0.05, confidence=0.99)
        score = VoiceModel.compute_consistency(profile, analyzed)
        assert 0.0 <= score <= 1.0
        assert score == round(score, 2)

    def test_halves_round_up(self):
        analyzed = VoiceVector(**{dim: 0.875 for dim in VOICE_DIMENSIONS})
        # every dimension scores 0.625
        assert VoiceModel.compute_consistency(VoiceVector(), analyzed) == 0.63


# =============================================================================
# Recommendations
# =============================================================================

class TestRecommend:
    """Test recommendations for drifting dimensions."""

    def test_boundary_delta_is_not_reported(self, mock_store, config):
        model = VoiceModel(mock_store, MockVoiceOracle(), config)
        profile = VoiceVector(formality=0.8)
        assert model.recommend(profile, VoiceVector(), 0.3) == []

    def test_large_drop_recommends_less(self, mock_store, config):
        model = VoiceModel(mock_store, MockVoiceOracle(), config)
        profile = VoiceVector(formality=0.8)
        analyzed = VoiceVector(formality=0.1)

        recommendations = model.recommend(profile, analyzed, 0.3)

        assert len(recommendations) == 1
        rec = recommendations[0]
        assert rec.dimension == "formality"
        assert rec.direction == "less"
        assert rec.delta_percent == 70
        assert rec.message == "Consider making the content less formal to better match your brand voice"

    def test_entries_follow_dimension_order(self, mock_store, config):
        model = VoiceModel(mock_store, MockVoiceOracle(), config)
        profile = VoiceVector(warmth=0.0, humor=0.0, formality=0.0)
        analyzed = VoiceVector(warmth=1.0, humor=1.0, formality=1.0)

        recommendations = model.recommend(profile, analyzed)

        assert [r.dimension for r in recommendations] == ["formality", "humor", "warmth"]
        assert all(r.direction == "more" for r in recommendations)

    def test_threshold_defaults_to_config(self, mock_store, config):
        model = VoiceModel(mock_store, MockVoiceOracle(), config)
        profile = VoiceVector(humor=0.9)
        analyzed = VoiceVector(humor=0.55)
        # 0.35 > 0.3 (config default)
        assert [r.dimension for r in model.recommend(profile, analyzed)] == ["humor"]
        assert model.recommend(profile, analyzed, threshold=0.4) == []

    def test_delta_percent_rounds_half_up(self, mock_store, config):
        model = VoiceModel(mock_store, MockVoiceOracle(), config)

        recommendations = model.recommend(VoiceVector(formality=0.0), VoiceVector(formality=0.625))

        assert recommendations[0].delta_percent == 63


# =============================================================================
# Profile Upserts
# =============================================================================

class TestUpsertProfile:
    """Test creating and updating voice profiles."""

    @pytest.mark.asyncio
    async def test_first_creation_fills_neutral_and_clamps(self, mock_store, config):
        mock_store.upsert_voice_profile.return_value = VoiceProfile(user_id="u1")
        model = VoiceModel(mock_store, MockVoiceOracle(), config)

        await model.upsert_profile("u1", {"formality": 1.4, "humor": -0.2, "unknown": 3})

        user_id, vector, name = mock_store.upsert_voice_profile.call_args.args
        assert user_id == "u1"
        assert name is None
        assert vector["formality"] == 1.0
        assert vector["humor"] == 0.0
        assert vector["warmth"] == 0.5
        assert set(vector) == set(VOICE_DIMENSIONS)

    @pytest.mark.asyncio
    async def test_update_retains_missing_dimensions(self, mock_store, config):
        mock_store.get_voice_profile.return_value = VoiceProfile(user_id="u1", formality=0.9, warmth=0.2)
        mock_store.upsert_voice_profile.return_value = VoiceProfile(user_id="u1")
        model = VoiceModel(mock_store, MockVoiceOracle(), config)

        await model.upsert_profile("u1", {"humor": 0.25}, profile_name="Brand")

        _, vector, name = mock_store.upsert_voice_profile.call_args.args
        assert vector["formality"] == 0.9
        assert vector["warmth"] == 0.2
        assert vector["humor"] == 0.25
        assert name == "Brand"

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, mock_store, config):
        mock_store.upsert_voice_profile.side_effect = StoreError("upsert_voice_profile", "disk full")
        model = VoiceModel(mock_store, MockVoiceOracle(), config)

        with pytest.raises(StoreError):
            await model.upsert_profile("u1", {"humor": 0.2})

    def test_clamp(self):
        assert clamp(-1) == 0.0
        assert clamp(2) == 1.0
        assert clamp(0.42) == 0.42


# =============================================================================
# Refinement
# =============================================================================

class TestRefine:
    """Test feedback-driven refinement."""

    @pytest.mark.asyncio
    async def test_insufficient_history_is_noop(self, mock_store, config):
        mock_store.get_content_analysis_history.return_value = make_history(4)
        mock_store.get_voice_profile.return_value = VoiceProfile(user_id="u1")
        oracle = MockVoiceOracle()
        model = VoiceModel(mock_store, oracle, config)

        assert await model.refine("u1") is None

        assert oracle.refine_calls == 0
        mock_store.upsert_voice_profile.assert_not_awaited()
        mock_store.append_training_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reads_configured_history_limits(self, mock_store, config):
        model = VoiceModel(mock_store, MockVoiceOracle(), config)

        await model.refine("u1")

        mock_store.get_content_analysis_history.assert_awaited_once_with("u1", 20)
        mock_store.get_feedback_history.assert_awaited_once_with("u1", 10)

    @pytest.mark.asyncio
    async def test_missing_profile_is_noop(self, mock_store, config):
        mock_store.get_content_analysis_history.return_value = make_history(6)
        oracle = MockVoiceOracle()
        model = VoiceModel(mock_store, oracle, config)

        assert await model.refine("u1") is None
        assert oracle.refine_calls == 0
        mock_store.upsert_voice_profile.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refine_upserts_then_records_training(self, mock_store, config):
        current = VoiceProfile(user_id="u1")
        refined = VoiceProfile(user_id="u1", formality=0.6)
        mock_store.get_content_analysis_history.return_value = make_history(6)
        mock_store.get_voice_profile.return_value = current
        mock_store.upsert_voice_profile.return_value = refined
        oracle = MockVoiceOracle(refinement=OracleVoiceRefinement(formality=0.6, reasoning="More formal"))
        model = VoiceModel(mock_store, oracle, config)

        result = await model.refine("u1")

        assert result == refined
        _, vector = mock_store.upsert_voice_profile.call_args.args
        assert vector["formality"] == 0.6

        user_id, record = mock_store.append_training_session.call_args.args
        assert user_id == "u1"
        assert isinstance(record, TrainingSessionRecord)
        assert record.training_type == "feedback_based"
        assert record.samples_used == 6
        assert record.accuracy_score == pytest.approx(0.9)
        assert record.duration_seconds >= 0

    @pytest.mark.asyncio
    async def test_refined_values_are_clamped(self, mock_store, config):
        mock_store.get_content_analysis_history.return_value = make_history(5)
        mock_store.get_voice_profile.return_value = VoiceProfile(user_id="u1")
        mock_store.upsert_voice_profile.return_value = VoiceProfile(user_id="u1")
        oracle = AsyncMock(spec=VoiceOracle)
        raw = {dim: 0.5 for dim in VOICE_DIMENSIONS}
        raw.update(formality=1.7, humor=-0.3)
        oracle.refine_voice.return_value = SimpleNamespace(reasoning="out of range", **raw)
        model = VoiceModel(mock_store, oracle, config)

        await model.refine("u1")

        _, vector = mock_store.upsert_voice_profile.call_args.args
        assert vector["formality"] == 1.0
        assert vector["humor"] == 0.0

    @pytest.mark.asyncio
    async def test_oracle_failure_leaves_profile_unchanged(self, mock_store, config):
        mock_store.get_content_analysis_history.return_value = make_history(8)
        mock_store.get_voice_profile.return_value = VoiceProfile(user_id="u1")
        oracle = AsyncMock(spec=VoiceOracle)
        oracle.refine_voice.side_effect = OracleError("refine_voice", "timeout")
        model = VoiceModel(mock_store, oracle, config)

        assert await model.refine("u1") is None

        mock_store.upsert_voice_profile.assert_not_awaited()
        mock_store.append_training_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, mock_store, config):
        mock_store.get_content_analysis_history.side_effect = StoreError("get_content_analysis_history")
        model = VoiceModel(mock_store, MockVoiceOracle(), config)

        with pytest.raises(StoreError):
            await model.refine("u1")

    @pytest.mark.asyncio
    async def test_repeated_refine_is_stable(self, sql_store, config):
        await sql_store.upsert_voice_profile("u1", VoiceVector().dimensions())
        for record in make_history(6, formality=0.8, warmth=0.3):
            await sql_store.append_content_analysis("u1", record)
        model = VoiceModel(sql_store, MockVoiceOracle(), config)

        first = await model.refine("u1")
        second = await model.refine("u1")

        assert first.dimensions() == second.dimensions()
        assert second.formality == pytest.approx(0.8)
        assert second.warmth == pytest.approx(0.3)

    def test_refinement_accuracy_floor(self):
        old = VoiceVector()
        new = VoiceVector(formality=1.0, humor=0.0, enthusiasm=1.0)
        assert VoiceModel.refinement_accuracy(old, new) == 0.7


# =============================================================================
# Summaries & Prompt Text
# =============================================================================

class TestDescriptions:
    """Test history summaries and voice instructions."""

    def test_summarize_empty_history(self):
        assert VoiceModel.summarize_history([]) is None

    def test_summarize_history_means(self):
        records = make_history(1, humor=0.2) + make_history(1, humor=0.6)
        summary = VoiceModel.summarize_history(records)
        assert summary["humor"] == pytest.approx(0.4)
        assert summary["formality"] == pytest.approx(0.5)

    def test_neutral_profile_description(self):
        assert VoiceModel.describe_profile(VoiceVector()) == "Adopt a balanced and authentic brand voice."

    def test_description_levels(self):
        profile = VoiceVector(formality=0.75, humor=0.2, warmth=0.65, confidence=0.45)
        text = VoiceModel.describe_profile(profile)
        assert text == (
            "Adopt a brand voice that is: highly formal language, serious and straightforward tone, "
            "moderately confident voice, warm demeanor."
        )

    def test_voice_requirements(self):
        profile = VoiceVector(formality=0.3, enthusiasm=0.7, professionalism=0.9)
        assert VoiceModel.voice_requirements(profile) == [
            "use casual language and conversational tone",
            "show excitement and use energetic language",
        ]
