"""
Tests for preference memory.

Covers the text detectors and the merge performed by learn_from_caption.
"""

import pytest

from caption_personalizer.exceptions import StoreError
from caption_personalizer.models import CaptionStructure, UserPreferenceProfile
from caption_personalizer.preference_memory import (
    PreferenceMemory,
    detect_emoji_level,
    detect_length_bucket,
    detect_structure,
    detect_tone,
    extract_phrases,
    merge_unique_lists,
)


# =============================================================================
# Detectors
# =============================================================================

class TestExtractPhrases:
    """Test long-word vocabulary extraction."""

    def test_frequency_then_first_occurrence(self):
        assert extract_phrases("Sunset vibes sunset vibes golden hour") == ["sunset", "golden"]

    def test_capped_and_unique(self):
        words = " ".join(f"keyword{chr(97 + i)}" for i in range(15))
        phrases = extract_phrases(words + " " + words)
        assert len(phrases) == 10
        assert len(set(phrases)) == 10

    def test_diacritics_are_letters(self):
        assert extract_phrases("Délicieuse crème brûlée, délicieuse!") == ["délicieuse", "brûlée"]

    def test_non_latin_scripts(self):
        assert extract_phrases("नमस्ते दोस्तों नमस्ते") == ["नमस्ते", "दोस्तों"]

    def test_words_with_digits_or_underscores_are_skipped(self):
        assert extract_phrases("summer2024 holiday") == ["holiday"]
        assert extract_phrases("brunch_time 2024sunset weekend") == ["weekend"]

    def test_punctuation_still_splits_words(self):
        assert extract_phrases("sunset,golden-hour!") == ["sunset", "golden"]

    def test_empty(self):
        assert extract_phrases("") == []
        assert extract_phrases("tiny words only") == []


class TestDetectStructure:
    """Test structural flags."""

    def test_quote_sentence_and_emoji(self):
        structure = detect_structure('  "Golden hour is magic. Again!" \U0001F305  ')
        assert structure.starts_with_quote is True
        assert structure.ends_with_emoji is True
        assert structure.contains_line_breaks is False
        assert structure.first_sentence_length == 22

    def test_line_breaks_without_punctuation(self):
        structure = detect_structure("Line one\nline two")
        assert structure.contains_line_breaks is True
        assert structure.first_sentence_length == 17
        assert structure.ends_with_emoji is False

    def test_emoji_with_variation_selector(self):
        assert detect_structure("Love this ❤️").ends_with_emoji is True

    def test_curly_quote(self):
        assert detect_structure("“Stay golden”").starts_with_quote is True

    def test_empty_text(self):
        assert detect_structure("") == CaptionStructure()


class TestHeuristics:
    """Test tone, length bucket and emoji level."""

    def test_tone(self):
        assert detect_tone("Wow, look at this!") == "energetic"
        assert detect_tone("a" * 201) == "detailed"
        assert detect_tone("a" * 200) == "casual"
        assert detect_tone("") == "casual"

    def test_length_bucket_boundaries(self):
        assert detect_length_bucket("a" * 149) == "short"
        assert detect_length_bucket("a" * 150) == "medium"
        assert detect_length_bucket("a" * 249) == "medium"
        assert detect_length_bucket("a" * 250) == "long"

    def test_emoji_level(self):
        assert detect_emoji_level("no emoji here") == 0
        assert detect_emoji_level("Hot \U0001F525\U0001F525") == 2
        assert detect_emoji_level("\U0001F305" * 7) == 5

    @pytest.mark.parametrize("emoji", [
        "\u2b50",  # star
        "\u2b55",  # hollow red circle
        "\u2b1b",  # black large square
        "\u231a",  # watch
        "\u23f0",  # alarm clock
        "\u23f3",  # hourglass
        "\U0001F004",  # mahjong red dragon
        "\U0001F0CF",  # joker
        "\U0001F193",  # squared free
    ])
    def test_emoji_outside_the_main_blocks(self, emoji):
        assert detect_emoji_level(f"Great day {emoji}") == 1
        assert detect_structure(f"Great day {emoji}").ends_with_emoji is True


class TestMergeUniqueLists:
    """Test order-preserving capped merge."""

    def test_dedup_and_cap(self):
        assert merge_unique_lists(["a", "b", "a"], ["b", "c"], limit=2) == ["a", "b"]

    def test_trims_and_drops_blanks(self):
        assert merge_unique_lists([" x ", "", "   "], ["x", "y"]) == ["x", "y"]

    def test_none_inputs(self):
        assert merge_unique_lists(None, None) == []


# =============================================================================
# PreferenceMemory
# =============================================================================

class TestLearnFromCaption:
    """Test merging detections into the preference snapshot."""

    @pytest.mark.asyncio
    async def test_defaults_when_nothing_stored(self, mock_store, config):
        memory = PreferenceMemory(mock_store, config)

        snapshot = await memory.learn_from_caption(
            "u1",
            "Sunset vibes sunset vibes golden hour \U0001F305\U0001F305\U0001F305\U0001F305",
            {"language": "hi"},
        )

        assert snapshot.emoji_level == 3.0
        assert snapshot.preferred_tone == "casual"
        assert snapshot.common_phrases == ["sunset", "golden"]
        assert snapshot.caption_length_preference == "short"
        assert snapshot.language_preference == "hi"
        assert snapshot.caption_structure.ends_with_emoji is True
        mock_store.upsert_user_preferences.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_merges_with_existing_snapshot(self, mock_store, config):
        mock_store.get_user_preferences.return_value = UserPreferenceProfile(
            preferred_tone="detailed",
            emoji_level=5,
            common_phrases=["travel", "sunset"],
            disliked_phrases=["literally"],
            language_preference="ta",
        )
        memory = PreferenceMemory(mock_store, config)

        snapshot = await memory.learn_from_caption("u1", "Golden sunset again!", {"language": "hi"})

        assert snapshot.emoji_level == 2.5
        assert snapshot.preferred_tone == "energetic"
        assert snapshot.common_phrases == ["travel", "sunset", "golden"]
        assert snapshot.disliked_phrases == ["literally"]
        assert snapshot.language_preference == "ta"

    @pytest.mark.asyncio
    async def test_emoji_level_rounds_half_up(self, mock_store, config):
        mock_store.get_user_preferences.return_value = UserPreferenceProfile(emoji_level=0.25)
        memory = PreferenceMemory(mock_store, config)

        snapshot = await memory.learn_from_caption("u1", "No emoji this time")

        assert snapshot.emoji_level == 0.13

    @pytest.mark.asyncio
    async def test_empty_input_returns_none(self, mock_store, config):
        memory = PreferenceMemory(mock_store, config)

        assert await memory.learn_from_caption("u1", "") is None
        assert await memory.learn_from_caption("", "Some caption") is None
        mock_store.get_user_preferences.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_phrase_list_stays_capped(self, mock_store, config):
        mock_store.get_user_preferences.return_value = UserPreferenceProfile(
            common_phrases=[f"phrase{chr(97 + i)}" for i in range(10)],
        )
        memory = PreferenceMemory(mock_store, config)

        snapshot = await memory.learn_from_caption("u1", "brandnew vocabulary")

        assert len(snapshot.common_phrases) == 10
        assert "brandnew" not in snapshot.common_phrases

    @pytest.mark.asyncio
    async def test_store_read_failure_propagates(self, mock_store, config):
        mock_store.get_user_preferences.side_effect = StoreError("get_user_preferences")
        memory = PreferenceMemory(mock_store, config)

        with pytest.raises(StoreError):
            await memory.learn_from_caption("u1", "Anything at all")


class TestPersistence:
    """Test remember() and disliked phrase updates against the SQL store."""

    @pytest.mark.asyncio
    async def test_remember_round_trip(self, sql_store, config):
        memory = PreferenceMemory(sql_store, config)
        snapshot = await memory.learn_from_caption("u1", "Weekend brunch with besties \U0001F942")

        await memory.remember("u1", snapshot)
        stored = await memory.get_preferences("u1")

        assert stored.common_phrases == ["weekend", "brunch", "besties"]
        assert stored.emoji_level == 1.5
        assert stored.last_updated is not None

    @pytest.mark.asyncio
    async def test_add_disliked_phrases(self, sql_store, config):
        memory = PreferenceMemory(sql_store, config)

        await memory.add_disliked_phrases("u1", ["literally", " vibes "])
        stored = await memory.add_disliked_phrases("u1", ["vibes", "slay"])

        assert stored.disliked_phrases == ["literally", "vibes", "slay"]
