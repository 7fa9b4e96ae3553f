"""
Tests for the heuristic text signals.
"""

import pytest
from unittest.mock import Mock

from moderation_engine.services.text_analysis import (
    TextAnalyzer,
    contains_personal_information,
    detect_hashtag_spam,
    lexicon_sentiment,
    sanitize_text,
)


@pytest.fixture
def analyzer():
    return TextAnalyzer()


class TestSanitizeText:
    """Test text normalization."""

    def test_collapses_whitespace(self):
        """Test that whitespace runs collapse and ends are trimmed."""
        assert sanitize_text("  hello \n\n  world  ") == "hello world"

    def test_drops_control_characters(self):
        """Test that control characters are removed."""
        assert sanitize_text("a\x07b\x00c") == "abc"

    def test_keeps_symbols_and_punctuation(self):
        """Test that punctuation and symbols survive."""
        assert sanitize_text("Price: $5!") == "Price: $5!"


class TestPersonalInformation:
    """Test PII detection."""

    @pytest.mark.parametrize("text", [
        "email me at john@example.com",
        "call 555-234-5678 tonight",
        "my ssn is 123-45-6789",
        "card 4111 1111 1111 1111",
        "I live at 42 Main Street",
        "born on March 3, 1990",
        "born 03/04/1990",
    ])
    def test_detects_pii(self, text):
        """Test each PII shape is detected."""
        assert contains_personal_information(text)

    @pytest.mark.parametrize("text", [
        "Let's meet at the park tomorrow",
        "meet me on the street",
        "ssn 123456789",
    ])
    def test_no_pii(self, text):
        """Test text without PII is not flagged."""
        assert not contains_personal_information(text)


class TestHashtagSpam:
    """Test hashtag spam detection."""

    def test_too_many_hashtags(self):
        """Test that more than twenty hashtags is spam."""
        assert detect_hashtag_spam([f"#tag{i}" for i in range(21)])

    def test_heavy_duplication(self):
        """Test that heavy duplication is spam."""
        assert detect_hashtag_spam(["#a", "#a", "#a", "#b", "#b"])

    def test_spam_keyword(self):
        """Test that spam keywords in tags are spam."""
        assert detect_hashtag_spam(["#free", "#travel"])

    def test_clean_hashtags(self):
        """Test ordinary hashtags are not spam."""
        assert not detect_hashtag_spam(["#travel", "#food"])


class TestTextAnalyzer:
    """Test harassment, spam and descriptive analysis."""

    def test_harassment_keywords(self, analyzer):
        """Test that each harassment keyword adds to the score."""
        assert analyzer.harassment_score("you are a stupid loser") == pytest.approx(0.6)

    def test_harassment_with_negative_sentiment_is_clamped(self, analyzer):
        """Test strongly negative text saturates at 1."""
        assert analyzer.harassment_score("you stupid worthless loser") == 1.0

    def test_harassment_absent(self, analyzer):
        """Test that text without indicators has no score."""
        assert analyzer.harassment_score("have a nice day") is None

    def test_sentiment_failure_degrades(self):
        """Test a failing sentiment scorer does not fail harassment scoring."""
        analyzer = TextAnalyzer(sentiment_scorer=Mock(side_effect=RuntimeError("model crashed")))
        assert analyzer.sentiment("you idiot") is None
        assert analyzer.harassment_score("you idiot") == pytest.approx(0.3)

    def test_spam_score(self, analyzer):
        """Test keywords and money terms accumulate into the spam score."""
        text = "Congratulations winner! Click here to claim your free prize money"
        assert analyzer.spam_score(text) == pytest.approx(0.35)

    def test_spam_absent(self, analyzer):
        """Test that text without indicators has no spam score."""
        assert analyzer.spam_score("hello there friend") is None

    def test_repetitive_text_is_spam(self, analyzer):
        """Test repeated words raise the spam score."""
        assert analyzer.spam_score("buy buy buy buy buy buy buy buy") >= 0.3

    def test_lexicon_sentiment(self):
        """Test polarity is the mean per-token score."""
        assert lexicon_sentiment("good bad") == 0.0
        assert lexicon_sentiment("great day") == pytest.approx(0.5)
        assert lexicon_sentiment("...") is None

    def test_readability_bounds(self, analyzer):
        """Test readability lands in [0, 1]."""
        assert analyzer.readability("") == 0.0
        score = analyzer.readability("The cat sat on the mat. It was happy.")
        assert 0.0 <= score <= 1.0

    def test_analyze_text(self, analyzer):
        """Test the descriptive report."""
        report = analyzer.analyze_text("great day, call 555-234-5678")
        assert report.word_count == 4
        assert report.character_count == len("great day, call 555-234-5678")
        assert report.contains_pii is True
        assert report.sentiment is not None

    def test_hashtag_terms(self, analyzer):
        """Test leading hashes are stripped and empty tags dropped."""
        assert analyzer.hashtag_terms(["#fun", "#", "travel"]) == ["fun", "travel"]
