"""
Heuristic text signals: harassment, spam, personal information and hashtag spam.

Scorers return ``None`` when no indicator fired, which is distinct from a
score of zero. All scorers expect text that has already been through
``sanitize_text``.
"""

import re
import unicodedata
from typing import Callable, Iterable, List, Optional, Sequence

from moderation_engine.core.logger import logger
from moderation_engine.core.signals import attempt_signal
from moderation_engine.models.analysis import TextAnalysisReport

SPAM_KEYWORDS = frozenset([
    "free", "win", "winner", "congratulations", "prize", "urgent", "act now",
    "limited time", "click here", "buy now", "discount", "offer expires",
    "make money", "work from home", "no experience", "guaranteed",
    "viagra", "cialis", "pharmacy", "weight loss", "miracle cure",
])

HARASSMENT_KEYWORDS = frozenset([
    "kill yourself", "die", "hate you", "loser", "idiot", "stupid",
    "worthless", "pathetic", "disgusting", "freak", "weirdo",
])

THREATENING_PHRASES = ("i will", "gonna get", "you better", "or else", "regret it")

MONEY_TERMS = ("$", "money", "cash", "payment", "credit", "loan", "debt")

SPAM_PUNCTUATION = frozenset("!@#$%^&*")

ADDRESS_KEYWORDS = frozenset(["street", "st", "avenue", "ave", "road", "rd", "drive", "dr"])

POSITIVE_WORDS = frozenset([
    "good", "great", "love", "awesome", "amazing", "happy", "nice", "wonderful",
    "excellent", "fantastic", "beautiful", "fun", "thanks", "thank", "best", "enjoy",
])

NEGATIVE_WORDS = frozenset([
    "bad", "hate", "awful", "terrible", "horrible", "ugly", "worst", "stupid",
    "idiot", "loser", "worthless", "pathetic", "disgusting", "angry", "die", "kill",
])

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(
    r"\b(?:\+?1[-.\s]?)?(?:\(?[2-9]\d{2}\)?[-.\s]?)?[2-9]\d{2}[-.\s]?\d{4}\b"
)
SSN_PATTERN = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")
CREDIT_CARD_PATTERN = re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b")
DATE_OF_BIRTH_PATTERNS = (
    re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b"),
    re.compile(
        r"\b(january|february|march|april|may|june|july|august|september|october|"
        r"november|december)\s+\d{1,2},?\s+\d{2,4}\b",
        re.IGNORECASE,
    ),
)

_WHITESPACE_RUN = re.compile(r"\s+")
_WORD = re.compile(r"\w+")
_SENTENCE_BREAK = re.compile(r"[.!?]")
_VOWELS = frozenset("aeiouAEIOU")


def sanitize_text(text: str) -> str:
    """
    Normalize text for analysis without touching the stored content.

    Trims, collapses whitespace runs to a single space and drops characters
    outside the letter, number, punctuation, symbol and whitespace categories.
    """
    collapsed = _WHITESPACE_RUN.sub(" ", text.strip())
    return "".join(
        ch for ch in collapsed
        if ch.isspace() or unicodedata.category(ch)[0] in "LNPS"
    )


def lexicon_sentiment(text: str) -> Optional[float]:
    """Mean per-token polarity in [-1, 1]; None for text without words."""
    tokens = _WORD.findall(text.lower())
    if not tokens:
        return None
    score = sum(
        1.0 if token in POSITIVE_WORDS else -1.0 if token in NEGATIVE_WORDS else 0.0
        for token in tokens
    )
    return score / len(tokens)


def contains_personal_information(text: str) -> bool:
    """True if the text looks like it carries an email, phone, SSN, card, address or birth date."""
    if EMAIL_PATTERN.search(text):
        return True
    if PHONE_PATTERN.search(text):
        return True
    if SSN_PATTERN.search(text):
        return True
    if CREDIT_CARD_PATTERN.search(text):
        return True
    return _contains_other_pii(text.lower())


def _contains_other_pii(text: str) -> bool:
    words = set(_WORD.findall(text))
    has_address_keyword = bool(words & ADDRESS_KEYWORDS)
    has_numbers = any(ch.isdigit() for ch in text)
    if has_address_keyword and has_numbers:
        return True

    return any(pattern.search(text) for pattern in DATE_OF_BIRTH_PATTERNS)


def detect_hashtag_spam(hashtags: Sequence[str]) -> bool:
    """Too many hashtags, heavy duplication, or spam keywords in the tags."""
    if len(hashtags) > 20:
        return True

    unique_hashtags = {tag.lower() for tag in hashtags}
    if len(hashtags) > len(unique_hashtags) * 2:
        return True

    hashtag_text = " ".join(hashtags).lower()
    return any(keyword in hashtag_text for keyword in SPAM_KEYWORDS)


def _contains_repetitive_text(words: List[str]) -> bool:
    if len(words) <= 5:
        return False
    return len(set(words)) / len(words) < 0.3


def _estimate_syllables(text: str) -> int:
    count = 0
    previous_was_vowel = False
    for ch in text:
        is_vowel = ch in _VOWELS
        if is_vowel and not previous_was_vowel:
            count += 1
        previous_was_vowel = is_vowel
    return max(1, count)


class TextAnalyzer:
    """
    Harassment, spam and PII scoring over sanitized text.

    Args:
        sentiment_scorer: Callable returning a polarity in [-1, 1] or None.
            Failures degrade the sentiment indicator instead of the score.
    """

    def __init__(self, sentiment_scorer: Callable[[str], Optional[float]] = lexicon_sentiment):
        self.sentiment_scorer = sentiment_scorer
        logger.info("Text analyzer initialized")

    sanitize_text = staticmethod(sanitize_text)
    contains_personal_information = staticmethod(contains_personal_information)
    detect_hashtag_spam = staticmethod(detect_hashtag_spam)

    def sentiment(self, text: str) -> Optional[float]:
        return attempt_signal("sentiment", self.sentiment_scorer, text)

    def harassment_score(self, text: str) -> Optional[float]:
        lowered = text.lower()
        score = 0.0
        indicators = 0

        for keyword in HARASSMENT_KEYWORDS:
            if keyword in lowered:
                score += 0.3
                indicators += 1

        if text.count("!") > 3:
            score += 0.1
            indicators += 1

        if len(text) > 10:
            caps_ratio = sum(1 for ch in text if ch.isupper()) / len(text)
            if caps_ratio > 0.5:
                score += 0.2
                indicators += 1

        sentiment = self.sentiment(text)
        if sentiment is not None and sentiment < -0.5:
            score += 0.2
            indicators += 1

        for phrase in THREATENING_PHRASES:
            if phrase in lowered:
                score += 0.15
                indicators += 1

        return min(score, 1.0) if indicators > 0 else None

    def spam_score(self, text: str) -> Optional[float]:
        lowered = text.lower()
        words = lowered.split()
        score = 0.0
        indicators = 0

        for word in words:
            if word in SPAM_KEYWORDS:
                score += 0.1
                indicators += 1

        punctuation_count = sum(1 for ch in text if ch in SPAM_PUNCTUATION)
        if text and punctuation_count > len(text) / 4:
            score += 0.2
            indicators += 1

        if _contains_repetitive_text(text.split()):
            score += 0.3
            indicators += 1

        if "http" in text or "www." in text or ".com" in text:
            score += 0.15
            indicators += 1

        if any(term in lowered for term in MONEY_TERMS):
            score += 0.05
            indicators += 1

        return min(score, 1.0) if indicators > 0 else None

    def readability(self, text: str) -> float:
        """Simplified Flesch reading ease scaled to [0, 1]."""
        words = text.split()
        if not words:
            return 0.0
        sentences = len(_SENTENCE_BREAK.split(text))
        words_per_sentence = len(words) / sentences
        syllables_per_word = _estimate_syllables(text) / len(words)
        score = 206.835 - (1.015 * words_per_sentence) - (84.6 * syllables_per_word)
        return max(0.0, min(100.0, score)) / 100.0

    def analyze_text(self, text: str) -> TextAnalysisReport:
        return TextAnalysisReport(
            word_count=len(text.split()),
            character_count=len(text),
            sentiment=self.sentiment(text),
            contains_pii=self.contains_personal_information(text),
            readability_score=self.readability(text),
        )

    def hashtag_terms(self, hashtags: Iterable[str]) -> List[str]:
        """Hashtags with the leading '#' removed, as scored by other analyzers."""
        return [tag.lstrip("#") for tag in hashtags if tag.strip("#").strip()]
