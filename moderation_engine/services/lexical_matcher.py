"""
Per-language profanity lookup with exact, substring and fuzzy matching.
"""

import re
import unicodedata
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from moderation_engine.core.distance import levenshtein_distance
from moderation_engine.core.logger import logger
from moderation_engine.models.verdict import Severity
from moderation_engine.services.cache import ResultCache

# Unicode-aware word segmentation; apostrophes stay inside a word.
_WORD_PATTERN = re.compile(r"\w+(?:['’]\w+)*")
_EDGE_PUNCTUATION = re.compile(r"^[\W_]+|[\W_]+$")

# Cache marker for "checked, no match".
_NO_MATCH = -1

SEVERITY_MULTIPLIERS = {
    Severity.mild: 1.0,
    Severity.moderate: 1.3,
    Severity.severe: 1.7,
    Severity.extreme: 2.0,
}

BASIC_ENGLISH_SEVERITIES = {
    "damn": Severity.mild,
    "crap": Severity.mild,
    "hell": Severity.mild,
    "shit": Severity.moderate,
    "bitch": Severity.moderate,
    "ass": Severity.moderate,
    "piss": Severity.moderate,
}


def normalize_word(word: str) -> str:
    """Lowercase, fold diacritics and trim whitespace and edge punctuation."""
    decomposed = unicodedata.normalize("NFKD", word.lower())
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _EDGE_PUNCTUATION.sub("", folded.strip())


def tokenize(text: str) -> List[str]:
    """Split text into normalized words, dropping punctuation."""
    tokens = []
    for match in _WORD_PATTERN.finditer(text):
        token = normalize_word(match.group(0))
        if token:
            tokens.append(token)
    return tokens


class LexicalMatcher:
    """
    Classifies words against per-language profanity wordlists.

    Lookup order for a normalized word: exact match in the requested
    language, exact match in the default language, substring containment,
    then edit distance of at most one. The first stage with a hit decides the
    severity. Results are cached per ``(language, word)``.

    Args:
        wordlists: Mapping of language code to its set of terms
        severities: Mapping of term to severity; unmapped terms are Moderate
            at every matching stage
        default_language: Language used when the requested one has no list
        cache_size: Maximum number of cached word classifications
    """

    def __init__(
        self,
        wordlists: Mapping[str, Iterable[str]],
        severities: Optional[Mapping[str, Severity]] = None,
        default_language: str = "en",
        cache_size: int = 10000,
    ):
        # Sorted tuples keep the "first hit wins" stages deterministic.
        self._wordlists: Dict[str, Tuple[str, ...]] = {}
        self._lookup_sets: Dict[str, frozenset] = {}
        for language, terms in wordlists.items():
            normalized = sorted({normalize_word(t) for t in terms if normalize_word(t)})
            self._wordlists[language] = tuple(normalized)
            self._lookup_sets[language] = frozenset(normalized)
        self._severities: Dict[str, Severity] = {
            normalize_word(term): severity for term, severity in (severities or {}).items()
        }
        self.default_language = default_language
        self._cache: ResultCache[int] = ResultCache(max_entries=cache_size, ttl_seconds=None)

        logger.info(
            f"Lexical matcher initialized with wordlists for {len(self._wordlists)} languages"
        )

    @property
    def languages(self) -> List[str]:
        return sorted(self._wordlists)

    def severity_for(self, term: str) -> Severity:
        return self._severities.get(term, Severity.moderate)

    def classify(self, word: str, language: Optional[str] = None) -> Optional[Severity]:
        """
        Classify a single word.

        Args:
            word: Word to classify
            language: Language code; falls back to the default language

        Returns:
            Severity of the matched term, or None if the word is not profane
        """
        language = language or self.default_language
        normalized = normalize_word(word)
        if not normalized:
            return None

        cache_key = f"{language}_{normalized}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return None if cached == _NO_MATCH else Severity(cached)

        severity = self._check_word(normalized, language)
        self._cache.set(cache_key, _NO_MATCH if severity is None else int(severity))
        return severity

    def _check_word(self, word: str, language: str) -> Optional[Severity]:
        terms = self._lookup_sets.get(language)
        if terms is not None and word in terms:
            return self.severity_for(word)

        default_terms = self._lookup_sets.get(self.default_language)
        if language != self.default_language and default_terms is not None and word in default_terms:
            return self.severity_for(word)

        return self._check_variants(word, language)

    def _check_variants(self, word: str, language: str) -> Optional[Severity]:
        if len(word) <= 2:
            return None

        wordlist = self._wordlists.get(language) or self._wordlists.get(self.default_language) or ()

        for term in wordlist:
            if term in word or word in term:
                return self.severity_for(term)

        for term in wordlist:
            if len(word) >= len(term) - 1 and levenshtein_distance(word, term) <= 1:
                return self.severity_for(term)

        return None

    def score_text(
        self, text: str, language: Optional[str] = None
    ) -> Optional[Tuple[Severity, float]]:
        """
        Score a whole text for profanity.

        Returns:
            (highest severity, confidence) or None when no token matched
        """
        if not text or not text.strip():
            return None

        tokens = tokenize(text)
        if not tokens:
            return None

        matched = 0
        highest: Optional[Severity] = None
        for token in tokens:
            severity = self.classify(token, language)
            if severity is None:
                continue
            matched += 1
            if highest is None or severity > highest:
                highest = severity

        if highest is None:
            return None

        base_confidence = min(2.0 * matched / len(tokens), 1.0)
        confidence = min(base_confidence * SEVERITY_MULTIPLIERS[highest], 1.0)

        logger.debug(
            f"Profanity detected: {matched}/{len(tokens)} words, "
            f"severity: {highest.name}, confidence: {confidence:.3f}"
        )
        return highest, confidence

    def mask_text(self, text: str, language: Optional[str] = None) -> str:
        """Replace profane words with asterisks, keeping their last character."""

        def _mask(match: "re.Match[str]") -> str:
            word = match.group(0)
            if self.classify(word, language) is None:
                return word
            return "*" * max(len(word) - 1, 1) + word[-1]

        return _WORD_PATTERN.sub(_mask, text)

    def clear_cache(self) -> int:
        return self._cache.clear()
