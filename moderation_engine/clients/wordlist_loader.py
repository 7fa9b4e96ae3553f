from pathlib import Path
from typing import Dict, Iterable, Optional, Set

from moderation_engine.core.logger import logger
from moderation_engine.services.lexical_matcher import BASIC_ENGLISH_SEVERITIES


def load_wordlist(path: Path) -> Optional[Set[str]]:
    """Read one ``profanity_<lang>.txt`` file, one term per line."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.debug(f"Could not load profanity wordlist {path}: {e}")
        return None
    return {line.strip().lower() for line in content.splitlines() if line.strip()}


def load_wordlists(
    directory: Optional[str],
    languages: Iterable[str],
    default_language: str = "en",
) -> Dict[str, Set[str]]:
    """
    Load profanity wordlists for the supported languages.

    Languages without a file are skipped and fall back to the default
    language at lookup time. The default language always gets at least the
    basic English list.

    Args:
        directory: Directory holding ``profanity_<lang>.txt`` files
        languages: Language codes to load
        default_language: Language that must always have a list

    Returns:
        Mapping of language code to term set
    """
    wordlists: Dict[str, Set[str]] = {}
    if directory:
        base = Path(directory)
        for language in languages:
            terms = load_wordlist(base / f"profanity_{language}.txt")
            if terms:
                wordlists[language] = terms

    if default_language not in wordlists:
        wordlists[default_language] = set(BASIC_ENGLISH_SEVERITIES)

    logger.info(f"Loaded profanity wordlists for {len(wordlists)} languages")
    return wordlists
