import os
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Content Moderation Engine"

    # Signal thresholds
    profanity_threshold: float = 0.0  # any lexical match counts
    harassment_threshold: float = 0.6
    spam_threshold: float = 0.8
    nsfw_threshold: float = 0.7
    violence_threshold: float = 0.8
    quality_threshold: float = 0.3
    pii_confidence: float = 0.9
    hashtag_spam_confidence: float = 0.8

    # Verdict policy
    block_confidence: float = 0.9
    review_confidence: float = 0.7
    severe_image_confidence: float = 0.9

    # Result cache
    cache_enabled: bool = True
    cache_ttl_seconds: float = 3600.0
    text_cache_max_entries: int = 500
    text_cache_max_bytes: int = 10 * 1024 * 1024
    url_cache_max_entries: int = 500
    url_cache_max_bytes: int = 10 * 1024 * 1024
    image_cache_max_entries: int = 1000
    image_cache_max_bytes: int = 50 * 1024 * 1024

    # Lexical matcher
    default_language: str = "en"
    supported_languages: List[str] = ["en", "es", "fr", "de", "it", "pt", "ja", "zh", "ru", "pl"]
    word_cache_max_entries: int = 10000
    wordlist_dir: Optional[str] = None

    # Batch processing
    max_concurrency: int = max(os.cpu_count() or 1, 1)

    # URL analysis
    url_fetch_enabled: bool = True
    url_fetch_timeout: float = 10.0
    url_user_agent: str = "Mozilla/5.0 (compatible; ModerationEngine/1.0)"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    class Config:
        env_file = ".env"
        env_prefix = "MODERATION_"

settings = Settings()
