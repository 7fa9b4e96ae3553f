"""
Shared fixtures for the moderation engine test suite.
"""

import pytest

from moderation_engine.core.config import Settings
from moderation_engine.models.content import PixelBuffer
from moderation_engine.models.verdict import Severity
from moderation_engine.services.lexical_matcher import LexicalMatcher
from moderation_engine.services.moderation_service import build_moderation_service

TEST_WORDLISTS = {"en": {"damn", "shit", "fuck", "bastard"}}

TEST_SEVERITIES = {
    "damn": Severity.mild,
    "shit": Severity.moderate,
    "fuck": Severity.extreme,
}


def solid_buffer(width: int, height: int, value: int = 128, channels: int = 4) -> PixelBuffer:
    """Uniform image with every channel set to ``value``."""
    return PixelBuffer(bytes([value]) * (width * height * channels), width, height, channels)


@pytest.fixture
def test_settings():
    """Settings with remote fetches disabled."""
    return Settings(url_fetch_enabled=False, max_concurrency=2)


@pytest.fixture
def matcher():
    return LexicalMatcher(TEST_WORDLISTS, TEST_SEVERITIES)


@pytest.fixture
def service(test_settings):
    return build_moderation_service(
        test_settings,
        wordlists=TEST_WORDLISTS,
        severities=TEST_SEVERITIES,
    )


@pytest.fixture
def gray_image():
    return solid_buffer(4, 4)
