"""
Content items submitted for moderation.

Items are immutable. Their cache identity is the SHA-256 fingerprint of a
canonical byte representation, so two items built from the same bytes always
share a fingerprint regardless of when they were constructed.
"""

import enum
import hashlib
import struct
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from moderation_engine.core.exceptions import InvalidInputException


class ContentKind(str, enum.Enum):
    text = "text"
    hashtags = "hashtags"
    image = "image"
    url = "url"
    composite = "composite"


SUPPORTED_CHANNELS = (1, 3, 4)


@dataclass(frozen=True)
class PixelBuffer:
    """Row-major interleaved pixel data (8 bits per channel)."""

    data: bytes
    width: int
    height: int
    channels: int = 4

    def validate(self) -> None:
        if not isinstance(self.data, (bytes, bytearray, memoryview)):
            raise InvalidInputException("Pixel data must be a byte buffer", field="data")
        if self.width <= 0 or self.height <= 0:
            raise InvalidInputException(
                f"Image dimensions must be positive, got {self.width}x{self.height}",
                field="dimensions"
            )
        if self.channels not in SUPPORTED_CHANNELS:
            raise InvalidInputException(
                f"Unsupported channel count {self.channels}",
                field="channels"
            )
        expected = self.width * self.height * self.channels
        if len(self.data) != expected:
            raise InvalidInputException(
                f"Pixel buffer holds {len(self.data)} bytes, expected {expected}",
                field="data",
                details={"expected": expected, "actual": len(self.data)}
            )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


def _language_prefix(language: Optional[str]) -> bytes:
    return f"{language}\x1d".encode("utf-8") if language else b""


@dataclass(frozen=True)
class TextContent:
    """Free text; ``language`` selects the profanity wordlist (default language when None)."""

    text: str
    language: Optional[str] = None
    kind = ContentKind.text

    def canonical_bytes(self) -> bytes:
        return _language_prefix(self.language) + self.text.encode("utf-8")


@dataclass(frozen=True)
class HashtagContent:
    hashtags: Tuple[str, ...]
    language: Optional[str] = None
    kind = ContentKind.hashtags

    def __init__(self, hashtags: Sequence[str], language: Optional[str] = None):
        object.__setattr__(self, "hashtags", tuple(hashtags))
        object.__setattr__(self, "language", language)

    def canonical_bytes(self) -> bytes:
        # Unit separator cannot appear in a hashtag, so joins are unambiguous.
        return _language_prefix(self.language) + "\x1f".join(self.hashtags).encode("utf-8")


@dataclass(frozen=True)
class ImageContent:
    pixels: PixelBuffer
    kind = ContentKind.image

    @classmethod
    def from_bytes(cls, data: bytes, width: int, height: int, channels: int = 4) -> "ImageContent":
        return cls(PixelBuffer(bytes(data), width, height, channels))

    def canonical_bytes(self) -> bytes:
        header = struct.pack(">III", self.pixels.width, self.pixels.height, self.pixels.channels)
        return header + bytes(self.pixels.data)


@dataclass(frozen=True)
class UrlContent:
    url: str
    kind = ContentKind.url

    def __post_init__(self):
        # Analysis and fingerprint must both see the same string.
        object.__setattr__(self, "url", self.url.strip())

    def canonical_bytes(self) -> bytes:
        return self.url.encode("utf-8")


@dataclass(frozen=True)
class CompositeContent:
    """A bundle of items moderated together, such as an event or a profile."""

    identifier: str
    items: Tuple["ContentItem", ...]
    kind = ContentKind.composite

    def __init__(self, identifier: str, items: Sequence["ContentItem"]):
        object.__setattr__(self, "identifier", identifier)
        object.__setattr__(self, "items", tuple(items))

    @classmethod
    def event(
        cls,
        identifier: str,
        title: str,
        description: str,
        hashtags: Sequence[str] = (),
        image: Optional[PixelBuffer] = None,
    ) -> "CompositeContent":
        items: list = [TextContent(title), TextContent(description)]
        if hashtags:
            items.append(HashtagContent(hashtags))
        if image is not None:
            items.append(ImageContent(image))
        return cls(identifier, items)

    @classmethod
    def profile(
        cls,
        identifier: str,
        display_name: str,
        bio: str = "",
        photo: Optional[PixelBuffer] = None,
    ) -> "CompositeContent":
        items: list = [TextContent(display_name)]
        if bio.strip():
            items.append(TextContent(bio))
        if photo is not None:
            items.append(ImageContent(photo))
        return cls(identifier, items)

    def canonical_bytes(self) -> bytes:
        parts = [self.identifier.encode("utf-8")]
        parts.extend(fingerprint(item).encode("ascii") for item in self.items)
        return b"\x1e".join(parts)


ContentItem = Union[TextContent, HashtagContent, ImageContent, UrlContent, CompositeContent]


def fingerprint(item: ContentItem) -> str:
    """
    Stable cache key for a content item.

    Args:
        item: Content item to fingerprint

    Returns:
        SHA-256 hex digest over the kind tag and canonical bytes
    """
    digest = hashlib.sha256()
    digest.update(item.kind.value.encode("ascii"))
    digest.update(b"\x00")
    digest.update(item.canonical_bytes())
    return digest.hexdigest()
