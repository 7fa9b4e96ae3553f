import base64
import binascii
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from moderation_engine.models.content import (
    CompositeContent,
    ContentItem,
    HashtagContent,
    ImageContent,
    PixelBuffer,
    TextContent,
    UrlContent,
)
from moderation_engine.models.verdict import (
    AnalysisOutcome,
    BatchItemResult,
    FlagReason,
    ModerationReport,
    ModerationVerdict,
)

MAX_TEXT_LENGTH = 10000  # characters
MAX_HASHTAGS = 100
MAX_URL_LENGTH = 4096
MAX_IMAGE_BYTES = 20 * 1024 * 1024
MAX_BATCH_ITEMS = 100
MAX_LANGUAGE_LENGTH = 16


# ---- Requests ----
class ModerationTextRequest(BaseModel):
    content: str = Field(..., max_length=MAX_TEXT_LENGTH)
    language: Optional[str] = Field(None, max_length=MAX_LANGUAGE_LENGTH)

    def to_item(self) -> ContentItem:
        return TextContent(self.content, self.language)


class ModerationHashtagsRequest(BaseModel):
    hashtags: List[str] = Field(..., max_length=MAX_HASHTAGS)
    language: Optional[str] = Field(None, max_length=MAX_LANGUAGE_LENGTH)

    def to_item(self) -> ContentItem:
        return HashtagContent(self.hashtags, self.language)


class ModerationUrlRequest(BaseModel):
    url: str = Field(..., max_length=MAX_URL_LENGTH)

    def to_item(self) -> ContentItem:
        return UrlContent(self.url)


class ModerationImageRequest(BaseModel):
    """Raw pixels, base64 encoded, row-major with interleaved channels."""

    pixels: str
    width: int
    height: int
    channels: int = 4

    @field_validator("pixels")
    @classmethod
    def pixels_must_be_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("pixels must be base64 encoded")
        return value

    def decoded_pixels(self) -> bytes:
        return base64.b64decode(self.pixels)

    def to_item(self) -> ContentItem:
        return ImageContent(PixelBuffer(self.decoded_pixels(), self.width, self.height, self.channels))


class TextItem(ModerationTextRequest):
    type: Literal["text"] = "text"


class HashtagsItem(ModerationHashtagsRequest):
    type: Literal["hashtags"] = "hashtags"


class UrlItem(ModerationUrlRequest):
    type: Literal["url"] = "url"


class ImageItem(ModerationImageRequest):
    type: Literal["image"] = "image"


LeafItem = Annotated[Union[TextItem, HashtagsItem, UrlItem, ImageItem], Field(discriminator="type")]


class ModerationCompositeRequest(BaseModel):
    identifier: str
    items: List[LeafItem] = Field(..., min_length=1)

    def to_item(self) -> ContentItem:
        return CompositeContent(self.identifier, [item.to_item() for item in self.items])


class CompositeItem(ModerationCompositeRequest):
    type: Literal["composite"] = "composite"


BatchItem = Annotated[
    Union[TextItem, HashtagsItem, UrlItem, ImageItem, CompositeItem],
    Field(discriminator="type"),
]


class ModerationBatchRequest(BaseModel):
    items: List[BatchItem] = Field(..., min_length=1, max_length=MAX_BATCH_ITEMS)


# ---- Responses ----
class FlagReasonResponse(BaseModel):
    kind: str
    severity: Optional[str] = None
    image_violation: Optional[str] = None
    confidence: Optional[float] = None
    text: Optional[str] = None

    @classmethod
    def from_reason(cls, reason: FlagReason) -> "FlagReasonResponse":
        return cls(**reason.to_dict())


class VerdictResponse(BaseModel):
    kind: Literal["approved", "flagged", "blocked", "requires_review"]
    reasons: List[FlagReasonResponse] = []
    confidence: float = 0.0

    @classmethod
    def from_verdict(cls, verdict: ModerationVerdict) -> "VerdictResponse":
        return cls(
            kind=verdict.kind.value,
            reasons=[FlagReasonResponse.from_reason(r) for r in verdict.reasons],
            confidence=verdict.confidence,
        )


class OutcomeResponse(BaseModel):
    source: str
    reasons: List[FlagReasonResponse] = []
    confidence: float = 0.0

    @classmethod
    def from_outcome(cls, outcome: AnalysisOutcome) -> "OutcomeResponse":
        return cls(
            source=outcome.source,
            reasons=[FlagReasonResponse.from_reason(r) for r in outcome.reasons],
            confidence=outcome.confidence,
        )


class ModerationResultResponse(BaseModel):
    fingerprint: str
    verdict: VerdictResponse
    outcomes: List[OutcomeResponse] = []
    cached: bool = False

    @classmethod
    def from_report(cls, report: ModerationReport) -> "ModerationResultResponse":
        return cls(
            fingerprint=report.fingerprint,
            verdict=VerdictResponse.from_verdict(report.verdict),
            outcomes=[OutcomeResponse.from_outcome(o) for o in report.outcomes],
            cached=report.cached,
        )


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Dict = {}


class BatchItemResponse(BaseModel):
    index: int
    verdict: Optional[VerdictResponse] = None
    error: Optional[ErrorResponse] = None

    @classmethod
    def from_result(cls, result: BatchItemResult) -> "BatchItemResponse":
        if result.error is not None:
            return cls(index=result.index, error=ErrorResponse(**result.error.to_dict()))
        return cls(index=result.index, verdict=VerdictResponse.from_verdict(result.verdict))


class ModerationBatchResponse(BaseModel):
    results: List[BatchItemResponse]
    total_items: int
    failed_items: int


class StatisticsResponse(BaseModel):
    total_moderations: int
    approved_count: int
    flagged_count: int
    blocked_count: int
    review_required_count: int
    cache_hits: int
    error_count: int
    average_processing_time: float
