import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from moderation_engine.core.exceptions import ContentModeratorException


class Severity(enum.IntEnum):
    """Profanity intensity, totally ordered."""

    mild = 0
    moderate = 1
    severe = 2
    extreme = 3


class FlagKind(str, enum.Enum):
    profanity = "profanity"
    harassment = "harassment"
    spam = "spam"
    personal_information = "personal_information"
    malicious_url = "malicious_url"
    scam = "scam"
    inappropriate_image = "inappropriate_image"
    hate_speech = "hate_speech"
    violence = "violence"
    custom = "custom"


class ImageViolation(str, enum.Enum):
    nsfw = "nsfw"
    violence = "violence"
    low_quality = "low_quality"
    inappropriate = "inappropriate"


@dataclass(frozen=True)
class FlagReason:
    kind: FlagKind
    severity: Optional[Severity] = None
    image_violation: Optional[ImageViolation] = None
    confidence: Optional[float] = None
    text: Optional[str] = None

    @classmethod
    def profanity(cls, severity: Severity) -> "FlagReason":
        return cls(FlagKind.profanity, severity=severity)

    @classmethod
    def harassment(cls) -> "FlagReason":
        return cls(FlagKind.harassment)

    @classmethod
    def spam(cls) -> "FlagReason":
        return cls(FlagKind.spam)

    @classmethod
    def personal_information(cls) -> "FlagReason":
        return cls(FlagKind.personal_information)

    @classmethod
    def malicious_url(cls) -> "FlagReason":
        return cls(FlagKind.malicious_url)

    @classmethod
    def scam(cls) -> "FlagReason":
        return cls(FlagKind.scam)

    @classmethod
    def inappropriate_image(cls, violation: ImageViolation, confidence: float) -> "FlagReason":
        return cls(FlagKind.inappropriate_image, image_violation=violation, confidence=confidence)

    @classmethod
    def custom(cls, text: str) -> "FlagReason":
        return cls(FlagKind.custom, text=text)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value}
        if self.severity is not None:
            data["severity"] = self.severity.name
        if self.image_violation is not None:
            data["image_violation"] = self.image_violation.value
        if self.confidence is not None:
            data["confidence"] = self.confidence
        if self.text is not None:
            data["text"] = self.text
        return data


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of one analyzer signal. No reasons means nothing was found."""

    source: str
    reasons: Tuple[FlagReason, ...] = ()
    confidence: float = 0.0

    @classmethod
    def empty(cls, source: str) -> "AnalysisOutcome":
        return cls(source)

    @property
    def has_reasons(self) -> bool:
        return bool(self.reasons)


class VerdictKind(str, enum.Enum):
    approved = "approved"
    flagged = "flagged"
    blocked = "blocked"
    requires_review = "requires_review"


@dataclass(frozen=True)
class ModerationVerdict:
    kind: VerdictKind
    reasons: Tuple[FlagReason, ...] = ()
    confidence: float = 0.0

    @classmethod
    def approved(cls) -> "ModerationVerdict":
        return cls(VerdictKind.approved)

    @property
    def is_approved(self) -> bool:
        return self.kind == VerdictKind.approved

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "reasons": [reason.to_dict() for reason in self.reasons],
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ModerationReport:
    """A verdict together with the per-signal outcomes that produced it."""

    verdict: ModerationVerdict
    outcomes: Tuple[AnalysisOutcome, ...]
    fingerprint: str
    cached: bool = False


@dataclass
class BatchItemResult:
    index: int
    verdict: Optional[ModerationVerdict] = None
    error: Optional[ContentModeratorException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ModerationStatisticsSnapshot:
    total_moderations: int = 0
    approved_count: int = 0
    flagged_count: int = 0
    blocked_count: int = 0
    review_required_count: int = 0
    cache_hits: int = 0
    error_count: int = 0
    average_processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_moderations": self.total_moderations,
            "approved_count": self.approved_count,
            "flagged_count": self.flagged_count,
            "blocked_count": self.blocked_count,
            "review_required_count": self.review_required_count,
            "cache_hits": self.cache_hits,
            "error_count": self.error_count,
            "average_processing_time": self.average_processing_time,
        }


def merge_reasons(outcomes: List[AnalysisOutcome]) -> Tuple[FlagReason, ...]:
    """Concatenate reasons in analyzer invocation order."""
    reasons: List[FlagReason] = []
    for outcome in outcomes:
        reasons.extend(outcome.reasons)
    return tuple(reasons)
