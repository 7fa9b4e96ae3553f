import enum
from dataclasses import dataclass, field
from typing import List, Optional

from moderation_engine.models.verdict import ImageViolation


class RiskFactor(str, enum.Enum):
    invalid_structure = "invalid_structure"
    suspicious_structure = "suspicious_structure"
    known_malicious_domain = "known_malicious_domain"
    suspicious_domain = "suspicious_domain"
    typosquatting = "typosquatting"
    scam_pattern = "scam_pattern"
    suspicious_keyword = "suspicious_keyword"
    phishing_indicators = "phishing_indicators"
    url_shortener = "url_shortener"
    ip_address = "ip_address"
    content_not_accessible = "content_not_accessible"
    malicious_content = "malicious_content"
    suspicious_form = "suspicious_form"
    suspicious_redirect = "suspicious_redirect"

    @property
    def weight(self) -> float:
        return RISK_WEIGHTS[self]


RISK_WEIGHTS = {
    RiskFactor.invalid_structure: 0.3,
    RiskFactor.suspicious_structure: 0.2,
    RiskFactor.known_malicious_domain: 0.9,
    RiskFactor.suspicious_domain: 0.3,
    RiskFactor.typosquatting: 0.7,
    RiskFactor.scam_pattern: 0.6,
    RiskFactor.suspicious_keyword: 0.2,
    RiskFactor.phishing_indicators: 0.8,
    RiskFactor.url_shortener: 0.1,
    RiskFactor.ip_address: 0.3,
    RiskFactor.content_not_accessible: 0.1,
    RiskFactor.malicious_content: 0.8,
    RiskFactor.suspicious_form: 0.6,
    RiskFactor.suspicious_redirect: 0.4,
}


@dataclass
class UrlOutcome:
    url: str
    is_malicious: bool = False
    is_scam: bool = False
    confidence: float = 0.0
    risk_factors: List[RiskFactor] = field(default_factory=list)
    processing_time: float = 0.0


@dataclass(frozen=True)
class ImageFlag:
    violation: ImageViolation
    confidence: float


@dataclass
class ImageOutcome:
    nsfw_score: Optional[float] = None
    violence_score: Optional[float] = None
    quality_score: Optional[float] = None
    flags: List[ImageFlag] = field(default_factory=list)
    confidence: float = 0.0
    degraded_signals: List[str] = field(default_factory=list)
    processing_time: float = 0.0


@dataclass
class TextAnalysisReport:
    word_count: int = 0
    character_count: int = 0
    sentiment: Optional[float] = None
    contains_pii: bool = False
    readability_score: float = 0.0
