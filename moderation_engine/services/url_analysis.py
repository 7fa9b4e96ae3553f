"""
URL risk analysis.

A URL goes through five stages in order (structure, domain reputation, scam
patterns, optional content fetch, scoring). Each stage appends weighted risk
factors; the final confidence is the clamped sum of the weights plus bonuses
for malicious and scam findings.
"""

import asyncio
import functools
import ipaddress
import re
import time
from concurrent.futures import Executor
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from moderation_engine.clients.page_client import PageClient
from moderation_engine.core.distance import levenshtein_distance
from moderation_engine.core.exceptions import InvalidInputException
from moderation_engine.core.logger import logger
from moderation_engine.core.signals import attempt_signal
from moderation_engine.models.analysis import RiskFactor, UrlOutcome

MAX_URL_LENGTH = 2000
MAX_HOST_LABELS = 5

MALICIOUS_BONUS = 0.5
SCAM_BONUS = 0.4

DEFAULT_MALICIOUS_DOMAINS = frozenset([
    "malware-domain.com",
    "phishing-site.net",
    "scam-website.org",
])

URL_SHORTENERS = ("bit.ly", "tinyurl.com", "t.co", "goo.gl", "ow.ly", "is.gd")

SUSPICIOUS_TLDS = (".tk", ".ml", ".ga", ".cf", ".bit")

SUSPICIOUS_DOMAIN_TERMS = ("secure", "verify", "update", "confirm", "login")

POPULAR_DOMAINS = ("google.com", "facebook.com", "amazon.com", "apple.com", "microsoft.com")

SCAM_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"free.*money",
    r"win.*lottery",
    r"congratulations.*winner",
    r"claim.*prize",
    r"urgent.*verify",
    r"suspended.*account",
    r"click.*here.*now",
))

SUSPICIOUS_KEYWORDS = (
    "phishing", "malware", "virus", "trojan", "scam",
    "fraud", "hack", "exploit", "suspicious",
)

PHISHING_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"secure.*login",
    r"verify.*account",
    r"update.*payment",
    r"confirm.*identity",
    r"suspended.*account",
    r"urgent.*action",
))

SCAM_CONTENT_INDICATORS = (
    "congratulations, you've won", "urgent action required",
    "verify your account", "suspended account", "click here immediately",
    "limited time offer", "act now", "100% guaranteed",
)

REDIRECT_MARKERS = ("window.location", "document.location")


def extract_host(url: str) -> Optional[str]:
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    return host or None


def is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def is_url_shortener(host: str) -> bool:
    return any(host == s or host.endswith("." + s) for s in URL_SHORTENERS)


def calculate_risk_score(outcome: UrlOutcome) -> float:
    score = sum(factor.weight for factor in outcome.risk_factors)
    if outcome.is_malicious:
        score += MALICIOUS_BONUS
    if outcome.is_scam:
        score += SCAM_BONUS
    return min(score, 1.0)


class UrlAnalyzer:
    """
    Validates URLs for malicious domains, scams and phishing.

    Args:
        page_client: Client used for the optional content fetch; None
            disables the fetch stage
        malicious_domains: Known malicious hosts
        executor: Executor for the blocking fetch (default loop executor)
    """

    def __init__(
        self,
        page_client: Optional[PageClient] = None,
        malicious_domains: Iterable[str] = DEFAULT_MALICIOUS_DOMAINS,
        executor: Optional[Executor] = None,
    ):
        self.page_client = page_client
        self.malicious_domains = frozenset(d.lower() for d in malicious_domains)
        self._executor = executor
        logger.info(
            f"URL analyzer initialized with {len(self.malicious_domains)} malicious domains"
        )

    async def validate(self, url: str) -> UrlOutcome:
        """
        Run the full URL pipeline.

        Raises:
            InvalidInputException: If the URL has no host
        """
        start_time = time.perf_counter()
        outcome = UrlOutcome(url=url)

        host = self.validate_structure(url, outcome)
        self.check_domain_reputation(host, outcome)
        self.detect_scam_patterns(url, outcome)
        await self.analyze_content(url, outcome)
        outcome.confidence = calculate_risk_score(outcome)
        outcome.processing_time = time.perf_counter() - start_time

        logger.debug(
            f"URL validation completed for {host} in {outcome.processing_time:.3f}s",
            extra={"confidence": outcome.confidence}
        )
        return outcome

    async def validate_many(self, urls: List[str]) -> List[UrlOutcome]:
        """Validate URLs concurrently; results keep the input order."""
        return list(await asyncio.gather(*(self.validate(url) for url in urls)))

    def is_known_malicious_domain(self, url: str) -> bool:
        host = extract_host(url)
        if host is None:
            return False
        if host in self.malicious_domains:
            return True
        return host.endswith(SUSPICIOUS_TLDS)

    def validate_structure(self, url: str, outcome: UrlOutcome) -> str:
        host = extract_host(url)
        if host is None:
            outcome.risk_factors.append(RiskFactor.invalid_structure)
            raise InvalidInputException(
                "URL has no host",
                field="url",
                details={"url": url[:200], "risk_factors": [RiskFactor.invalid_structure.value]}
            )

        if len(url) > MAX_URL_LENGTH:
            outcome.risk_factors.append(RiskFactor.suspicious_structure)

        if len(host.split(".")) > MAX_HOST_LABELS:
            outcome.risk_factors.append(RiskFactor.suspicious_structure)

        digit_or_hyphen = sum(1 for ch in host if ch.isdigit() or ch == "-")
        if digit_or_hyphen / len(host) > 0.5:
            outcome.risk_factors.append(RiskFactor.suspicious_structure)

        if is_url_shortener(host):
            outcome.risk_factors.append(RiskFactor.url_shortener)

        if is_ip_address(host):
            outcome.risk_factors.append(RiskFactor.ip_address)

        return host

    def check_domain_reputation(self, host: str, outcome: UrlOutcome) -> None:
        if host in self.malicious_domains:
            outcome.is_malicious = True
            outcome.risk_factors.append(RiskFactor.known_malicious_domain)
            return

        if any(term in host for term in SUSPICIOUS_DOMAIN_TERMS):
            outcome.risk_factors.append(RiskFactor.suspicious_domain)

        if self.is_likely_typosquatting(host):
            outcome.risk_factors.append(RiskFactor.typosquatting)
            outcome.is_scam = True

    @staticmethod
    def is_likely_typosquatting(host: str) -> bool:
        return any(
            host != domain and levenshtein_distance(host, domain) <= 2
            for domain in POPULAR_DOMAINS
        )

    def detect_scam_patterns(self, url: str, outcome: UrlOutcome) -> None:
        lowered = url.lower()

        if any(pattern.search(lowered) for pattern in SCAM_PATTERNS):
            outcome.is_scam = True
            outcome.risk_factors.append(RiskFactor.scam_pattern)

        for keyword in SUSPICIOUS_KEYWORDS:
            if keyword in lowered:
                outcome.risk_factors.append(RiskFactor.suspicious_keyword)

        if any(pattern.search(lowered) for pattern in PHISHING_PATTERNS):
            outcome.is_scam = True
            outcome.risk_factors.append(RiskFactor.phishing_indicators)

    async def analyze_content(self, url: str, outcome: UrlOutcome) -> None:
        if self.page_client is None:
            return

        loop = asyncio.get_running_loop()
        content = await loop.run_in_executor(
            self._executor,
            functools.partial(attempt_signal, "url_content", self.page_client.fetch, url)
        )
        if content is None:
            outcome.risk_factors.append(RiskFactor.content_not_accessible)
            return

        self.analyze_page_content(content, outcome)

    @staticmethod
    def analyze_page_content(content: str, outcome: UrlOutcome) -> None:
        lowered = content.lower()

        if any(indicator in lowered for indicator in SCAM_CONTENT_INDICATORS):
            outcome.risk_factors.append(RiskFactor.malicious_content)
            outcome.is_scam = True

        if "password" in lowered and "social security" in lowered:
            outcome.risk_factors.append(RiskFactor.suspicious_form)
            outcome.is_scam = True

        if any(marker in lowered for marker in REDIRECT_MARKERS):
            outcome.risk_factors.append(RiskFactor.suspicious_redirect)
