"""
Tests for URL risk analysis and the page client.
"""

import pytest
import requests
from unittest.mock import Mock

from moderation_engine.clients.page_client import PageClient
from moderation_engine.core.exceptions import InvalidInputException, NetworkFailureException
from moderation_engine.models.analysis import RiskFactor, UrlOutcome
from moderation_engine.services.url_analysis import (
    UrlAnalyzer,
    calculate_risk_score,
    extract_host,
    is_ip_address,
    is_url_shortener,
)


class UnreachablePageClient:
    """Page client whose every fetch fails."""

    def __init__(self):
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        raise NetworkFailureException(f"Fetching {url} timed out", url=url)


@pytest.fixture
def analyzer():
    return UrlAnalyzer(page_client=None)


class TestUrlHelpers:
    """Test host extraction and classification helpers."""

    def test_extract_host(self):
        """Test hosts are lowercased and missing hosts are None."""
        assert extract_host("https://Example.COM/path") == "example.com"
        assert extract_host("not a url") is None
        assert extract_host("") is None

    def test_is_ip_address(self):
        """Test IPv4 and IPv6 literals are recognized."""
        assert is_ip_address("192.168.1.1")
        assert is_ip_address("::1")
        assert not is_ip_address("example.com")

    def test_is_url_shortener(self):
        """Test shorteners match exactly or as a parent domain."""
        assert is_url_shortener("bit.ly")
        assert is_url_shortener("www.bit.ly")
        assert not is_url_shortener("habit.ly")

    def test_risk_score_is_clamped(self):
        """Test factor weights and bonuses never exceed 1."""
        outcome = UrlOutcome(
            url="x",
            is_malicious=True,
            risk_factors=[RiskFactor.known_malicious_domain],
        )
        assert calculate_risk_score(outcome) == 1.0
        assert calculate_risk_score(UrlOutcome(url="x")) == 0.0


class TestUrlAnalyzer:
    """Test the URL pipeline."""

    @pytest.mark.asyncio
    async def test_clean_url(self, analyzer):
        """Test an ordinary URL carries no risk."""
        outcome = await analyzer.validate("https://example.com/about")

        assert outcome.risk_factors == []
        assert outcome.confidence == 0.0
        assert not outcome.is_malicious
        assert not outcome.is_scam

    @pytest.mark.asyncio
    async def test_known_malicious_domain(self, analyzer):
        """Test known malicious domains are flagged with full confidence."""
        outcome = await analyzer.validate("https://malware-domain.com/download")

        assert outcome.is_malicious
        assert RiskFactor.known_malicious_domain in outcome.risk_factors
        assert outcome.confidence == 1.0

    @pytest.mark.asyncio
    async def test_ip_address_url(self, analyzer):
        """Test IP hosts carry the ip address risk factor."""
        outcome = await analyzer.validate("http://192.168.1.1/login")

        assert RiskFactor.ip_address in outcome.risk_factors
        assert outcome.confidence > 0

    @pytest.mark.asyncio
    async def test_url_shortener(self, analyzer):
        """Test shortened links carry a small risk."""
        outcome = await analyzer.validate("https://bit.ly/abc")

        assert outcome.risk_factors == [RiskFactor.url_shortener]
        assert outcome.confidence == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_typosquatting(self, analyzer):
        """Test near misses of popular domains are scams."""
        outcome = await analyzer.validate("http://gooogle.com")

        assert RiskFactor.typosquatting in outcome.risk_factors
        assert outcome.is_scam

    @pytest.mark.asyncio
    async def test_scam_pattern(self, analyzer):
        """Test scam phrasing in the URL is detected."""
        outcome = await analyzer.validate("http://example.com/free-money-now")

        assert outcome.is_scam
        assert RiskFactor.scam_pattern in outcome.risk_factors
        assert outcome.confidence == 1.0

    @pytest.mark.asyncio
    async def test_suspicious_domain_and_phishing(self, analyzer):
        """Test credential-bait hosts are suspicious and phishing."""
        outcome = await analyzer.validate("https://secure-login.example.org")

        assert RiskFactor.suspicious_domain in outcome.risk_factors
        assert RiskFactor.phishing_indicators in outcome.risk_factors
        assert outcome.is_scam

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["not a url", "", "mailto:someone@example.com"])
    async def test_url_without_host_is_rejected(self, analyzer, url):
        """Test URLs without a host fail as invalid input."""
        with pytest.raises(InvalidInputException) as exc_info:
            await analyzer.validate(url)
        assert exc_info.value.details["field"] == "url"

    @pytest.mark.asyncio
    async def test_unreachable_content_degrades(self):
        """Test a failing fetch only adds the not-accessible factor."""
        page_client = UnreachablePageClient()
        analyzer = UrlAnalyzer(page_client=page_client)

        outcome = await analyzer.validate("https://example.com")

        assert page_client.calls == ["https://example.com"]
        assert outcome.risk_factors == [RiskFactor.content_not_accessible]
        assert outcome.confidence == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_page_content_indicators(self):
        """Test scam text, sensitive forms and script redirects in the page."""
        page = (
            "<h1>Congratulations, you've won!</h1>"
            "<form>password and social security number</form>"
            "<script>window.location = 'http://elsewhere'</script>"
        )
        analyzer = UrlAnalyzer(page_client=Mock(fetch=Mock(return_value=page)))

        outcome = await analyzer.validate("https://example.com")

        assert RiskFactor.malicious_content in outcome.risk_factors
        assert RiskFactor.suspicious_form in outcome.risk_factors
        assert RiskFactor.suspicious_redirect in outcome.risk_factors
        assert outcome.is_scam

    @pytest.mark.asyncio
    async def test_validate_many_keeps_order(self, analyzer):
        """Test batch validation returns results in input order."""
        urls = ["https://example.com", "https://malware-domain.com", "https://bit.ly/x"]
        outcomes = await analyzer.validate_many(urls)

        assert [outcome.url for outcome in outcomes] == urls
        assert outcomes[1].is_malicious

    def test_is_known_malicious_domain(self, analyzer):
        """Test the reputation shortcut covers lists and suspicious TLDs."""
        assert analyzer.is_known_malicious_domain("https://phishing-site.net/a")
        assert analyzer.is_known_malicious_domain("http://free-stuff.tk")
        assert not analyzer.is_known_malicious_domain("https://example.com")
        assert not analyzer.is_known_malicious_domain("garbage")


class TestPageClient:
    """Test the page fetcher."""

    def test_fetch_success(self):
        """Test a 2xx response returns the body."""
        session = Mock()
        session.get.return_value = Mock(status_code=200, text="<html>ok</html>", content=b"<html>ok</html>")
        client = PageClient(timeout=5, session=session)

        assert client.fetch("https://example.com") == "<html>ok</html>"
        _, kwargs = session.get.call_args
        assert kwargs["timeout"] == 5
        assert "User-Agent" in kwargs["headers"]

    def test_fetch_error_status(self):
        """Test a non-2xx response raises a network failure."""
        session = Mock()
        session.get.return_value = Mock(status_code=404, text="", content=b"")

        with pytest.raises(NetworkFailureException) as exc_info:
            PageClient(session=session).fetch("https://example.com/missing")
        assert exc_info.value.details["status_code"] == 404

    def test_fetch_timeout(self):
        """Test timeouts raise a network failure."""
        session = Mock()
        session.get.side_effect = requests.exceptions.Timeout("timed out")

        with pytest.raises(NetworkFailureException) as exc_info:
            PageClient(session=session).fetch("https://example.com")
        assert exc_info.value.details["url"] == "https://example.com"
