"""
API tests for the Content Moderation Engine HTTP surface.
"""

import base64

import pytest
from fastapi.testclient import TestClient

from main import app
from moderation_engine.core.config import Settings
from moderation_engine.services.moderation_service import build_moderation_service

from conftest import TEST_SEVERITIES, TEST_WORDLISTS


def encode_pixels(width: int, height: int, value: int = 128, channels: int = 4) -> str:
    return base64.b64encode(bytes([value]) * (width * height * channels)).decode("ascii")


@pytest.fixture(scope="module")
def client():
    """Create test client backed by a service that never fetches pages."""
    with TestClient(app) as c:
        app.state.moderation_service = build_moderation_service(
            Settings(url_fetch_enabled=False),
            wordlists=TEST_WORDLISTS,
            severities=TEST_SEVERITIES,
        )
        yield c


class TestMonitoringEndpoints:
    """Test health, metrics and root endpoints."""

    def test_health_check(self, client):
        """Test health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["image_classifiers"] == []
        assert data["services"]["url_fetch"] == "disabled"

    def test_metrics_endpoint(self, client):
        """Test metrics endpoint reports statistics and caches."""
        response = client.get("/metrics")
        assert response.status_code == 200
        data = response.json()
        assert "total_moderations" in data["statistics"]
        assert set(data["caches"]) == {"text", "url", "image"}

    def test_root(self, client):
        """Test root endpoint lists the moderation endpoints."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["endpoints"]["batch_moderation"] == "/api/v1/moderate/batch"

    def test_request_id_header(self, client):
        """Test every response carries a request ID."""
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Process-Time" in response.headers


class TestModerationEndpoints:
    """Test the per-kind moderation endpoints."""

    def test_text_approved(self, client):
        """Test clean text is approved."""
        response = client.post("/api/v1/moderate/text", json={"content": "this is a great day"})
        assert response.status_code == 200
        data = response.json()
        assert data["verdict"]["kind"] == "approved"
        assert len(data["fingerprint"]) == 64

    def test_text_blocked(self, client):
        """Test extreme profanity is blocked with its severity."""
        response = client.post("/api/v1/moderate/text", json={"content": "what the fuck"})
        assert response.status_code == 200
        verdict = response.json()["verdict"]
        assert verdict["kind"] == "blocked"
        assert verdict["reasons"][0]["kind"] == "profanity"
        assert verdict["reasons"][0]["severity"] == "extreme"

    def test_text_with_language(self, client):
        """Test a language without its own list falls back to the default list."""
        response = client.post(
            "/api/v1/moderate/text", json={"content": "what the fuck", "language": "fr"}
        )
        assert response.status_code == 200
        assert response.json()["verdict"]["kind"] == "blocked"

    def test_text_too_long(self, client):
        """Test oversized text fails request validation."""
        response = client.post("/api/v1/moderate/text", json={"content": "a" * 10001})
        assert response.status_code == 422

    def test_hashtags(self, client):
        """Test hashtag spam is routed to review."""
        response = client.post("/api/v1/moderate/hashtags", json={"hashtags": ["#free", "#travel"]})
        assert response.status_code == 200
        assert response.json()["verdict"]["kind"] == "requires_review"

    def test_url_blocked(self, client):
        """Test a known malicious domain is blocked."""
        response = client.post(
            "/api/v1/moderate/url", json={"url": "https://malware-domain.com/download"}
        )
        assert response.status_code == 200
        reasons = response.json()["verdict"]["reasons"]
        assert [r["kind"] for r in reasons] == ["malicious_url"]

    def test_url_without_host(self, client):
        """Test a URL without a host is a bad request."""
        response = client.post("/api/v1/moderate/url", json={"url": "not a url"})
        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "INVALID_INPUT"

    def test_image_approved(self, client):
        """Test a clean raw image is approved."""
        payload = {"pixels": encode_pixels(4, 4), "width": 4, "height": 4, "channels": 4}
        response = client.post("/api/v1/moderate/image", json=payload)
        assert response.status_code == 200
        assert response.json()["verdict"]["kind"] == "approved"

    def test_image_dimension_mismatch(self, client):
        """Test pixels that do not match the dimensions are rejected."""
        payload = {"pixels": encode_pixels(4, 4), "width": 8, "height": 8, "channels": 4}
        response = client.post("/api/v1/moderate/image", json=payload)
        assert response.status_code == 400
        assert response.json()["detail"]["details"]["field"] == "data"

    def test_image_not_base64(self, client):
        """Test pixels that are not base64 fail request validation."""
        payload = {"pixels": "not base64!!", "width": 1, "height": 1}
        response = client.post("/api/v1/moderate/image", json=payload)
        assert response.status_code == 422

    def test_composite(self, client):
        """Test a composite is moderated as one unit."""
        payload = {
            "identifier": "evt-42",
            "items": [
                {"type": "text", "content": "Community picnic"},
                {"type": "text", "content": "what the fuck"},
                {"type": "hashtags", "hashtags": ["#fun"]},
            ],
        }
        response = client.post("/api/v1/moderate/composite", json=payload)
        assert response.status_code == 200
        data = response.json()
        assert data["verdict"]["kind"] == "blocked"
        assert data["outcomes"][0]["source"] == "evt-42[1].text"

    def test_repeat_request_is_cached(self, client):
        """Test an identical request is answered from the cache."""
        payload = {"content": "a perfectly ordinary sentence"}
        first = client.post("/api/v1/moderate/text", json=payload).json()
        second = client.post("/api/v1/moderate/text", json=payload).json()
        assert first["cached"] is False
        assert second["cached"] is True
        assert second["verdict"] == first["verdict"]


class TestBatchEndpoint:
    """Test the batch endpoint."""

    def test_batch_with_invalid_item(self, client):
        """Test an invalid item is reported without failing the batch."""
        payload = {
            "items": [
                {"type": "text", "content": "hello"},
                {"type": "url", "url": "not a url"},
                {"type": "composite", "identifier": "p", "items": [{"type": "text", "content": "hi"}]},
            ]
        }
        response = client.post("/api/v1/moderate/batch", json=payload)
        assert response.status_code == 200
        data = response.json()
        assert data["total_items"] == 3
        assert data["failed_items"] == 1
        assert [r["index"] for r in data["results"]] == [0, 1, 2]
        assert data["results"][1]["error"]["error_code"] == "INVALID_INPUT"
        assert data["results"][0]["verdict"]["kind"] == "approved"

    def test_empty_batch_is_rejected(self, client):
        """Test a batch needs at least one item."""
        response = client.post("/api/v1/moderate/batch", json={"items": []})
        assert response.status_code == 422

    def test_unknown_item_type(self, client):
        """Test items must declare a known type."""
        response = client.post("/api/v1/moderate/batch", json={"items": [{"type": "video"}]})
        assert response.status_code == 422


class TestAdministrativeEndpoints:
    """Test statistics and cache management."""

    def test_statistics(self, client):
        """Test the statistics endpoint reports counters."""
        client.post("/api/v1/moderate/text", json={"content": "statistics check"})
        response = client.get("/api/v1/moderate/statistics")
        assert response.status_code == 200
        assert response.json()["total_moderations"] >= 1

    def test_clear_cache(self, client):
        """Test clearing the cache reports the dropped entries."""
        client.post("/api/v1/moderate/text", json={"content": "cache entry"})
        response = client.delete("/api/v1/moderate/cache")
        assert response.status_code == 200
        assert response.json()["cleared_entries"] >= 1
