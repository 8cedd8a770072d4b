import pytest
from pydantic import ValidationError

from gateway.server.settings import RateLimitSettings


class TestRateLimitSettings:
    def test_defaults(self, monkeypatch):
        for name in ("REQUESTS_PER_MINUTE", "PROTECTED_PREFIXES", "RETRY_AFTER_SECONDS", "CORS_ORIGINS"):
            monkeypatch.delenv(f"RATE_LIMIT_{name}", raising=False)
        settings = RateLimitSettings()
        assert settings.requests_per_minute == 30
        assert settings.protected_prefixes == ["/api/"]
        assert settings.retry_after_seconds == 60
        assert settings.adaptive_retry_after is False
        assert settings.cors_origins == []

    def test_requests_per_minute_from_env(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_REQUESTS_PER_MINUTE", "120")
        assert RateLimitSettings().requests_per_minute == 120

    @pytest.mark.parametrize("value", ["0", "-3", "lots"])
    def test_invalid_requests_per_minute_fails_startup(self, monkeypatch, value):
        monkeypatch.setenv("RATE_LIMIT_REQUESTS_PER_MINUTE", value)
        with pytest.raises(ValidationError, match="requests_per_minute"):
            RateLimitSettings()

    def test_retry_after_zero_rejected(self):
        with pytest.raises(ValidationError, match="retry_after_seconds"):
            RateLimitSettings(retry_after_seconds=0)

    def test_idle_ttl_below_refill_period_rejected(self):
        with pytest.raises(ValidationError, match="idle_ttl_seconds"):
            RateLimitSettings(idle_ttl_seconds=30)

    def test_protected_prefixes_csv(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_PROTECTED_PREFIXES", "/api/,/v2/")
        assert RateLimitSettings().protected_prefixes == ["/api/", "/v2/"]

    def test_protected_prefixes_json_array(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_PROTECTED_PREFIXES", '["/api/","/v2/"]')
        assert RateLimitSettings().protected_prefixes == ["/api/", "/v2/"]

    def test_protected_prefixes_empty_rejected(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_PROTECTED_PREFIXES", "")
        with pytest.raises(ValidationError, match="protected_prefixes"):
            RateLimitSettings()

    def test_protected_prefix_must_be_absolute(self):
        with pytest.raises(ValidationError, match="must start with '/'"):
            RateLimitSettings(protected_prefixes=["api/"])

    def test_cors_origins_csv(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_CORS_ORIGINS", "http://x.com,http://y.com")
        assert RateLimitSettings().cors_origins == ["http://x.com", "http://y.com"]

    def test_adaptive_retry_after_from_env(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_ADAPTIVE_RETRY_AFTER", "true")
        assert RateLimitSettings().adaptive_retry_after is True
