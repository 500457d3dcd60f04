"""Tests for settings and base URL validation."""

import pytest

from gigvora_escrow.config import DEFAULT_OVERVIEW_TTL_SECONDS, EscrowSettings, get_settings, validate_api_base_url


class TestValidateApiBaseUrl:
    def test_https_is_accepted_and_trailing_slash_stripped(self):
        assert validate_api_base_url("https://api.gigvora.com/api/") == "https://api.gigvora.com/api"

    @pytest.mark.parametrize("url", ["http://localhost:5000/api", "http://127.0.0.1:8000"])
    def test_local_http_is_accepted(self, url):
        assert validate_api_base_url(url) == url

    def test_remote_http_needs_opt_in(self):
        with pytest.raises(ValueError, match="https"):
            validate_api_base_url("http://api.gigvora.com")
        assert validate_api_base_url("http://api.gigvora.com", allow_insecure_http=True)

    @pytest.mark.parametrize("url", ["", "ftp://api.gigvora.com", "https://"])
    def test_rejected(self, url):
        with pytest.raises(ValueError):
            validate_api_base_url(url)


class TestEscrowSettings:
    def test_defaults(self, monkeypatch):
        for name in ("API_BASE_URL", "AUTH_TOKEN", "FREELANCER_ID", "OVERVIEW_TTL_SECONDS"):
            monkeypatch.delenv(f"GIGVORA_{name}", raising=False)

        settings = EscrowSettings(_env_file=None)

        assert settings.api_base_url == "http://localhost:5000/api"
        assert settings.overview_ttl_seconds == DEFAULT_OVERVIEW_TTL_SECONDS == 45.0
        assert settings.auth_token is None
        assert settings.resolved_base_url() == "http://localhost:5000/api"

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("GIGVORA_API_BASE_URL", "https://api.gigvora.com/api")
        monkeypatch.setenv("GIGVORA_FREELANCER_ID", "fr-9")
        monkeypatch.setenv("GIGVORA_OVERVIEW_TTL_SECONDS", "10")

        settings = EscrowSettings(_env_file=None)

        assert settings.api_base_url == "https://api.gigvora.com/api"
        assert settings.freelancer_id == "fr-9"
        assert settings.overview_ttl_seconds == 10.0

    def test_negative_ttl_is_rejected(self):
        with pytest.raises(ValueError):
            EscrowSettings(_env_file=None, overview_ttl_seconds=-1)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
