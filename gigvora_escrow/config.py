"""Configuration settings for the Gigvora escrow client."""

from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_OVERVIEW_TTL_SECONDS = 45.0


def validate_api_base_url(url: str, *, allow_insecure_http: bool = False) -> str:
    """Validate an API base URL before credentials are sent to it.

    Only http/https with a host is accepted, and plaintext http only for
    localhost unless ``allow_insecure_http`` is set.

    Raises:
        ValueError: If the URL is rejected.
    """
    if not url:
        raise ValueError("api_base_url cannot be empty")

    parsed = urlparse(url)
    if parsed.scheme not in {"https", "http"}:
        raise ValueError("api_base_url must use http or https")
    if not parsed.netloc:
        raise ValueError("api_base_url is missing a host")
    if parsed.scheme == "http" and not allow_insecure_http:
        host = parsed.hostname or ""
        if host not in {"localhost", "127.0.0.1"}:
            raise ValueError("Refusing non-local http api_base_url; use https")
    return url.rstrip("/")


class EscrowSettings(BaseSettings):
    """Client settings loaded from ``GIGVORA_*`` environment variables."""

    api_base_url: str = "http://localhost:5000/api"
    auth_token: Optional[str] = None
    # Default freelancer context for the CLI
    freelancer_id: Optional[str] = None

    overview_ttl_seconds: float = DEFAULT_OVERVIEW_TTL_SECONDS
    # None leaves the transport's own default timeout in place
    request_timeout: Optional[float] = None
    allow_insecure_http: bool = False

    model_config = SettingsConfigDict(
        env_prefix="GIGVORA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("overview_ttl_seconds")
    @classmethod
    def _positive_ttl(cls, value: float) -> float:
        if value < 0:
            raise ValueError("overview_ttl_seconds cannot be negative")
        return value

    def resolved_base_url(self) -> str:
        return validate_api_base_url(
            self.api_base_url, allow_insecure_http=self.allow_insecure_http
        )


@lru_cache
def get_settings() -> EscrowSettings:
    """Get cached settings instance."""
    return EscrowSettings()
