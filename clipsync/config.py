"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Set CLIPSYNC_ALLOW_INSECURE_HTTP only on trusted networks."
        )

    return normalized


class Settings(BaseSettings):
    """clipsync engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="CLIPSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Remote service
    server_url: str = "https://reclipped.com"
    allow_insecure_http: bool = False
    # Overrides the token stored in the state file when set
    token: str = ""
    request_timeout: float = Field(default=60.0, gt=0)

    # Paths
    vault_dir: Path = Path(".")
    state_file: Path = Path(".clipsync-state.json")

    # Pacing
    request_delay_seconds: float = Field(default=0.01, ge=0)
    refresh_debounce_seconds: float = Field(default=0.8, ge=0)
    schedule_unit_seconds: float = Field(default=60.0, gt=0)

    def validate_runtime_security(self) -> None:
        """Validate the remote endpoint before any token is sent to it."""
        self.server_url = validate_server_url(self.server_url, self.allow_insecure_http)
