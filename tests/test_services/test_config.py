"""Tests for application configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from clipsync.config import Settings, validate_server_url

if TYPE_CHECKING:
    from pathlib import Path


class TestSettings:
    def test_default_settings(self) -> None:
        s = Settings(_env_file=None)
        assert s.server_url == "https://reclipped.com"
        assert s.debug is False
        assert s.token == ""
        assert s.refresh_debounce_seconds == 0.8
        assert s.schedule_unit_seconds == 60

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLIPSYNC_TOKEN", "secret")
        monkeypatch.setenv("CLIPSYNC_REQUEST_DELAY_SECONDS", "0.5")
        s = Settings(_env_file=None)
        assert s.token == "secret"
        assert s.request_delay_seconds == 0.5

    def test_settings_from_fixture(self, test_settings: Settings) -> None:
        assert test_settings.debug is True
        assert test_settings.vault_dir.exists()

    def test_runtime_security_normalizes_url(self, tmp_path: Path) -> None:
        s = Settings(_env_file=None, server_url=" https://example.com/ ", vault_dir=tmp_path)
        s.validate_runtime_security()
        assert s.server_url == "https://example.com"

    def test_runtime_security_rejects_plain_http(self) -> None:
        s = Settings(_env_file=None, server_url="http://example.com")
        with pytest.raises(ValueError, match="HTTPS is required"):
            s.validate_runtime_security()


class TestValidateServerUrl:
    def test_rejects_insecure_http_for_remote_hosts(self) -> None:
        with pytest.raises(ValueError, match="HTTPS is required"):
            validate_server_url("http://example.com")

    def test_allows_https_for_remote_hosts(self) -> None:
        assert validate_server_url("https://example.com") == "https://example.com"

    def test_allows_http_for_localhost(self) -> None:
        assert validate_server_url("http://localhost:8000") == "http://localhost:8000"

    def test_allows_insecure_http_when_flag_enabled(self) -> None:
        assert (
            validate_server_url("http://example.com:8000", allow_insecure_http=True)
            == "http://example.com:8000"
        )

    def test_rejects_missing_scheme(self) -> None:
        with pytest.raises(ValueError, match="must include scheme and host"):
            validate_server_url("reclipped.com")
