"""Tests for settings parsing and CORS option translation."""

from __future__ import annotations

import pytest

from core.config import Settings, cors_origin_options, get_settings


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


class TestCorsOrigins:
    def test_csv_string(self) -> None:
        settings = _settings(CORS_ORIGINS="http://a.test, http://b.test,")
        assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]

    def test_json_array_string(self) -> None:
        settings = _settings(CORS_ORIGINS='["http://a.test"]')
        assert settings.CORS_ORIGINS == ["http://a.test"]

    def test_blank_entries_dropped(self) -> None:
        assert _settings(CORS_ORIGINS=" , ").CORS_ORIGINS == []

    def test_malformed_json_rejected(self) -> None:
        with pytest.raises(ValueError):
            _settings(CORS_ORIGINS='["unterminated"')

    def test_wildcard_with_credentials_reflects_origin(self) -> None:
        options = cors_origin_options(_settings(CORS_ORIGINS="*"))
        assert options == {"allow_origin_regex": ".*"}

    def test_wildcard_without_credentials(self) -> None:
        options = cors_origin_options(
            _settings(CORS_ORIGINS="*", ALLOW_CREDENTIALS=False)
        )
        assert options == {"allow_origins": ["*"]}

    def test_explicit_origins(self) -> None:
        options = cors_origin_options(_settings(CORS_ORIGINS="http://a.test"))
        assert options == {"allow_origins": ["http://a.test"]}


class TestUpstreamSettings:
    def test_defaults(self) -> None:
        settings = _settings(FAL_KEY=None)
        assert settings.UPSTREAM_STREAM_URL == "https://fal.run/fal-ai/flux-lora/stream"
        assert settings.upstream_configured is False

    def test_blank_key_is_not_configured(self) -> None:
        assert _settings(FAL_KEY="   ").upstream_configured is False

    def test_key_configured(self) -> None:
        assert _settings(FAL_KEY="abc").upstream_configured is True


def test_get_settings_rejects_unknown_environment(monkeypatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "staging")
    get_settings.cache_clear()
    try:
        with pytest.raises(ValueError):
            get_settings()
    finally:
        monkeypatch.undo()
        get_settings.cache_clear()


def test_upstream_timeout_splits_connect_and_read() -> None:
    timeout = _settings(UPSTREAM_READ_TIMEOUT_SECONDS=30).upstream_timeout

    assert timeout.connect == 10.0
    assert timeout.read == 30.0
