"""Tests for environment-driven settings."""

import pytest

import config as settings


class TestProviderConfigFromEnv:
    def test_openai_key_and_base_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENAI_BASE_URL", "https://proxy.example/v1")

        cfg = settings.provider_config_from_env("OpenAI", "gpt-4o")

        assert cfg.api_key == "sk-test"
        assert cfg.model_id == "gpt-4o"
        assert cfg.base_url == "https://proxy.example/v1"

    def test_ollama_needs_no_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OLLAMA_HOST", "")

        cfg = settings.provider_config_from_env("ollama", "llama3.1:8b")

        assert cfg.api_key is None
        assert cfg.base_url is None

    def test_default_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        cfg = settings.provider_config_from_env("google")
        assert cfg.model_id == settings.DEFAULT_MODEL
        assert cfg.api_key is None

    def test_key_hidden_in_repr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-secret")
        assert "sk-secret" not in repr(settings.provider_config_from_env("openai"))


def test_validate_config_creates_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setattr(settings, "STATE_DIR", tmp_path / "state")
    monkeypatch.setattr(settings, "LOG_DIR", tmp_path / "state" / "logs")
    settings.validate_config()
    assert (tmp_path / "state" / "logs").is_dir()
