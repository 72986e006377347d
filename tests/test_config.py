"""Tests for Settings configuration model."""

from pathlib import Path

from personaflow.config import Settings


class TestDefaults:
    def test_default_provider(self):
        assert Settings().llm_provider == "openai"

    def test_default_memory_size(self):
        assert Settings().memory_size == 10

    def test_default_finish_grace(self):
        assert Settings().finish_grace_seconds == 60.0

    def test_default_database_path(self):
        assert Settings().database_path == Path("data/personaflow.db")

    def test_env_ignored_under_pytest(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "anthropic")
        assert Settings().llm_provider == "openai"


class TestApiKeyFor:
    def test_returns_matching_key(self):
        s = Settings(openai_api_key="o", anthropic_api_key="a", deepseek_api_key="d")
        assert s.api_key_for("openai") == "o"
        assert s.api_key_for("anthropic") == "a"
        assert s.api_key_for("deepseek") == "d"

    def test_unknown_provider_is_empty(self):
        assert Settings(openai_api_key="o").api_key_for("parrot") == ""
