"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Personaflow configuration. All values come from environment variables."""

    # Model provider
    llm_provider: str = Field(default="openai")
    llm_model: str = Field(default="")
    llm_api_url: str = Field(default="")
    llm_max_tokens: int = Field(default=1024)

    # Credentials
    openai_api_key: str = Field(default="")
    anthropic_api_key: str = Field(default="")
    deepseek_api_key: str = Field(default="")

    # Conversation
    memory_size: int = Field(default=10)
    finish_grace_seconds: float = Field(default=60.0)

    # Database (bundled SQLite adapter)
    database_path: Path = Field(default=Path("data/personaflow.db"))

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def api_key_for(self, provider: str) -> str:
        """Return the configured API key for *provider*, or empty string."""
        return {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "deepseek": self.deepseek_api_key,
        }.get(provider, "")


settings = Settings()
