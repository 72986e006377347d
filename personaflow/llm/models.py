"""Supported providers and their default models."""

import logging

from personaflow.errors import UnsupportedProviderError

logger = logging.getLogger(__name__)

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4",
    "deepseek": "deepseek-chat",
    "anthropic": "claude-3-sonnet-20240229",
}

# Providers that speak the OpenAI chat-completions protocol at a fixed URL.
BASE_URLS: dict[str, str] = {
    "deepseek": "https://api.deepseek.com",
}

PROVIDERS: tuple[str, ...] = tuple(DEFAULT_MODELS)


def resolve_provider(name: str) -> str:
    """Normalize a provider name. Raises for unknown providers."""
    provider = name.strip().lower()
    if provider not in DEFAULT_MODELS:
        msg = f"Unsupported model provider: {name!r} (expected one of {', '.join(PROVIDERS)})"
        raise UnsupportedProviderError(msg)
    return provider


def resolve_model(provider: str, model: str = "") -> str:
    """Return *model* if given, else the provider's default."""
    return model or DEFAULT_MODELS[resolve_provider(provider)]
