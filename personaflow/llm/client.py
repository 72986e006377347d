"""Async model clients behind a single provider-agnostic query interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import anthropic
import openai

from personaflow.conversation.window import CONTEXT_HEADER
from personaflow.llm.models import BASE_URLS, resolve_model, resolve_provider
from personaflow.llm.tools import RawToolCall, to_anthropic_tools

if TYPE_CHECKING:
    from collections.abc import Sequence

    from personaflow.config import Settings
    from personaflow.conversation.models import Message

logger = logging.getLogger(__name__)


@dataclass
class ModelReply:
    """Normalized model output: optional text plus optional tool calls."""

    message: str | None = None
    tool_calls: list[RawToolCall] | None = None


class ModelClient(Protocol):
    """Anything that can answer a chat request."""

    async def query(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply | None: ...


class OpenAIChatClient:
    """Chat-completions client for OpenAI and compatible hosts (DeepSeek)."""

    def __init__(self, model: str, api_key: str, base_url: str | None = None) -> None:
        self.model = model
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url or None)

    async def query(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply | None:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_api() for m in messages],
        }
        if tools:
            kwargs["tools"] = tools

        response = await self._client.chat.completions.create(**kwargs)
        if not response.choices:
            return None
        choice = response.choices[0].message

        tool_calls = [
            RawToolCall(name=call.function.name, arguments=call.function.arguments)
            for call in (choice.tool_calls or [])
        ]
        return ModelReply(message=choice.content, tool_calls=tool_calls or None)


def _split_system(messages: Sequence[Message]) -> tuple[str, list[dict[str, str]]]:
    """Fold system turns into Anthropic's ``system`` parameter.

    The latest persona prompt and the latest context block are kept; all
    other system turns are dropped. Turns with empty content (tool-only
    replies) are skipped, and the forwarded turns always open with a user
    turn, since the Messages API rejects both.
    """
    personas = [
        m.content
        for m in messages
        if m.role == "system" and not m.content.startswith(CONTEXT_HEADER)
    ]
    contexts = [
        m.content
        for m in messages
        if m.role == "system" and m.content.startswith(CONTEXT_HEADER)
    ]
    parts = []
    if personas:
        parts.append(personas[-1])
    if contexts:
        parts.append(contexts[-1])
    system = "\n\n".join(parts)
    turns = [m.to_api() for m in messages if m.role != "system" and m.content.strip()]
    while turns and turns[0]["role"] == "assistant":
        turns.pop(0)
    return system, turns


class AnthropicClient:
    """Messages API client for Claude models."""

    def __init__(self, model: str, api_key: str, max_tokens: int = 1024) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    async def query(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply | None:
        system, turns = _split_system(messages)
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": turns,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = to_anthropic_tools(tools)

        response = await self._client.messages.create(**kwargs)

        text = next((b.text for b in response.content if b.type == "text"), None)
        tool_calls = [
            RawToolCall(name=b.name, arguments=dict(b.input or {}))
            for b in response.content
            if b.type == "tool_use"
        ]
        return ModelReply(message=text, tool_calls=tool_calls or None)


def create_client(settings: Settings) -> ModelClient:
    """Build the client for the configured provider.

    Raises:
        UnsupportedProviderError: If ``llm_provider`` is not recognized.
    """
    provider = resolve_provider(settings.llm_provider)
    model = resolve_model(provider, settings.llm_model)
    api_key = settings.api_key_for(provider)
    logger.info("Model provider: %s (model=%s)", provider, model)

    if provider == "anthropic":
        return AnthropicClient(model, api_key, max_tokens=settings.llm_max_tokens)
    base_url = settings.llm_api_url or BASE_URLS.get(provider)
    return OpenAIChatClient(model, api_key, base_url=base_url)
