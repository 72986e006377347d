"""Mapping between character functions and provider tool schemas."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from personaflow.errors import ToolCallParseError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from personaflow.characters.models import CharacterFunction

logger = logging.getLogger(__name__)


@dataclass
class RawToolCall:
    """A tool call as returned by a provider.

    ``arguments`` is either a JSON string (chat completions) or an
    already-decoded mapping (Anthropic ``tool_use`` input).
    """

    name: str
    arguments: str | dict[str, Any]


@dataclass
class ToolCall:
    """Provider-agnostic tool call handed back to the caller."""

    name: str
    parameters: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "parameters": self.parameters}


def _parameters_schema(fn: CharacterFunction) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            p.name: {"type": p.type, "description": p.description}
            for p in fn.parameters
        },
    }


def to_tool_schema(functions: Iterable[CharacterFunction]) -> list[dict[str, Any]]:
    """Build chat-completions ``tools`` entries, one per declared function."""
    return [
        {
            "type": "function",
            "function": {
                "name": fn.name,
                "description": fn.description,
                "parameters": _parameters_schema(fn),
            },
        }
        for fn in functions
    ]


def to_anthropic_tools(tools: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert chat-completions tool entries to Anthropic's tool shape."""
    return [
        {
            "name": tool["function"]["name"],
            "description": tool["function"].get("description", ""),
            "input_schema": tool["function"].get("parameters") or {"type": "object"},
        }
        for tool in tools
    ]


def parse_tool_call(call: RawToolCall) -> ToolCall:
    """Decode a single call's arguments into a plain mapping.

    Raises:
        ToolCallParseError: If the payload is not a JSON object.
    """
    arguments = call.arguments
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as exc:
            msg = f"Tool call '{call.name}' has malformed arguments: {exc}"
            raise ToolCallParseError(msg) from exc
    if not isinstance(arguments, dict):
        msg = f"Tool call '{call.name}' arguments are not an object"
        raise ToolCallParseError(msg)
    return ToolCall(name=call.name, parameters=dict(arguments))


def from_tool_calls(raw_calls: Iterable[RawToolCall] | None) -> list[ToolCall]:
    """Normalize provider tool calls, dropping any whose arguments don't parse."""
    calls: list[ToolCall] = []
    for raw in raw_calls or ():
        try:
            calls.append(parse_tool_call(raw))
        except ToolCallParseError:
            logger.warning("Dropping tool call %r with unparseable arguments", raw.name)
    return calls
