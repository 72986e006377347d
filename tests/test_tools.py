"""Tests for tool schema mapping and tool-call normalization."""

import pytest

from personaflow.characters.models import validate_character
from personaflow.errors import ToolCallParseError
from personaflow.llm.tools import (
    RawToolCall,
    ToolCall,
    from_tool_calls,
    parse_tool_call,
    to_anthropic_tools,
    to_tool_schema,
)
from tests.factories import ADA, WEATHER_BOT


class TestToToolSchema:
    def test_one_entry_per_function(self):
        tools = to_tool_schema(validate_character(WEATHER_BOT).functions)
        assert tools == [
            {
                "type": "function",
                "function": {
                    "name": "getWeather",
                    "description": "Look up the weather for a city",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "city": {"type": "string", "description": "City name"},
                        },
                    },
                },
            }
        ]

    def test_no_functions_gives_empty_list(self):
        assert to_tool_schema(validate_character(ADA).functions) == []

    def test_parameter_types_preserved(self):
        options = validate_character(
            {
                **ADA,
                "functions": [
                    {
                        "name": "trade",
                        "description": "Trade items",
                        "parameters": [
                            {"name": "amount", "description": "", "type": "number"},
                            {"name": "accept", "description": "", "type": "boolean"},
                        ],
                    }
                ],
            }
        )
        props = to_tool_schema(options.functions)[0]["function"]["parameters"]["properties"]
        assert props["amount"]["type"] == "number"
        assert props["accept"]["type"] == "boolean"

    def test_anthropic_conversion(self):
        tools = to_anthropic_tools(to_tool_schema(validate_character(WEATHER_BOT).functions))
        assert tools[0]["name"] == "getWeather"
        assert tools[0]["input_schema"]["properties"]["city"]["type"] == "string"


class TestFromToolCalls:
    def test_parses_json_string_arguments(self):
        calls = from_tool_calls([RawToolCall(name="getWeather", arguments='{"city": "Paris"}')])
        assert calls == [ToolCall(name="getWeather", parameters={"city": "Paris"})]

    def test_accepts_structured_arguments(self):
        calls = from_tool_calls([RawToolCall(name="getWeather", arguments={"city": "Oslo"})])
        assert calls[0].to_dict() == {"name": "getWeather", "parameters": {"city": "Oslo"}}

    def test_empty_argument_string_is_empty_mapping(self):
        assert from_tool_calls([RawToolCall(name="ping", arguments="")])[0].parameters == {}

    def test_none_gives_empty_list(self):
        assert from_tool_calls(None) == []

    def test_malformed_call_dropped_rest_kept(self):
        calls = from_tool_calls(
            [
                RawToolCall(name="bad", arguments="{not json"),
                RawToolCall(name="good", arguments='{"a": 1}'),
            ]
        )
        assert [c.name for c in calls] == ["good"]

    def test_parse_single_malformed_raises(self):
        with pytest.raises(ToolCallParseError):
            parse_tool_call(RawToolCall(name="bad", arguments="[1, 2]"))
