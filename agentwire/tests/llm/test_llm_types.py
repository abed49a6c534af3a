# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the normalized message types."""
import pytest

from types import SimpleNamespace
from pydantic import ValidationError as PydanticValidationError

from src.types.common import Role
from src.types.llm_types import (
    Message,
    ToolCall,
    ToolResult,
    ToolSchema,
    decode_arguments,
)
from src.types.event_types import BusEntry, summarize


class TestToolCall:
    def test_accepts_mapping_with_json_arguments(self):
        call = ToolCall.coerce({"id": "c1", "name": "read_file", "arguments": '{"path": "a.txt"}'})
        assert call.id == "c1"
        assert call.arguments == {"path": "a.txt"}

    def test_accepts_object_with_input_attribute(self):
        raw = SimpleNamespace(id="toolu_1", name="think", input={"thought": "hm"})
        call = ToolCall.coerce(raw)
        assert call.name == "think"
        assert call.arguments == {"thought": "hm"}

    def test_missing_id_is_invented(self):
        call = ToolCall.coerce({"name": "think", "args": {}})
        assert call.id.startswith("call_think_")

    def test_missing_name_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            ToolCall.coerce({"id": "c1", "arguments": {}})

    def test_malformed_json_is_repaired(self):
        assert decode_arguments('{"path": "a.txt",}') == {"path": "a.txt"}

    def test_non_object_arguments_are_wrapped(self):
        assert decode_arguments("[1, 2]") == {"value": [1, 2]}
        assert decode_arguments(None) == {}
        assert decode_arguments("") == {}


class TestMessage:
    def test_assistant_message_needs_content_or_calls(self):
        with pytest.raises(PydanticValidationError):
            Message(role=Role.ASSISTANT)

    def test_tool_message_needs_results(self):
        with pytest.raises(PydanticValidationError):
            Message(role=Role.TOOL, tool_results=None)

    def test_tool_result_accepts_openai_field_name(self):
        result = ToolResult.model_validate(
            {"tool_call_id": "c1", "name": "x", "content": {"ok": True}}
        )
        assert result.call_id == "c1"
        assert result.content == '{"ok": true}'

    def test_constructors(self):
        call = ToolCall(id="c1", name="think", arguments={})
        assert Message.user("hi", sender="boss").sender == "boss"
        assert Message.assistant(None, [call]).tool_calls == [call]
        tool = Message.tool([ToolResult(call_id="c1", name="think", content="ok")])
        assert tool.role == Role.TOOL


def test_sanitized_parameters_fill_array_items():
    schema = ToolSchema(
        name="x",
        description="d",
        parameters={"type": "object", "properties": {"tags": {"type": "array"}}},
    )
    assert schema.sanitized_parameters()["properties"]["tags"]["items"] == {"type": "string"}
    assert "items" not in schema.parameters["properties"]["tags"]


def test_bus_entry_summary_is_single_line_and_truncated():
    entry = BusEntry(sender="a", recipient=None, message="line one\nline two " + "x" * 300)
    assert "\n" not in entry.summary
    assert entry.summary.endswith("...")
    assert len(entry.summary) == 203
    assert " a → *: line one line two" in entry.format()


def test_summarize_structured_payload():
    assert summarize({"path": "a.txt"}) == '{"path": "a.txt"}'
