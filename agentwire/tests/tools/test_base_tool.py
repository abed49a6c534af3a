# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the BaseTool class and its Primitive capability adapter."""
import pytest

from pydantic import Field

from src.errors import ValidationError
from src.tools.base_tool import BaseTool, Primitive
from src.types.tool_types import ToolOutput


class EchoTool(BaseTool):
    TOOL_NAME = "echo"
    TOOL_DESCRIPTION = """Echo the text back.

Second paragraph of the description."""

    text: str = Field(..., description="Text to echo")
    times: int = Field(default=1, description="How many times")

    def run(self) -> ToolOutput:
        return ToolOutput(tool_name=self.TOOL_NAME, success=True, output=self.text * self.times)


class BrokenTool(BaseTool):
    TOOL_NAME = "broken"
    TOOL_DESCRIPTION = "Always fails"

    def run(self) -> ToolOutput:
        return ToolOutput(tool_name=self.TOOL_NAME, success=False, errors="it broke")


class SeenTool(BaseTool):
    TOOL_NAME = "seen"
    TOOL_DESCRIPTION = "Reports the caller"
    UNIVERSAL = True

    def run(self) -> ToolOutput:
        return ToolOutput(tool_name=self.TOOL_NAME, success=True, output=self._context.calling_agent)


@pytest.fixture
def context(make_runtime):
    return make_runtime().context(calling_agent="tester")


class TestPrimitive:
    def test_metadata(self):
        capability = EchoTool.as_capability()
        assert isinstance(capability, Primitive)
        assert capability.name == "echo"
        assert capability.KIND == "primitive"
        assert SeenTool.as_capability().KIND == "universal"

    def test_parameters_schema(self):
        schema = EchoTool.as_capability().parameters
        assert schema["type"] == "object"
        assert schema["required"] == ["text"]
        assert schema["properties"]["text"] == {"type": "string", "description": "Text to echo"}
        assert "title" not in schema
        assert "title" not in schema["properties"]["times"]

    def test_descriptor(self):
        descriptor = EchoTool.as_capability().descriptor()
        assert descriptor.name == "echo"
        assert descriptor.description.startswith("Echo the text back.")

    @pytest.mark.parametrize(
        "message",
        [{"text": "ab", "times": 2}, '{"text": "ab", "times": 2}', {"text": "ab", "times": "2"}],
    )
    def test_receive_accepts_dicts_and_json(self, context, message):
        assert EchoTool.as_capability().receive(message, context) == "abab"

    def test_context_is_passed_to_the_tool(self, context):
        assert SeenTool.as_capability().receive({}, context) == "tester"
        assert SeenTool.as_capability().receive(None, context) == "tester"

    def test_failure_renders_as_error_text(self, context):
        assert BrokenTool.as_capability().receive({}, context) == "Error: it broke"

    @pytest.mark.parametrize(
        "message, detail",
        [
            ({}, "text: Field required"),
            ({"text": "x", "bogus": 1}, "bogus: Extra inputs are not permitted"),
            ("not json at all", "Invalid arguments for 'echo'"),
            (42, "expected an argument object, got int"),
        ],
    )
    def test_invalid_arguments(self, context, message, detail):
        with pytest.raises(ValidationError) as info:
            EchoTool.as_capability().receive(message, context)
        assert detail in str(info.value)
        assert info.value.capability == "echo"


class TestToolOutput:
    def test_structured_output_is_json(self):
        output = ToolOutput(tool_name="t", success=True, output={"a": 1})
        assert str(output) == '{\n  "a": 1\n}'

    def test_warnings_are_appended(self):
        output = ToolOutput(tool_name="t", success=True, output="body", warnings="careful")
        assert str(output) == "body\nWarnings: careful"

    def test_failure_without_detail(self):
        assert str(ToolOutput(tool_name="t", success=False)) == "Error: unknown failure"
