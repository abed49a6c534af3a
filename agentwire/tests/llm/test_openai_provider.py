# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the OpenAI chat-completions adapter."""
import httpx
import openai
import pytest

from unittest.mock import Mock

from src.errors import ProviderError
from src.llm.providers import OpenAIProvider
from src.types.common import Role
from src.types.llm_types import LLMRequest, Message, StopReason, ToolCall, ToolResult, ToolSchema


def conversation():
    calls = [
        ToolCall(id="call_1", name="read_file", arguments={"path": "notes.txt"}),
        ToolCall(id="call_2", name="researcher", arguments={"message": "find bees"}),
    ]
    return [
        Message.user("Summarize my notes"),
        Message.assistant("Looking.", calls),
        Message.tool(
            [
                ToolResult(call_id="call_1", name="read_file", content="bees are great"),
                ToolResult(call_id="call_2", name="researcher", content="bees pollinate"),
            ]
        ),
        Message.assistant("Bees are great pollinators."),
    ]


class TestOpenAISerialization:
    def setup_method(self):
        self.provider = OpenAIProvider(client=Mock())

    def test_each_result_is_a_tool_message(self):
        wire = self.provider.serialize_messages(conversation())
        assert [m["role"] for m in wire] == ["user", "assistant", "tool", "tool", "assistant"]
        assert wire[1]["tool_calls"][0]["function"]["arguments"] == '{"path": "notes.txt"}'
        assert wire[2]["tool_call_id"] == "call_1"

    def test_round_trip_preserves_calls_and_results(self):
        original = conversation()
        restored = self.provider.deserialize_messages(self.provider.serialize_messages(original))

        assert [m.role for m in restored] == [m.role for m in original]
        assert restored[1].tool_calls == original[1].tool_calls
        assert restored[2].tool_results == original[2].tool_results

    def test_payload_puts_system_first_and_converts_tools(self):
        request = LLMRequest(
            system="You are terse.",
            messages=[Message.user("hi")],
            tools=[ToolSchema(name="think", description="Think", parameters={"type": "object", "properties": {}})],
        )
        payload = self.provider._build_payload(request)
        assert payload["messages"][0] == {"role": "system", "content": "You are terse."}
        assert payload["tools"][0]["type"] == "function"
        assert payload["tools"][0]["function"]["name"] == "think"


class TestOpenAIChat:
    def test_parses_tool_calls_and_usage(self):
        client = Mock()
        client.chat.completions.create.return_value = {
            "model": "gpt-4.1-2025-04-14",
            "choices": [
                {
                    "finish_reason": "tool_calls",
                    "message": {
                        "content": None,
                        "tool_calls": [
                            {
                                "id": "call_9",
                                "type": "function",
                                "function": {"name": "read_file", "arguments": '{"path": "a"}'},
                            }
                        ],
                    },
                }
            ],
            "usage": {"prompt_tokens": 12, "completion_tokens": 3},
        }
        provider = OpenAIProvider(client=client)

        response = provider.chat(LLMRequest(messages=[Message.user("read a")]))

        assert response.stop_reason == StopReason.TOOL_USE
        assert response.tool_calls == [ToolCall(id="call_9", name="read_file", arguments={"path": "a"})]
        assert response.usage.input_tokens == 12
        assert response.usage.model == "gpt-4.1-2025-04-14"
        assert response.content == ""

    def test_status_errors_become_provider_errors(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = openai.APIStatusError(
            "rate limited",
            response=httpx.Response(429, request=request, text="slow down"),
            body=None,
        )
        client = Mock()
        client.chat.completions.create.side_effect = error
        provider = OpenAIProvider(client=client)

        with pytest.raises(ProviderError) as info:
            provider.chat(LLMRequest(messages=[Message.user("hi")]))
        assert info.value.status == 429
        assert info.value.body == "slow down"
        assert str(info.value) == "openai error 429: slow down"

    def test_client_side_errors_become_provider_errors(self):
        client = Mock()
        client.chat.completions.create.side_effect = openai.OpenAIError("no api key configured")
        with pytest.raises(ProviderError) as info:
            OpenAIProvider(client=client).chat(LLMRequest(messages=[Message.user("hi")]))
        assert info.value.status is None
        assert info.value.body == "no api key configured"

    def test_empty_choices_is_a_provider_error(self):
        client = Mock()
        client.chat.completions.create.return_value = {"choices": []}
        with pytest.raises(ProviderError):
            OpenAIProvider(client=client).chat(LLMRequest(messages=[Message.user("hi")]))


def test_roles_survive_consecutive_user_messages():
    provider = OpenAIProvider(client=Mock())
    restored = provider.deserialize_messages(
        provider.serialize_messages([Message.user("a"), Message.user("b")])
    )
    assert [m.role for m in restored] == [Role.USER, Role.USER]
