# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""OpenAI chat-completions provider, also used for OpenAI-compatible endpoints."""

import json
import openai
import logging

from typing import Any

from .base_provider import BaseProvider
from ...errors import ProviderError
from ...types.common import Role
from ...types.llm_types import (
    LLMRequest,
    LLMResponse,
    Message,
    StopReason,
    TokenUsage,
    ToolCall,
    ToolResult,
    ToolSchema,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseProvider):
    """Provider implementation for OpenAI's chat completions API.

    Tool calls travel on the assistant message with JSON-string arguments;
    every tool result becomes its own ``role: tool`` message.
    """

    provider_name = "openai"
    default_model = "gpt-4.1"

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        max_tokens: int | None = None,
        client: Any = None,
        provider_name: str | None = None,
    ):
        super().__init__(model)
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self.max_tokens = max_tokens
        self._client = client
        if provider_name:
            self.provider_name = provider_name

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=self._api_key, base_url=self._base_url, timeout=self._timeout
            )
        return self._client

    def map_stop_reason(self, response: dict) -> StopReason:
        choices = response.get("choices") or [{}]
        finish_reason = choices[0].get("finish_reason")
        if finish_reason == "tool_calls":
            return StopReason.TOOL_USE
        elif finish_reason == "length":
            return StopReason.LENGTH
        elif finish_reason == "content_filter":
            return StopReason.ERROR
        return StopReason.COMPLETE

    def _create_token_usage(self, response: dict) -> TokenUsage:
        usage = response.get("usage") or {}
        if not usage:
            logger.warning(f"Missing usage information from {self.provider_name} response. Setting to 0")
        return TokenUsage(
            input_tokens=usage.get("prompt_tokens") or 0,
            output_tokens=usage.get("completion_tokens") or 0,
            model=response.get("model") or self.model,
            provider=self.provider_name,
        )

    def pydantic_to_native_tool(self, tool: ToolSchema) -> dict:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.sanitized_parameters(),
            },
        }

    def _prepare_messages(self, messages: list[Message]) -> list[dict]:
        oai_messages = []
        for msg in messages:
            if msg.role == Role.ASSISTANT:
                entry: dict[str, Any] = {"role": "assistant", "content": msg.content}
                if msg.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.name,
                                "arguments": json.dumps(tc.arguments),
                            },
                        }
                        for tc in msg.tool_calls
                    ]
                oai_messages.append(entry)
            elif msg.role == Role.TOOL:
                for result in msg.tool_results:
                    oai_messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": result.call_id,
                            "content": result.content,
                        }
                    )
            else:
                oai_messages.append({"role": "user", "content": msg.content or ""})
        return oai_messages

    def deserialize_messages(self, provider_messages: list[dict]) -> list[Message]:
        messages: list[Message] = []
        names: dict[str, str] = {}
        for raw in provider_messages:
            role = raw.get("role")
            if role == "system":
                continue
            if role == "assistant":
                calls = [self._parse_tool_call(tc) for tc in raw.get("tool_calls") or []]
                names.update({tc.id: tc.name for tc in calls})
                messages.append(Message.assistant(raw.get("content"), calls))
            elif role == "tool":
                call_id = raw["tool_call_id"]
                result = ToolResult(
                    call_id=call_id,
                    name=raw.get("name") or names.get(call_id, "unknown"),
                    content=raw.get("content") or "",
                )
                # consecutive tool messages answer one assistant turn
                if messages and messages[-1].role == Role.TOOL:
                    messages[-1].tool_results.append(result)
                else:
                    messages.append(Message.tool([result]))
            else:
                messages.append(Message.user(raw.get("content") or ""))
        return messages

    @staticmethod
    def _parse_tool_call(raw: dict) -> ToolCall:
        function = raw.get("function") or {}
        return ToolCall(
            id=raw.get("id"),
            name=function.get("name"),
            arguments=function.get("arguments"),
        )

    def _build_payload(self, request: LLMRequest) -> dict:
        messages = self.serialize_messages(request.messages)
        if request.system:
            messages.insert(0, {"role": "system", "content": request.system})
        payload: dict[str, Any] = {"model": self.model, "messages": messages}
        if request.tools:
            payload["tools"] = [self.pydantic_to_native_tool(t) for t in request.tools]
        if self.max_tokens:
            payload["max_tokens"] = self.max_tokens
        return payload

    def _send(self, payload: dict) -> dict:
        try:
            response = self.client.chat.completions.create(**payload)
        except openai.APIStatusError as e:
            raise ProviderError(self.provider_name, e.status_code, e.response.text) from e
        except openai.OpenAIError as e:
            raise ProviderError(self.provider_name, None, str(e)) from e
        return self._as_dict(response)

    def _parse_response(self, raw: Any) -> LLMResponse:
        response = self._as_dict(raw)
        choices = response.get("choices") or []
        if not choices:
            raise ProviderError(self.provider_name, None, f"No choices in response: {response}")
        message = choices[0].get("message") or {}
        return LLMResponse(
            content=message.get("content") or "",
            tool_calls=[self._parse_tool_call(tc) for tc in message.get("tool_calls") or []],
            usage=self._create_token_usage(response),
            stop_reason=self.map_stop_reason(response),
            raw=response,
        )
